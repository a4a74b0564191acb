import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class LoanSanction(Base):
    __tablename__ = "loan_sanctions"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'signed')", name="ck_loan_sanction_status"),
        CheckConstraint("sanctioned_amount >= 0", name="ck_loan_sanction_amount_nonneg"),
        CheckConstraint("processing_fee >= 0", name="ck_loan_sanction_fee_nonneg"),
        UniqueConstraint("loan_application_id", name="uq_loan_sanctions_loan_application_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False, index=True)
    # One sanction per application.
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    sanction_number = Column(String(50), nullable=False)
    sanctioned_amount = Column(Numeric(14, 2), nullable=False)
    sanctioned_rate = Column(Numeric(8, 4), nullable=True)
    sanctioned_tenure_days = Column(Integer, nullable=True)
    processing_fee = Column(Numeric(14, 2), nullable=False, default=0)
    net_disbursement_amount = Column(Numeric(14, 2), nullable=False)
    validity_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    signed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan_application = relationship(
        "LoanApplication", back_populates="sanction", lazy="raise"
    )
