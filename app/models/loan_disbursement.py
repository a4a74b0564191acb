import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class LoanDisbursement(Base):
    __tablename__ = "loan_disbursements"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_loan_disbursement_status",
        ),
        CheckConstraint("disbursement_amount > 0", name="ck_loan_disbursement_amount_positive"),
        UniqueConstraint(
            "loan_application_id", name="uq_loan_disbursements_loan_application_id"
        ),
        Index("ix_loan_disbursements_org_status", "org_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False, index=True)
    # At most one disbursement per application.
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    disbursement_number = Column(String(50), nullable=False)
    disbursement_amount = Column(Numeric(14, 2), nullable=False)
    payment_mode = Column(String(20), nullable=True)
    beneficiary_name = Column(String(255), nullable=True)
    account_number = Column(String(34), nullable=True)
    ifsc_code = Column(String(11), nullable=True)
    bank_name = Column(String(255), nullable=True)
    utr_number = Column(String(64), nullable=True)
    proof_uploaded = Column(Boolean, nullable=False, default=False)
    proof_document_path = Column(String(1024), nullable=True)
    proof_uploaded_at = Column(DateTime(timezone=True), nullable=True)
    proof_uploaded_by = Column(UUID(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    failure_reason = Column(Text, nullable=True)
    disbursement_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan_application = relationship(
        "LoanApplication", back_populates="disbursement", lazy="raise"
    )
