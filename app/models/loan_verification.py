import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class LoanVerification(Base):
    __tablename__ = "loan_verifications"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "verification_type IN ('video_kyc', 'pan', 'aadhaar', 'bank_account', 'employment', 'bank_statement', 'credit_bureau')",
            name="ck_loan_verification_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'success', 'failed')",
            name="ck_loan_verification_status",
        ),
        UniqueConstraint(
            "loan_application_id",
            "verification_type",
            name="uq_loan_verification_app_type",
        ),
        Index("ix_loan_verifications_org_id", "org_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    verification_type = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    verification_source = Column(String(50), nullable=True)
    request_payload = Column(JSONB, nullable=False, default=dict)
    response_payload = Column(JSONB, nullable=True)
    remarks = Column(Text, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan_application = relationship(
        "LoanApplication", back_populates="verifications", lazy="raise"
    )
