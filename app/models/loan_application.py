import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


LOAN_STAGES = (
    "application_login",
    "document_collection",
    "verification",
    "credit_assessment",
    "approval_pending",
    "approved",
    "rejected",
    "sanction",
    "sanctioned",
    "disbursement_pending",
    "disbursed",
    "closed",
    "cancelled",
)

LOAN_STATUSES = (
    "draft",
    "new",
    "in_progress",
    "approved",
    "rejected",
    "disbursed",
    "cancelled",
    "closed",
)


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class LoanApplication(Base):
    """Central entity; ``current_stage``/``status`` are written only through
    ``app.services.stage_transitions.transition``."""

    __tablename__ = "loan_applications"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(_in_clause("current_stage", LOAN_STAGES), name="ck_loan_app_stage"),
        CheckConstraint(_in_clause("status", LOAN_STATUSES), name="ck_loan_app_status"),
        CheckConstraint("requested_amount >= 0", name="ck_loan_app_requested_nonneg"),
        CheckConstraint("approved_amount IS NULL OR approved_amount >= 0", name="ck_loan_app_approved_nonneg"),
        UniqueConstraint("org_id", "application_number", name="uq_loan_app_org_number"),
        Index("ix_loan_applications_org_stage", "org_id", "current_stage"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False, index=True)
    application_number = Column(String(50), nullable=False)
    current_stage = Column(String(40), nullable=False, default="application_login")
    status = Column(String(30), nullable=False, default="draft")
    requested_amount = Column(Numeric(14, 2), nullable=False)
    approved_amount = Column(Numeric(14, 2), nullable=True)
    tenure_days = Column(Integer, nullable=True)
    interest_rate = Column(Numeric(8, 4), nullable=True)
    assigned_to = Column(UUID(as_uuid=True), nullable=True, index=True)
    approved_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    verifications = relationship(
        "LoanVerification", back_populates="loan_application", lazy="raise"
    )
    sanction = relationship(
        "LoanSanction", back_populates="loan_application", uselist=False, lazy="raise"
    )
    disbursement = relationship(
        "LoanDisbursement", back_populates="loan_application", uselist=False, lazy="raise"
    )
    generated_documents = relationship(
        "LoanGeneratedDocument", back_populates="loan_application", lazy="raise"
    )
