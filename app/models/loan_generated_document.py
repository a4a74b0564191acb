import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base


class LoanGeneratedDocument(Base):
    """Signed-state of generated loan documents.

    Owned by the document service; this backend only reads it.
    """

    __tablename__ = "loan_generated_documents"
    __allow_unmapped__ = True
    __table_args__ = (
        Index(
            "ix_loan_generated_documents_app_type",
            "loan_application_id",
            "document_type",
        ),
        Index("ix_loan_generated_documents_org_id", "org_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(String, nullable=False)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_type = Column(String(50), nullable=False)
    customer_signed = Column(Boolean, nullable=False, default=False)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan_application = relationship(
        "LoanApplication", back_populates="generated_documents", lazy="raise"
    )
