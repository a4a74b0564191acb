"""Loan applications, verifications, sanctions, disbursements and audit logs"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_loan_lifecycle"
down_revision = None
branch_labels = None
depends_on = None


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
VERIFICATION_TYPES = (
    "video_kyc",
    "pan",
    "aadhaar",
    "bank_account",
    "employment",
    "bank_statement",
    "credit_bureau",
)


def _in(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN ({', '.join(repr(value) for value in values)})"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _application_fk() -> sa.Column:
    return sa.Column(
        "loan_application_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "loan_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("application_number", sa.String(length=50), nullable=False),
        sa.Column("current_stage", sa.String(length=40), nullable=False, server_default="application_login"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
        sa.Column("requested_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("approved_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("tenure_days", sa.Integer(), nullable=True),
        sa.Column("interest_rate", sa.Numeric(8, 4), nullable=True),
        sa.Column("assigned_to", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(_in("current_stage", LOAN_STAGES), name="ck_loan_app_stage"),
        sa.CheckConstraint(_in("status", LOAN_STATUSES), name="ck_loan_app_status"),
        sa.CheckConstraint("requested_amount >= 0", name="ck_loan_app_requested_nonneg"),
        sa.CheckConstraint(
            "approved_amount IS NULL OR approved_amount >= 0", name="ck_loan_app_approved_nonneg"
        ),
        sa.UniqueConstraint("org_id", "application_number", name="uq_loan_app_org_number"),
    )
    op.create_index("ix_loan_applications_org_id", "loan_applications", ["org_id"])
    op.create_index("ix_loan_applications_assigned_to", "loan_applications", ["assigned_to"])
    op.create_index("ix_loan_applications_org_stage", "loan_applications", ["org_id", "current_stage"])

    op.create_table(
        "loan_verifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        _application_fk(),
        sa.Column("verification_type", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("verification_source", sa.String(length=50), nullable=True),
        sa.Column(
            "request_payload",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("response_payload", postgresql.JSONB(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(_in("verification_type", VERIFICATION_TYPES), name="ck_loan_verification_type"),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'success', 'failed')",
            name="ck_loan_verification_status",
        ),
        sa.UniqueConstraint(
            "loan_application_id", "verification_type", name="uq_loan_verification_app_type"
        ),
    )
    op.create_index("ix_loan_verifications_org_id", "loan_verifications", ["org_id"])
    op.create_index(
        "ix_loan_verifications_loan_application_id", "loan_verifications", ["loan_application_id"]
    )

    op.create_table(
        "loan_sanctions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        _application_fk(),
        sa.Column("sanction_number", sa.String(length=50), nullable=False),
        sa.Column("sanctioned_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("sanctioned_rate", sa.Numeric(8, 4), nullable=True),
        sa.Column("sanctioned_tenure_days", sa.Integer(), nullable=True),
        sa.Column("processing_fee", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("net_disbursement_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("validity_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("signed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'signed')", name="ck_loan_sanction_status"),
        sa.CheckConstraint("sanctioned_amount >= 0", name="ck_loan_sanction_amount_nonneg"),
        sa.CheckConstraint("processing_fee >= 0", name="ck_loan_sanction_fee_nonneg"),
        sa.UniqueConstraint("loan_application_id", name="uq_loan_sanctions_loan_application_id"),
    )
    op.create_index("ix_loan_sanctions_org_id", "loan_sanctions", ["org_id"])

    op.create_table(
        "loan_disbursements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        _application_fk(),
        sa.Column("disbursement_number", sa.String(length=50), nullable=False),
        sa.Column("disbursement_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("payment_mode", sa.String(length=20), nullable=True),
        sa.Column("beneficiary_name", sa.String(length=255), nullable=True),
        sa.Column("account_number", sa.String(length=34), nullable=True),
        sa.Column("ifsc_code", sa.String(length=11), nullable=True),
        sa.Column("bank_name", sa.String(length=255), nullable=True),
        sa.Column("utr_number", sa.String(length=64), nullable=True),
        sa.Column("proof_uploaded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("proof_document_path", sa.String(length=1024), nullable=True),
        sa.Column("proof_uploaded_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("proof_uploaded_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("disbursement_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_loan_disbursement_status"
        ),
        sa.CheckConstraint("disbursement_amount > 0", name="ck_loan_disbursement_amount_positive"),
        sa.UniqueConstraint(
            "loan_application_id", name="uq_loan_disbursements_loan_application_id"
        ),
    )
    op.create_index("ix_loan_disbursements_org_id", "loan_disbursements", ["org_id"])
    op.create_index("ix_loan_disbursements_org_status", "loan_disbursements", ["org_id", "status"])

    op.create_table(
        "loan_generated_documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        _application_fk(),
        sa.Column("document_type", sa.String(length=50), nullable=False),
        sa.Column("customer_signed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("signed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_loan_generated_documents_org_id", "loan_generated_documents", ["org_id"])
    op.create_index(
        "ix_loan_generated_documents_app_type",
        "loan_generated_documents",
        ["loan_application_id", "document_type"],
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("org_id", sa.String(), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=255), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_org_id", "audit_logs", ["org_id"])
    op.create_index("ix_audit_logs_resource_id", "audit_logs", ["resource_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_resource_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_org_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_loan_generated_documents_app_type", table_name="loan_generated_documents")
    op.drop_index("ix_loan_generated_documents_org_id", table_name="loan_generated_documents")
    op.drop_table("loan_generated_documents")
    op.drop_index("ix_loan_disbursements_org_status", table_name="loan_disbursements")
    op.drop_index("ix_loan_disbursements_org_id", table_name="loan_disbursements")
    op.drop_table("loan_disbursements")
    op.drop_index("ix_loan_sanctions_org_id", table_name="loan_sanctions")
    op.drop_table("loan_sanctions")
    op.drop_index("ix_loan_verifications_loan_application_id", table_name="loan_verifications")
    op.drop_index("ix_loan_verifications_org_id", table_name="loan_verifications")
    op.drop_table("loan_verifications")
    op.drop_index("ix_loan_applications_org_stage", table_name="loan_applications")
    op.drop_index("ix_loan_applications_assigned_to", table_name="loan_applications")
    op.drop_index("ix_loan_applications_org_id", table_name="loan_applications")
    op.drop_table("loan_applications")
