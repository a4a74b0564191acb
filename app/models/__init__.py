from app.models.audit_log import AuditLog
from app.models.loan_application import LoanApplication
from app.models.loan_disbursement import LoanDisbursement
from app.models.loan_generated_document import LoanGeneratedDocument
from app.models.loan_sanction import LoanSanction
from app.models.loan_verification import LoanVerification

__all__ = [
    "AuditLog",
    "LoanApplication",
    "LoanDisbursement",
    "LoanGeneratedDocument",
    "LoanSanction",
    "LoanVerification",
]
