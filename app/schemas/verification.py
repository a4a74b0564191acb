from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field


class VerificationType(str, Enum):
    VIDEO_KYC = "video_kyc"
    PAN = "pan"
    AADHAAR = "aadhaar"
    BANK_ACCOUNT = "bank_account"
    EMPLOYMENT = "employment"
    BANK_STATEMENT = "bank_statement"
    CREDIT_BUREAU = "credit_bureau"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


REQUIRED_VERIFICATION_TYPES: tuple[VerificationType, ...] = tuple(VerificationType)
TERMINAL_VERIFICATION_STATUSES = frozenset({VerificationStatus.SUCCESS, VerificationStatus.FAILED})


class VerificationGate(str, Enum):
    CLEAR = "clear"
    OVERRIDE_REQUIRED = "override_required"
    BLOCKED = "blocked"


# Provider response payloads, one variant per verification type.


class _ProviderResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PanResponse(_ProviderResponse):
    verification_type: Literal["pan"] = "pan"
    name_on_pan: str | None = None
    pan_status: str | None = None
    name_match_result: str | None = None


class AadhaarResponse(_ProviderResponse):
    verification_type: Literal["aadhaar"] = "aadhaar"
    verified_address: str | None = None
    address_match_result: str | None = None
    aadhaar_status: str | None = None


class BankAccountResponse(_ProviderResponse):
    verification_type: Literal["bank_account"] = "bank_account"
    account_holder_name: str | None = None
    bank_name: str | None = None
    branch_name: str | None = None


class EmploymentResponse(_ProviderResponse):
    verification_type: Literal["employment"] = "employment"
    employer_name: str | None = None
    membership_status: str | None = None
    employer_match: str | None = None
    last_contribution_date: date | None = None


class BankStatementResponse(_ProviderResponse):
    verification_type: Literal["bank_statement"] = "bank_statement"
    statement_period_from: date | None = None
    statement_period_to: date | None = None
    average_monthly_balance: Decimal | None = None
    average_salary_amount: Decimal | None = None
    bounce_count: int | None = Field(default=None, ge=0)
    total_emi_debits: Decimal | None = None
    foir_calculated: Decimal | None = None


class CreditBureauResponse(_ProviderResponse):
    verification_type: Literal["credit_bureau"] = "credit_bureau"
    bureau_type: str | None = None
    credit_score: int | None = Field(default=None, ge=0, le=999)
    active_accounts: int | None = Field(default=None, ge=0)
    total_outstanding: Decimal | None = None
    total_overdue: Decimal | None = None
    enquiry_count_30d: int | None = Field(default=None, ge=0)
    enquiry_count_90d: int | None = Field(default=None, ge=0)
    dpd_history: str | None = None


class VideoKycResponse(_ProviderResponse):
    verification_type: Literal["video_kyc"] = "video_kyc"
    room_id: str | None = None
    recording_url: str | None = None
    stopped_at: datetime | None = None
    uploaded_at: datetime | None = None


VerificationResponsePayload = Annotated[
    Union[
        PanResponse,
        AadhaarResponse,
        BankAccountResponse,
        EmploymentResponse,
        BankStatementResponse,
        CreditBureauResponse,
        VideoKycResponse,
    ],
    Field(discriminator="verification_type"),
]

response_payload_adapter: TypeAdapter[VerificationResponsePayload] = TypeAdapter(
    VerificationResponsePayload
)


class VerificationResultSubmit(BaseModel):
    # Kept as a plain string so unknown types reach the store's own check.
    verification_type: str = Field(min_length=1, max_length=50)
    status: VerificationStatus
    source: str | None = Field(default=None, max_length=50)
    request_payload: dict[str, Any] = Field(default_factory=dict)
    response_payload: dict[str, Any] | None = None
    remarks: str | None = Field(default=None, max_length=2000)


class VerificationRecordDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_application_id: UUID
    verification_type: VerificationType
    status: VerificationStatus
    verification_source: str | None = None
    request_payload: dict[str, Any] = Field(default_factory=dict)
    response_payload: dict[str, Any] | None = None
    remarks: str | None = None
    verified_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class VerificationTypeStatus(BaseModel):
    verification_type: VerificationType
    status: VerificationStatus
    has_record: bool
    verified_at: datetime | None = None


class VerificationSummary(BaseModel):
    all_success: bool
    any_failed: bool
    all_processed: bool
    gate: VerificationGate
    items: list[VerificationTypeStatus]
    counts: dict[VerificationStatus, int]

    @computed_field
    @property
    def can_proceed(self) -> bool:
        return self.gate == VerificationGate.CLEAR

    @computed_field
    @property
    def can_proceed_with_override(self) -> bool:
        return self.gate in {VerificationGate.CLEAR, VerificationGate.OVERRIDE_REQUIRED}
