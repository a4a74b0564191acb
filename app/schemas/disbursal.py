from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.loan import LoanStage


class DisbursementStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DisbursalReadiness(str, Enum):
    READY = "ready"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class GeneratedDocumentType(str, Enum):
    SANCTION_LETTER = "sanction_letter"
    LOAN_AGREEMENT = "loan_agreement"
    DAILY_SCHEDULE = "daily_schedule"
    COMBINED_LOAN_PACK = "combined_loan_pack"


class SanctionStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"


class BankDetails(BaseModel):
    beneficiary_name: str | None = None
    account_number: str
    ifsc_code: str | None = None
    bank_name: str | None = None


class DisbursalWorklistItem(BaseModel):
    model_config = ConfigDict(json_encoders={Decimal: lambda value: str(value)})

    application_id: UUID
    application_number: str
    current_stage: LoanStage
    readiness: DisbursalReadiness
    amount: Decimal | None = None
    disbursement_id: UUID | None = None
    disbursement_number: str | None = None
    utr_number: str | None = None
    proof_uploaded: bool = False
    bank_details: BankDetails | None = None
    bank_details_complete: bool = False
    updated_at: datetime | None = None


class DisbursalWorklistResponse(BaseModel):
    items: list[DisbursalWorklistItem]
    total: int


class DisbursementCreateRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    payment_mode: str = Field(default="neft", max_length=20)
    bank_details: BankDetails | None = None


class DisbursementCompleteRequest(BaseModel):
    utr_number: str = Field(min_length=1, max_length=64)
    disbursement_date: date | None = None


class DisbursementFailRequest(BaseModel):
    failure_reason: str = Field(min_length=1, max_length=1000)


class DisbursementProofRequest(BaseModel):
    proof_document_path: str = Field(min_length=1, max_length=1024)


class DisbursementDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, json_encoders={Decimal: lambda value: str(value)})

    id: UUID
    loan_application_id: UUID
    disbursement_number: str
    disbursement_amount: Decimal
    payment_mode: str | None = None
    beneficiary_name: str | None = None
    account_number: str | None = None
    ifsc_code: str | None = None
    bank_name: str | None = None
    utr_number: str | None = None
    proof_uploaded: bool = False
    proof_document_path: str | None = None
    status: DisbursementStatus
    failure_reason: str | None = None
    disbursement_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SanctionCreateRequest(BaseModel):
    processing_fee: Decimal = Field(default=Decimal("0"), ge=0)
    validity_days: int | None = Field(default=None, ge=1, le=365)


class SanctionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, json_encoders={Decimal: lambda value: str(value)})

    id: UUID
    loan_application_id: UUID
    sanction_number: str
    sanctioned_amount: Decimal
    sanctioned_rate: Decimal | None = None
    sanctioned_tenure_days: int | None = None
    processing_fee: Decimal
    net_disbursement_amount: Decimal
    validity_date: date
    status: SanctionStatus
    created_at: datetime | None = None
