from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LoanStage(str, Enum):
    APPLICATION_LOGIN = "application_login"
    DOCUMENT_COLLECTION = "document_collection"
    VERIFICATION = "verification"
    CREDIT_ASSESSMENT = "credit_assessment"
    APPROVAL_PENDING = "approval_pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    # Legacy label for the sanction step; treated like SANCTIONED.
    SANCTION = "sanction"
    SANCTIONED = "sanctioned"
    DISBURSEMENT_PENDING = "disbursement_pending"
    DISBURSED = "disbursed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class LoanApplicationStatus(str, Enum):
    DRAFT = "draft"
    NEW = "new"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


TERMINAL_STAGES = frozenset({LoanStage.REJECTED, LoanStage.CLOSED, LoanStage.CANCELLED})


class LoanApplicationCreate(BaseModel):
    requested_amount: Decimal = Field(gt=0)
    tenure_days: int | None = Field(default=None, ge=1)
    assigned_to: UUID | None = None
    application_number: str | None = Field(default=None, max_length=50)


class LoanApplicationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, json_encoders={Decimal: lambda value: str(value)})

    id: UUID
    org_id: str
    application_number: str
    current_stage: LoanStage
    status: LoanApplicationStatus
    requested_amount: Decimal
    approved_amount: Decimal | None = None
    tenure_days: int | None = None
    interest_rate: Decimal | None = None
    assigned_to: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoanApplicationListResponse(BaseModel):
    items: list[LoanApplicationDTO]
    total: int


class StageTransitionRequest(BaseModel):
    expected_stage: LoanStage
    new_stage: LoanStage
    new_status: LoanApplicationStatus


class StageTransitionResponse(BaseModel):
    application_id: UUID
    transitioned: bool
    current_stage: LoanStage
    status: LoanApplicationStatus


class CreditAssessmentRequest(BaseModel):
    override_failed: bool = False
    override_reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _reason_for_override(self) -> "CreditAssessmentRequest":
        if self.override_failed and not (self.override_reason or "").strip():
            raise ValueError("override_reason is required when overriding failed verifications")
        return self


class LoanDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class LoanDecisionRequest(BaseModel):
    decision: LoanDecision
    approved_amount: Decimal | None = Field(default=None, gt=0)
    tenure_days: int | None = Field(default=None, ge=1)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    comments: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _check_terms(self) -> "LoanDecisionRequest":
        if self.decision == LoanDecision.APPROVE and self.approved_amount is None:
            raise ValueError("approved_amount is required when approving")
        if self.decision == LoanDecision.REJECT and not (self.comments or "").strip():
            raise ValueError("comments are required when rejecting")
        return self


class CancelApplicationRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)
