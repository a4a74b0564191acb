from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.loan_application import LoanApplication
from app.schemas.loan import (
    TERMINAL_STAGES,
    LoanApplicationStatus,
    LoanDecision,
    LoanDecisionRequest,
    LoanStage,
)
from app.schemas.verification import VerificationGate, VerificationStatus
from app.services import verification_aggregator
from app.services.audit import record_audit_log
from app.services.errors import InvalidStageTransition, VerificationGateClosed
from app.services.loan_applications import get_application_or_raise
from app.services.stage_transitions import transition_or_raise


logger = logging.getLogger(__name__)


FORWARD_PATH: dict[LoanStage, tuple[LoanStage, LoanApplicationStatus]] = {
    LoanStage.APPLICATION_LOGIN: (LoanStage.DOCUMENT_COLLECTION, LoanApplicationStatus.NEW),
    LoanStage.DOCUMENT_COLLECTION: (LoanStage.VERIFICATION, LoanApplicationStatus.IN_PROGRESS),
    LoanStage.VERIFICATION: (LoanStage.CREDIT_ASSESSMENT, LoanApplicationStatus.IN_PROGRESS),
    LoanStage.CREDIT_ASSESSMENT: (LoanStage.APPROVAL_PENDING, LoanApplicationStatus.IN_PROGRESS),
    LoanStage.APPROVED: (LoanStage.SANCTIONED, LoanApplicationStatus.APPROVED),
    LoanStage.SANCTION: (LoanStage.DISBURSEMENT_PENDING, LoanApplicationStatus.APPROVED),
    LoanStage.SANCTIONED: (LoanStage.DISBURSEMENT_PENDING, LoanApplicationStatus.APPROVED),
    LoanStage.DISBURSEMENT_PENDING: (LoanStage.DISBURSED, LoanApplicationStatus.DISBURSED),
    LoanStage.DISBURSED: (LoanStage.CLOSED, LoanApplicationStatus.CLOSED),
}

# Steps with no gate of their own; the rest go through a dedicated operation.
UNCONDITIONAL_STAGES = (
    LoanStage.APPLICATION_LOGIN,
    LoanStage.DOCUMENT_COLLECTION,
    LoanStage.APPROVED,
    LoanStage.DISBURSED,
)


def next_stage(stage: LoanStage | str) -> tuple[LoanStage, LoanApplicationStatus] | None:
    return FORWARD_PATH.get(LoanStage(stage))


def _require_stage(application: LoanApplication, *allowed: LoanStage) -> LoanStage:
    current = LoanStage(application.current_stage)
    if current not in allowed:
        raise InvalidStageTransition(
            code="invalid_stage_transition",
            message=f"Operation not allowed from stage {current.value}",
            details={
                "application_id": str(application.id),
                "current_stage": current.value,
                "allowed_stages": [stage.value for stage in allowed],
            },
        )
    return current


async def advance_stage(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: LoanApplication,
    *,
    actor_id=None,
) -> LoanApplication:
    current = _require_stage(application, *UNCONDITIONAL_STAGES)
    target_stage, target_status = FORWARD_PATH[current]
    return await transition_or_raise(
        db, ctx, application, target_stage, target_status, actor_id=actor_id
    )


async def move_to_credit_assessment(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    *,
    override_failed: bool = False,
    override_reason: str | None = None,
    actor_id=None,
) -> LoanApplication:
    """Leave verification once every check has been processed.

    Failed checks block the move unless explicitly overridden with a reason.
    """
    application = await get_application_or_raise(db, ctx, application_id)
    _require_stage(application, LoanStage.VERIFICATION)

    summary = await verification_aggregator.load_summary(db, ctx, application.id)
    overriding = summary.gate == VerificationGate.OVERRIDE_REQUIRED
    if summary.gate == VerificationGate.BLOCKED or (overriding and not override_failed):
        outstanding = [
            item.verification_type.value
            for item in summary.items
            if item.status != VerificationStatus.SUCCESS
        ]
        raise VerificationGateClosed(
            code="verification_gate_closed",
            message=(
                "Some verifications have failed"
                if overriding
                else "Verifications are still pending"
            ),
            details={
                "application_id": str(application.id),
                "gate": summary.gate.value,
                "outstanding": outstanding,
            },
        )
    if overriding and not (override_reason or "").strip():
        raise VerificationGateClosed(
            code="override_reason_required",
            message="A reason is required to override failed verifications",
            details={"application_id": str(application.id)},
        )

    reason = override_reason if overriding else None
    if overriding:
        logger.warning(
            "Failed verifications overridden",
            extra={"application_id": str(application.id)},
        )
    return await transition_or_raise(
        db,
        ctx,
        application,
        LoanStage.CREDIT_ASSESSMENT,
        LoanApplicationStatus.IN_PROGRESS,
        actor_id=actor_id,
        reason=reason,
    )


async def submit_for_approval(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    *,
    actor_id=None,
) -> LoanApplication:
    application = await get_application_or_raise(db, ctx, application_id)
    _require_stage(application, LoanStage.CREDIT_ASSESSMENT)
    return await transition_or_raise(
        db,
        ctx,
        application,
        LoanStage.APPROVAL_PENDING,
        LoanApplicationStatus.IN_PROGRESS,
        actor_id=actor_id,
    )


async def record_decision(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: LoanDecisionRequest,
    *,
    actor_id=None,
) -> LoanApplication:
    application = await get_application_or_raise(db, ctx, application_id)
    _require_stage(application, LoanStage.APPROVAL_PENDING)

    if payload.decision == LoanDecision.REJECT:
        await transition_or_raise(
            db,
            ctx,
            application,
            LoanStage.REJECTED,
            LoanApplicationStatus.REJECTED,
            actor_id=actor_id,
            reason=payload.comments,
        )
        record_audit_log(
            db,
            ctx,
            actor_id=actor_id,
            action="loan_application.rejected",
            resource_type="loan_application",
            resource_id=str(application.id),
            new_value={"comments": payload.comments},
        )
        return application

    await transition_or_raise(
        db,
        ctx,
        application,
        LoanStage.SANCTIONED,
        LoanApplicationStatus.APPROVED,
        actor_id=actor_id,
        reason=payload.comments,
    )
    old_terms = {
        "approved_amount": application.approved_amount,
        "tenure_days": application.tenure_days,
        "interest_rate": application.interest_rate,
    }
    application.approved_amount = payload.approved_amount
    if payload.tenure_days is not None:
        application.tenure_days = payload.tenure_days
    if payload.interest_rate is not None:
        application.interest_rate = payload.interest_rate
    application.approved_by = actor_id
    db.add(application)
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_application.approved",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value=old_terms,
        new_value={
            "approved_amount": application.approved_amount,
            "tenure_days": application.tenure_days,
            "interest_rate": application.interest_rate,
            "comments": payload.comments,
        },
    )
    return application


async def cancel_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    *,
    reason: str,
    actor_id=None,
) -> LoanApplication:
    application = await get_application_or_raise(db, ctx, application_id)
    current = LoanStage(application.current_stage)
    if current in TERMINAL_STAGES:
        raise InvalidStageTransition(
            code="invalid_stage_transition",
            message=f"Application is already {current.value}",
            details={"application_id": str(application.id), "current_stage": current.value},
        )
    return await transition_or_raise(
        db,
        ctx,
        application,
        LoanStage.CANCELLED,
        LoanApplicationStatus.CANCELLED,
        actor_id=actor_id,
        reason=reason,
    )
