from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.api import deps
from app.models.loan_disbursement import LoanDisbursement
from app.schemas.disbursal import (
    DisbursalReadiness,
    DisbursementCompleteRequest,
    DisbursementCreateRequest,
    DisbursementFailRequest,
    DisbursementProofRequest,
    DisbursementStatus,
)
from app.schemas.loan import LoanApplicationStatus, LoanStage
from app.services import disbursal_readiness
from app.services.audit import model_snapshot, record_audit_log
from app.services.errors import (
    DisbursementExists,
    DisbursementNotFound,
    DisbursementNotReady,
    InvalidDisbursementState,
    InvalidStageTransition,
    PersistenceFailure,
)
from app.services.loan_applications import get_application_or_raise
from app.services.stage_transitions import transition_or_raise


logger = logging.getLogger(__name__)


DISBURSING_STAGES = (
    LoanStage.DISBURSEMENT_PENDING,
    LoanStage.SANCTIONED,
    LoanStage.SANCTION,
)

_AUDIT_EXCLUDE = {"created_at", "updated_at"}


def _disbursement_exists(application_id: UUID) -> DisbursementExists:
    return DisbursementExists(
        code="disbursement_exists",
        message="A disbursement already exists for this application",
        details={"application_id": str(application_id)},
    )


def _disbursement_number(now: datetime) -> str:
    return f"DB{int(now.timestamp() * 1000)}"


async def get_disbursement(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> LoanDisbursement | None:
    stmt = select(LoanDisbursement).where(
        LoanDisbursement.org_id == ctx.org_id,
        LoanDisbursement.loan_application_id == application_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _get_disbursement_or_raise(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> LoanDisbursement:
    disbursement = await get_disbursement(db, ctx, application_id)
    if disbursement is None:
        raise DisbursementNotFound(
            code="disbursement_not_found",
            message="Disbursement not found",
            details={"application_id": str(application_id)},
        )
    return disbursement


def _require_status(disbursement: LoanDisbursement, *allowed: DisbursementStatus) -> None:
    if disbursement.status not in {status.value for status in allowed}:
        raise InvalidDisbursementState(
            code="invalid_disbursement_state",
            message=f"Disbursement is {disbursement.status}",
            details={
                "disbursement_id": str(disbursement.id),
                "status": disbursement.status,
                "allowed": [status.value for status in allowed],
            },
        )


def build_settle_statement(
    org_id: str,
    disbursement_id: UUID,
    new_status: DisbursementStatus,
    **values,
):
    """Conditional UPDATE moving a ``pending`` disbursement to *new_status*."""
    return (
        update(LoanDisbursement)
        .where(
            LoanDisbursement.id == disbursement_id,
            LoanDisbursement.org_id == org_id,
            LoanDisbursement.status == DisbursementStatus.PENDING.value,
        )
        .values(status=new_status.value, updated_at=func.now(), **values)
        .execution_options(synchronize_session=False)
    )


async def _settle(
    db: AsyncSession,
    ctx: deps.TenantContext,
    disbursement: LoanDisbursement,
    new_status: DisbursementStatus,
    **values,
) -> None:
    """Move *disbursement* out of ``pending`` exactly once.

    Raises ``InvalidDisbursementState`` when a concurrent request settled the
    row first; the caller's unit of work is then left uncommitted.
    """
    log_extra = {"disbursement_id": str(disbursement.id), "new_status": new_status.value}
    stmt = build_settle_statement(ctx.org_id, disbursement.id, new_status, **values)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        logger.exception("Disbursement status write failed", extra=log_extra)
        raise PersistenceFailure(
            code="persistence_failure",
            message="Unable to persist the disbursement status",
            details={"disbursement_id": str(disbursement.id)},
        ) from exc

    if result.rowcount != 1:
        logger.info("Disbursement already settled", extra=log_extra)
        raise InvalidDisbursementState(
            code="invalid_disbursement_state",
            message="Disbursement was settled by another request",
            details={
                "disbursement_id": str(disbursement.id),
                "allowed": [DisbursementStatus.PENDING.value],
            },
        )
    set_committed_value(disbursement, "status", new_status.value)
    for name, value in values.items():
        set_committed_value(disbursement, name, value)


async def initiate_disbursement(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: DisbursementCreateRequest,
    *,
    actor_id=None,
) -> LoanDisbursement:
    """Open the single disbursement for an application that resolves to ``ready``."""
    application = await get_application_or_raise(db, ctx, application_id)
    item = await disbursal_readiness.resolve_application(db, ctx, application.id)
    if item is None:
        raise DisbursementNotReady(
            code="disbursement_not_ready",
            message="Application is not ready for disbursement",
            details={
                "application_id": str(application.id),
                "current_stage": application.current_stage,
            },
        )
    if item.readiness != DisbursalReadiness.READY:
        raise _disbursement_exists(application.id)

    bank_details = payload.bank_details or item.bank_details
    if not disbursal_readiness.bank_details_complete(bank_details):
        raise DisbursementNotReady(
            code="bank_details_incomplete",
            message="Beneficiary account number and IFSC code are required",
            details={"application_id": str(application.id)},
        )
    amount = payload.amount or item.amount
    if amount is None:
        raise DisbursementNotReady(
            code="disbursement_amount_missing",
            message="No disbursement amount available",
            details={"application_id": str(application.id)},
        )

    disbursement = LoanDisbursement(
        org_id=ctx.org_id,
        loan_application_id=application.id,
        disbursement_number=_disbursement_number(datetime.now(timezone.utc)),
        disbursement_amount=amount,
        payment_mode=payload.payment_mode,
        beneficiary_name=bank_details.beneficiary_name,
        account_number=bank_details.account_number,
        ifsc_code=bank_details.ifsc_code,
        bank_name=bank_details.bank_name,
        proof_uploaded=False,
        status=DisbursementStatus.PENDING.value,
    )
    db.add(disbursement)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise _disbursement_exists(application.id) from exc

    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_disbursement.initiated",
        resource_type="loan_disbursement",
        resource_id=str(disbursement.id),
        new_value=model_snapshot(disbursement, exclude=_AUDIT_EXCLUDE),
    )
    logger.info(
        "Disbursement initiated",
        extra={"application_id": str(application.id), "disbursement_id": str(disbursement.id)},
    )
    return disbursement


async def complete_disbursement(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: DisbursementCompleteRequest,
    *,
    actor_id=None,
) -> LoanDisbursement:
    disbursement = await _get_disbursement_or_raise(db, ctx, application_id)
    _require_status(disbursement, DisbursementStatus.PENDING)

    application = await get_application_or_raise(db, ctx, application_id)
    current = LoanStage(application.current_stage)
    if current not in DISBURSING_STAGES:
        raise InvalidStageTransition(
            code="invalid_stage_transition",
            message=f"Cannot disburse an application in stage {current.value}",
            details={"application_id": str(application.id), "current_stage": current.value},
        )

    old_value = model_snapshot(disbursement, exclude=_AUDIT_EXCLUDE)
    await _settle(
        db,
        ctx,
        disbursement,
        DisbursementStatus.COMPLETED,
        utr_number=payload.utr_number,
        disbursement_date=payload.disbursement_date or datetime.now(timezone.utc).date(),
    )
    await transition_or_raise(
        db,
        ctx,
        application,
        LoanStage.DISBURSED,
        LoanApplicationStatus.DISBURSED,
        actor_id=actor_id,
    )
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_disbursement.completed",
        resource_type="loan_disbursement",
        resource_id=str(disbursement.id),
        old_value=old_value,
        new_value=model_snapshot(disbursement, exclude=_AUDIT_EXCLUDE),
    )
    return disbursement


async def fail_disbursement(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: DisbursementFailRequest,
    *,
    actor_id=None,
) -> LoanDisbursement:
    disbursement = await _get_disbursement_or_raise(db, ctx, application_id)
    _require_status(disbursement, DisbursementStatus.PENDING)

    await _settle(
        db,
        ctx,
        disbursement,
        DisbursementStatus.FAILED,
        failure_reason=payload.failure_reason,
    )
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_disbursement.failed",
        resource_type="loan_disbursement",
        resource_id=str(disbursement.id),
        old_value={"status": DisbursementStatus.PENDING.value},
        new_value={"status": disbursement.status, "failure_reason": payload.failure_reason},
    )
    logger.warning(
        "Disbursement failed",
        extra={"application_id": str(application_id), "disbursement_id": str(disbursement.id)},
    )
    return disbursement


async def attach_proof(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: DisbursementProofRequest,
    *,
    actor_id=None,
) -> LoanDisbursement:
    disbursement = await _get_disbursement_or_raise(db, ctx, application_id)
    _require_status(disbursement, DisbursementStatus.PENDING, DisbursementStatus.COMPLETED)

    disbursement.proof_uploaded = True
    disbursement.proof_document_path = payload.proof_document_path
    disbursement.proof_uploaded_at = datetime.now(timezone.utc)
    disbursement.proof_uploaded_by = actor_id
    db.add(disbursement)
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_disbursement.proof_attached",
        resource_type="loan_disbursement",
        resource_id=str(disbursement.id),
        new_value={"proof_document_path": payload.proof_document_path},
    )
    return disbursement
