from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.settings import settings
from app.models.loan_sanction import LoanSanction
from app.schemas.disbursal import SanctionCreateRequest, SanctionStatus
from app.schemas.loan import LoanApplicationStatus, LoanStage
from app.services.audit import model_snapshot, record_audit_log
from app.services.errors import (
    InvalidStageTransition,
    SanctionExists,
    SanctionNotFound,
)
from app.services.loan_applications import get_application_or_raise
from app.services.stage_transitions import transition_or_raise


SANCTION_STAGES = (LoanStage.SANCTIONED, LoanStage.SANCTION)


def _sanction_exists(application_id: UUID) -> SanctionExists:
    return SanctionExists(
        code="sanction_exists",
        message="A sanction already exists for this application",
        details={"application_id": str(application_id)},
    )


def _sanction_number(now: datetime) -> str:
    return f"SL{int(now.timestamp() * 1000)}"


async def get_sanction(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> LoanSanction | None:
    stmt = select(LoanSanction).where(
        LoanSanction.org_id == ctx.org_id,
        LoanSanction.loan_application_id == application_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_sanction(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: SanctionCreateRequest,
    *,
    actor_id=None,
) -> LoanSanction:
    application = await get_application_or_raise(db, ctx, application_id)
    current = LoanStage(application.current_stage)
    if current not in SANCTION_STAGES:
        raise InvalidStageTransition(
            code="invalid_stage_transition",
            message=f"Cannot sanction an application in stage {current.value}",
            details={"application_id": str(application.id), "current_stage": current.value},
        )
    if application.approved_amount is None:
        raise InvalidStageTransition(
            code="approval_terms_missing",
            message="Application has no approved amount",
            details={"application_id": str(application.id)},
        )
    if await get_sanction(db, ctx, application.id) is not None:
        raise _sanction_exists(application.id)

    approved_amount = Decimal(application.approved_amount)
    processing_fee = payload.processing_fee or Decimal("0")
    net_amount = approved_amount - processing_fee
    if net_amount <= 0:
        raise InvalidStageTransition(
            code="invalid_processing_fee",
            message="Processing fee must be lower than the approved amount",
            details={
                "approved_amount": str(approved_amount),
                "processing_fee": str(processing_fee),
            },
        )

    now = datetime.now(timezone.utc)
    validity_days = payload.validity_days or settings.sanction_validity_days
    sanction = LoanSanction(
        org_id=ctx.org_id,
        loan_application_id=application.id,
        sanction_number=_sanction_number(now),
        sanctioned_amount=approved_amount,
        sanctioned_rate=application.interest_rate,
        sanctioned_tenure_days=application.tenure_days,
        processing_fee=processing_fee,
        net_disbursement_amount=net_amount,
        validity_date=(now + timedelta(days=validity_days)).date(),
        status=SanctionStatus.PENDING.value,
    )
    db.add(sanction)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise _sanction_exists(application.id) from exc

    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_sanction.created",
        resource_type="loan_sanction",
        resource_id=str(sanction.id),
        new_value=model_snapshot(sanction, exclude={"created_at", "updated_at"}),
    )
    await transition_or_raise(
        db,
        ctx,
        application,
        LoanStage.DISBURSEMENT_PENDING,
        LoanApplicationStatus.APPROVED,
        actor_id=actor_id,
    )
    return sanction


async def mark_signed(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    *,
    actor_id=None,
) -> LoanSanction:
    sanction = await get_sanction(db, ctx, application_id)
    if sanction is None:
        raise SanctionNotFound(
            code="sanction_not_found",
            message="Sanction not found",
            details={"application_id": str(application_id)},
        )
    if sanction.status == SanctionStatus.SIGNED.value:
        return sanction

    sanction.status = SanctionStatus.SIGNED.value
    sanction.signed_at = datetime.now(timezone.utc)
    db.add(sanction)
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_sanction.signed",
        resource_type="loan_sanction",
        resource_id=str(sanction.id),
        old_value={"status": SanctionStatus.PENDING.value},
        new_value={"status": sanction.status, "signed_at": sanction.signed_at},
    )
    return sanction
