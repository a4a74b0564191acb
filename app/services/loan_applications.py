from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.loan_application import LoanApplication
from app.schemas.loan import LoanApplicationCreate, LoanApplicationStatus, LoanStage
from app.services.audit import model_snapshot, record_audit_log
from app.services.errors import DuplicateApplication, application_not_found


def _generate_application_number() -> str:
    now = datetime.now(timezone.utc)
    return f"LA{now:%Y%m%d}{uuid4().hex[:6].upper()}"


async def create_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    payload: LoanApplicationCreate,
    *,
    actor_id=None,
) -> LoanApplication:
    """Intake. The only write that sets ``current_stage``/``status`` directly."""
    application = LoanApplication(
        id=uuid4(),
        org_id=ctx.org_id,
        application_number=payload.application_number or _generate_application_number(),
        current_stage=LoanStage.APPLICATION_LOGIN.value,
        status=LoanApplicationStatus.DRAFT.value,
        requested_amount=payload.requested_amount,
        tenure_days=payload.tenure_days,
        assigned_to=payload.assigned_to or actor_id,
    )
    db.add(application)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateApplication(
            code="duplicate_application_number",
            message="Application number already exists",
            details={"application_number": application.application_number},
        ) from exc
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_application.created",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value=None,
        new_value=model_snapshot(application, exclude={"created_at", "updated_at"}),
    )
    return application


async def get_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> LoanApplication | None:
    stmt = select(LoanApplication).where(
        LoanApplication.id == application_id,
        LoanApplication.org_id == ctx.org_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_application_or_raise(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> LoanApplication:
    application = await get_application(db, ctx, application_id)
    if application is None:
        raise application_not_found(application_id)
    return application


async def list_applications(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    stages: list[LoanStage] | None = None,
    assigned_to: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[LoanApplication], int]:
    conditions = [LoanApplication.org_id == ctx.org_id]
    if stages:
        conditions.append(LoanApplication.current_stage.in_([stage.value for stage in stages]))
    if assigned_to:
        conditions.append(LoanApplication.assigned_to == assigned_to)

    count_stmt = select(func.count()).select_from(LoanApplication).where(*conditions)
    total = int((await db.execute(count_stmt)).scalar_one())

    stmt = (
        select(LoanApplication)
        .where(*conditions)
        .order_by(LoanApplication.updated_at.desc(), LoanApplication.id)
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total
