"""Stage transition engine.

The only writer of ``LoanApplication.current_stage`` and ``status``. A
transition is a single conditional UPDATE keyed on the stage the caller last
saw; the affected row count decides the outcome:

* 1 row  -> ``True``; stage, status and ``updated_at`` change, nothing else.
* 0 rows -> ``False``; another actor moved the application first (or it does
  not exist in this organization). Nothing is written.

Store errors surface as ``PersistenceFailure`` and are never folded into the
stale ``False`` outcome. The caller owns the unit of work: commit after
``True``, roll back after ``False`` or an error.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.api import deps
from app.models.loan_application import LoanApplication
from app.schemas.loan import LoanApplicationStatus, LoanStage
from app.services.audit import record_audit_log
from app.services.errors import PersistenceFailure, stale_transition


logger = logging.getLogger(__name__)


def _value(member: LoanStage | LoanApplicationStatus | str) -> str:
    return member.value if hasattr(member, "value") else str(member)


def build_transition_statement(
    org_id: str,
    application_id: UUID,
    expected_stage: LoanStage | str,
    new_stage: LoanStage | str,
    new_status: LoanApplicationStatus | str,
):
    return (
        update(LoanApplication)
        .where(
            LoanApplication.id == application_id,
            LoanApplication.org_id == org_id,
            LoanApplication.current_stage == _value(expected_stage),
        )
        .values(
            current_stage=_value(new_stage),
            status=_value(new_status),
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )


async def transition(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    expected_stage: LoanStage | str,
    new_stage: LoanStage | str,
    new_status: LoanApplicationStatus | str,
    *,
    actor_id=None,
    reason: str | None = None,
) -> bool:
    expected = _value(expected_stage)
    target = _value(new_stage)
    target_status = _value(new_status)
    log_extra = {
        "application_id": str(application_id),
        "expected_stage": expected,
        "new_stage": target,
    }

    stmt = build_transition_statement(
        ctx.org_id, application_id, expected, target, target_status
    )
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        logger.exception("Stage transition write failed", extra=log_extra)
        raise PersistenceFailure(
            code="persistence_failure",
            message="Unable to persist the stage transition",
            details={"application_id": str(application_id)},
        ) from exc

    if result.rowcount != 1:
        logger.info("Stale stage transition rejected", extra=log_extra)
        return False

    new_value = {"current_stage": target, "status": target_status}
    if reason:
        new_value["reason"] = reason
    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_application.stage_transitioned",
        resource_type="loan_application",
        resource_id=str(application_id),
        old_value={"current_stage": expected},
        new_value=new_value,
    )
    logger.info("Stage transition applied", extra=log_extra)
    return True


async def transition_or_raise(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application: LoanApplication,
    new_stage: LoanStage | str,
    new_status: LoanApplicationStatus | str,
    *,
    actor_id=None,
    reason: str | None = None,
) -> LoanApplication:
    """Transition from the stage ``application`` was loaded with.

    Raises ``StaleTransition`` when the CAS loses; on success the in-memory
    instance is brought in line with the row.
    """
    expected = application.current_stage
    applied = await transition(
        db,
        ctx,
        application.id,
        expected,
        new_stage,
        new_status,
        actor_id=actor_id,
        reason=reason,
    )
    if not applied:
        raise stale_transition(application.id, _value(expected))
    # Mirror the row without marking the instance dirty; the UPDATE above is the write.
    set_committed_value(application, "current_stage", _value(new_stage))
    set_committed_value(application, "status", _value(new_status))
    return application
