from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.loan_application import LoanApplication
from app.models.loan_verification import LoanVerification
from app.schemas.verification import (
    TERMINAL_VERIFICATION_STATUSES,
    VerificationResultSubmit,
    VerificationType,
    response_payload_adapter,
)
from app.services.audit import record_audit_log
from app.services.errors import (
    InvalidVerificationPayload,
    InvalidVerificationType,
    PersistenceFailure,
    application_not_found,
)
from app.services.org_scoping import apply_org_filter


logger = logging.getLogger(__name__)


def parse_verification_type(value: str | VerificationType) -> VerificationType:
    if isinstance(value, VerificationType):
        return value
    try:
        return VerificationType(value)
    except ValueError as exc:
        logger.warning(
            "Rejected unknown verification type",
            extra={"verification_type": str(value)},
        )
        raise InvalidVerificationType(
            code="invalid_verification_type",
            message=f"Unknown verification type: {value}",
            details={
                "verification_type": str(value),
                "allowed": [member.value for member in VerificationType],
            },
        ) from exc


def _validation_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]


def validate_response_payload(
    verification_type: VerificationType,
    payload: dict[str, Any] | None,
) -> dict[str, Any] | None:
    """Check a provider response against the variant for its type.

    Returns the JSON-ready payload without the type tag, which already lives
    on the record.
    """
    if payload is None:
        return None
    data = dict(payload)
    tag = data.setdefault("verification_type", verification_type.value)
    if tag != verification_type.value:
        raise InvalidVerificationPayload(
            code="invalid_verification_payload",
            message="Response payload does not match the verification type",
            details={"verification_type": verification_type.value, "payload_type": tag},
        )
    try:
        parsed = response_payload_adapter.validate_python(data)
    except ValidationError as exc:
        raise InvalidVerificationPayload(
            code="invalid_verification_payload",
            message=f"Invalid response payload for {verification_type.value}",
            details={
                "verification_type": verification_type.value,
                "errors": _validation_errors(exc),
            },
        ) from exc
    return parsed.model_dump(mode="json", exclude={"verification_type"})


async def _ensure_application(
    db: AsyncSession, ctx: deps.TenantContext, application_id: UUID
) -> None:
    stmt = select(LoanApplication).where(
        LoanApplication.id == application_id,
        LoanApplication.org_id == ctx.org_id,
    )
    result = await db.execute(stmt)
    if result.scalar_one_or_none() is None:
        raise application_not_found(application_id)


def build_upsert_statement(
    ctx: deps.TenantContext,
    application_id: UUID,
    verification_type: VerificationType,
    payload: VerificationResultSubmit,
    response_payload: dict[str, Any] | None,
    *,
    now: datetime,
):
    verified_at = now if payload.status in TERMINAL_VERIFICATION_STATUSES else None
    stmt = pg_insert(LoanVerification).values(
        id=uuid4(),
        org_id=ctx.org_id,
        loan_application_id=application_id,
        verification_type=verification_type.value,
        status=payload.status.value,
        verification_source=payload.source,
        request_payload=payload.request_payload or {},
        response_payload=response_payload,
        remarks=payload.remarks,
        verified_at=verified_at,
    )
    return (
        stmt.on_conflict_do_update(
            constraint="uq_loan_verification_app_type",
            set_={
                "status": stmt.excluded.status,
                "verification_source": stmt.excluded.verification_source,
                "request_payload": stmt.excluded.request_payload,
                "response_payload": stmt.excluded.response_payload,
                "remarks": stmt.excluded.remarks,
                "verified_at": stmt.excluded.verified_at,
                "updated_at": func.now(),
            },
            # Same application, different organization: leave the row alone.
            where=LoanVerification.org_id == ctx.org_id,
        )
        .returning(LoanVerification)
        .execution_options(populate_existing=True)
    )


async def submit_result(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    payload: VerificationResultSubmit,
    *,
    actor_id=None,
) -> LoanVerification:
    """Create or update the record for ``(application, verification_type)``.

    The type is checked before any storage access. Re-submitting a type
    updates the existing row in place.
    """
    verification_type = parse_verification_type(payload.verification_type)
    response_payload = validate_response_payload(verification_type, payload.response_payload)

    await _ensure_application(db, ctx, application_id)

    stmt = build_upsert_statement(
        ctx,
        application_id,
        verification_type,
        payload,
        response_payload,
        now=datetime.now(timezone.utc),
    )
    log_extra = {
        "application_id": str(application_id),
        "verification_type": verification_type.value,
    }
    try:
        result = await db.execute(stmt)
        record = result.scalar_one()
    except SQLAlchemyError as exc:
        logger.exception("Verification upsert failed", extra=log_extra)
        raise PersistenceFailure(
            code="persistence_failure",
            message="Unable to store the verification result",
            details={"application_id": str(application_id)},
        ) from exc

    record_audit_log(
        db,
        ctx,
        actor_id=actor_id,
        action="loan_verification.upserted",
        resource_type="loan_verification",
        resource_id=str(record.id),
        new_value={
            "loan_application_id": str(application_id),
            "verification_type": verification_type.value,
            "status": payload.status.value,
            "verification_source": payload.source,
        },
    )
    logger.info("Verification result stored", extra=log_extra)
    return record


async def list_records(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> list[LoanVerification]:
    stmt = apply_org_filter(
        select(LoanVerification).where(LoanVerification.loan_application_id == application_id),
        ctx.org_id,
        LoanVerification.org_id,
    ).order_by(LoanVerification.verification_type)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_record(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
    verification_type: VerificationType,
) -> LoanVerification | None:
    stmt = select(LoanVerification).where(
        LoanVerification.org_id == ctx.org_id,
        LoanVerification.loan_application_id == application_id,
        LoanVerification.verification_type == verification_type.value,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
