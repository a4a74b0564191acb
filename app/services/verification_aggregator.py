"""Verification status aggregation.

Folds the per-type verification records of one application into the three
flags the workflow gates on. Types with no record count as ``pending``. The
result is recomputed from storage on every read.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.loan_verification import LoanVerification
from app.schemas.verification import (
    REQUIRED_VERIFICATION_TYPES,
    TERMINAL_VERIFICATION_STATUSES,
    VerificationGate,
    VerificationStatus,
    VerificationSummary,
    VerificationTypeStatus,
)
from app.services import verification_records


def _gate_for(all_success: bool, all_processed: bool, any_failed: bool) -> VerificationGate:
    if all_success:
        return VerificationGate.CLEAR
    if all_processed and any_failed:
        return VerificationGate.OVERRIDE_REQUIRED
    return VerificationGate.BLOCKED


def summarize(records: Iterable[LoanVerification]) -> VerificationSummary:
    by_type = {}
    for record in records:
        by_type[record.verification_type] = record

    items: list[VerificationTypeStatus] = []
    for verification_type in REQUIRED_VERIFICATION_TYPES:
        record = by_type.get(verification_type.value)
        if record is None:
            items.append(
                VerificationTypeStatus(
                    verification_type=verification_type,
                    status=VerificationStatus.PENDING,
                    has_record=False,
                )
            )
            continue
        items.append(
            VerificationTypeStatus(
                verification_type=verification_type,
                status=VerificationStatus(record.status),
                has_record=True,
                verified_at=record.verified_at,
            )
        )

    statuses = [item.status for item in items]
    all_success = all(value == VerificationStatus.SUCCESS for value in statuses)
    any_failed = any(value == VerificationStatus.FAILED for value in statuses)
    all_processed = all(value in TERMINAL_VERIFICATION_STATUSES for value in statuses)
    counts = {member: statuses.count(member) for member in VerificationStatus}

    return VerificationSummary(
        all_success=all_success,
        any_failed=any_failed,
        all_processed=all_processed,
        gate=_gate_for(all_success, all_processed, any_failed),
        items=items,
        counts=counts,
    )


async def load_summary(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> VerificationSummary:
    records = await verification_records.list_records(db, ctx, application_id)
    return summarize(records)
