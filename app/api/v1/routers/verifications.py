from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.verification import (
    VerificationRecordDTO,
    VerificationResultSubmit,
    VerificationSummary,
)
from app.services import loan_applications, verification_aggregator, verification_records

router = APIRouter(prefix="/loan-applications", tags=["verifications"])


@router.put(
    "/{application_id}/verifications",
    response_model=VerificationRecordDTO,
    summary="Submit a verification result",
)
async def submit_verification_result(
    application_id: UUID,
    payload: VerificationResultSubmit,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> VerificationRecordDTO:
    record = await verification_records.submit_result(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    return VerificationRecordDTO.model_validate(record)


@router.get(
    "/{application_id}/verifications",
    response_model=list[VerificationRecordDTO],
    summary="List verification records",
)
async def list_verification_records(
    application_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> list[VerificationRecordDTO]:
    await loan_applications.get_application_or_raise(db, ctx, application_id)
    records = await verification_records.list_records(db, ctx, application_id)
    return [VerificationRecordDTO.model_validate(record) for record in records]


@router.get(
    "/{application_id}/verifications/summary",
    response_model=VerificationSummary,
    summary="Aggregate verification status",
)
async def get_verification_summary(
    application_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerificationSummary:
    await loan_applications.get_application_or_raise(db, ctx, application_id)
    return await verification_aggregator.load_summary(db, ctx, application_id)


@router.get(
    "/{application_id}/verifications/{verification_type}",
    response_model=VerificationRecordDTO,
    summary="Get the record for one verification type",
)
async def get_verification_record(
    application_id: UUID,
    verification_type: str,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> VerificationRecordDTO:
    parsed = verification_records.parse_verification_type(verification_type)
    await loan_applications.get_application_or_raise(db, ctx, application_id)
    record = await verification_records.get_record(db, ctx, application_id, parsed)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "verification_not_found", "message": "Verification record not found"},
        )
    return VerificationRecordDTO.model_validate(record)
