from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.disbursal import (
    DisbursalReadiness,
    DisbursalWorklistResponse,
    DisbursementCompleteRequest,
    DisbursementCreateRequest,
    DisbursementDTO,
    DisbursementFailRequest,
    DisbursementProofRequest,
)
from app.services import disbursal_readiness, disbursements

router = APIRouter(tags=["disbursals"])


@router.get(
    "/disbursals",
    response_model=DisbursalWorklistResponse,
    summary="Disbursal worklist for the org",
)
async def get_disbursal_worklist(
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    readiness: list[DisbursalReadiness] | None = Query(default=None),
) -> DisbursalWorklistResponse:
    items = await disbursal_readiness.resolve_worklist(db, ctx)
    if readiness:
        items = [item for item in items if item.readiness in readiness]
    return DisbursalWorklistResponse(items=items, total=len(items))


@router.post(
    "/loan-applications/{application_id}/disbursement",
    response_model=DisbursementDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Initiate the disbursement for a ready application",
)
async def initiate_disbursement(
    application_id: UUID,
    payload: DisbursementCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> DisbursementDTO:
    disbursement = await disbursements.initiate_disbursement(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    await db.refresh(disbursement)
    return DisbursementDTO.model_validate(disbursement)


@router.post(
    "/loan-applications/{application_id}/disbursement/complete",
    response_model=DisbursementDTO,
    summary="Record a completed transfer",
)
async def complete_disbursement(
    application_id: UUID,
    payload: DisbursementCompleteRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> DisbursementDTO:
    disbursement = await disbursements.complete_disbursement(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    return DisbursementDTO.model_validate(disbursement)


@router.post(
    "/loan-applications/{application_id}/disbursement/fail",
    response_model=DisbursementDTO,
    summary="Record a failed transfer",
)
async def fail_disbursement(
    application_id: UUID,
    payload: DisbursementFailRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> DisbursementDTO:
    disbursement = await disbursements.fail_disbursement(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    return DisbursementDTO.model_validate(disbursement)


@router.post(
    "/loan-applications/{application_id}/disbursement/proof",
    response_model=DisbursementDTO,
    summary="Attach the transfer proof document",
)
async def attach_disbursement_proof(
    application_id: UUID,
    payload: DisbursementProofRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> DisbursementDTO:
    disbursement = await disbursements.attach_proof(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    return DisbursementDTO.model_validate(disbursement)
