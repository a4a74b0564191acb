from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.disbursal import SanctionCreateRequest, SanctionDTO
from app.services import sanctions

router = APIRouter(prefix="/loan-applications", tags=["sanctions"])


@router.post(
    "/{application_id}/sanction",
    response_model=SanctionDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create the sanction for an approved application",
)
async def create_sanction(
    application_id: UUID,
    payload: SanctionCreateRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> SanctionDTO:
    sanction = await sanctions.create_sanction(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    await db.refresh(sanction)
    return SanctionDTO.model_validate(sanction)


@router.post(
    "/{application_id}/sanction/sign",
    response_model=SanctionDTO,
    summary="Mark the sanction as signed",
)
async def sign_sanction(
    application_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> SanctionDTO:
    sanction = await sanctions.mark_signed(db, ctx, application_id, actor_id=actor_id)
    await db.commit()
    return SanctionDTO.model_validate(sanction)
