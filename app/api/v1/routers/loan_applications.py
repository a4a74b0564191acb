from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.loan import (
    CancelApplicationRequest,
    CreditAssessmentRequest,
    LoanApplicationCreate,
    LoanApplicationDTO,
    LoanApplicationListResponse,
    LoanDecisionRequest,
    LoanStage,
    StageTransitionRequest,
    StageTransitionResponse,
)
from app.services import loan_applications, loan_workflow, stage_transitions
from app.services.errors import stale_transition

router = APIRouter(prefix="/loan-applications", tags=["loan-applications"])


@router.post(
    "",
    response_model=LoanApplicationDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Create a loan application",
)
async def create_loan_application(
    payload: LoanApplicationCreate,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> LoanApplicationDTO:
    application = await loan_applications.create_application(
        db, ctx, payload, actor_id=actor_id
    )
    await db.commit()
    await db.refresh(application)
    return LoanApplicationDTO.model_validate(application)


@router.get(
    "",
    response_model=LoanApplicationListResponse,
    summary="List loan applications for the org",
)
async def list_loan_applications(
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    stage: list[LoanStage] | None = Query(default=None),
    assigned_to: UUID | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> LoanApplicationListResponse:
    items, total = await loan_applications.list_applications(
        db,
        ctx,
        stages=stage,
        assigned_to=assigned_to,
        limit=limit,
        offset=offset,
    )
    return LoanApplicationListResponse(
        items=[LoanApplicationDTO.model_validate(item) for item in items],
        total=total,
    )


@router.get(
    "/{application_id}",
    response_model=LoanApplicationDTO,
    summary="Get loan application detail",
)
async def get_loan_application(
    application_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> LoanApplicationDTO:
    application = await loan_applications.get_application_or_raise(db, ctx, application_id)
    return LoanApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/transition",
    response_model=StageTransitionResponse,
    summary="Move an application from the stage the caller last saw",
)
async def transition_loan_application(
    application_id: UUID,
    payload: StageTransitionRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> StageTransitionResponse:
    applied = await stage_transitions.transition(
        db,
        ctx,
        application_id,
        payload.expected_stage,
        payload.new_stage,
        payload.new_status,
        actor_id=actor_id,
    )
    if not applied:
        await db.rollback()
        # 404 for unknown ids, 409 for a lost race.
        await loan_applications.get_application_or_raise(db, ctx, application_id)
        raise stale_transition(application_id, payload.expected_stage.value)
    await db.commit()
    return StageTransitionResponse(
        application_id=application_id,
        transitioned=True,
        current_stage=payload.new_stage,
        status=payload.new_status,
    )


@router.post(
    "/{application_id}/advance",
    response_model=LoanApplicationDTO,
    summary="Advance along an ungated forward step",
)
async def advance_loan_application(
    application_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> LoanApplicationDTO:
    application = await loan_applications.get_application_or_raise(db, ctx, application_id)
    application = await loan_workflow.advance_stage(db, ctx, application, actor_id=actor_id)
    await db.commit()
    return LoanApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/credit-assessment",
    response_model=LoanApplicationDTO,
    summary="Move to credit assessment once verifications allow it",
)
async def move_to_credit_assessment(
    application_id: UUID,
    payload: CreditAssessmentRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> LoanApplicationDTO:
    application = await loan_workflow.move_to_credit_assessment(
        db,
        ctx,
        application_id,
        override_failed=payload.override_failed,
        override_reason=payload.override_reason,
        actor_id=actor_id,
    )
    await db.commit()
    return LoanApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/submit-for-approval",
    response_model=LoanApplicationDTO,
    summary="Send a credit-assessed application for approval",
)
async def submit_for_approval(
    application_id: UUID,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> LoanApplicationDTO:
    application = await loan_workflow.submit_for_approval(
        db, ctx, application_id, actor_id=actor_id
    )
    await db.commit()
    return LoanApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/decision",
    response_model=LoanApplicationDTO,
    summary="Approve or reject an application",
)
async def record_decision(
    application_id: UUID,
    payload: LoanDecisionRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> LoanApplicationDTO:
    application = await loan_workflow.record_decision(
        db, ctx, application_id, payload, actor_id=actor_id
    )
    await db.commit()
    return LoanApplicationDTO.model_validate(application)


@router.post(
    "/{application_id}/cancel",
    response_model=LoanApplicationDTO,
    summary="Cancel a non-terminal application",
)
async def cancel_loan_application(
    application_id: UUID,
    payload: CancelApplicationRequest,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
    actor_id: UUID | None = Depends(deps.get_actor_id),
) -> LoanApplicationDTO:
    application = await loan_workflow.cancel_application(
        db, ctx, application_id, reason=payload.reason, actor_id=actor_id
    )
    await db.commit()
    return LoanApplicationDTO.model_validate(application)
