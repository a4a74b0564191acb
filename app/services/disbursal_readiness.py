"""Disbursal readiness resolver.

Readiness is never stored. It is derived on each read from three sources:

* the application stage (sanction step reached),
* the signed state of generated loan documents,
* the disbursement row, if one exists.

Applications without a disbursement that pass the stage and signature checks
are ``ready``. Applications with a disbursement report that row's status
verbatim. No application can appear in both groups.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.loan_application import LoanApplication
from app.models.loan_disbursement import LoanDisbursement
from app.models.loan_generated_document import LoanGeneratedDocument
from app.models.loan_sanction import LoanSanction
from app.models.loan_verification import LoanVerification
from app.schemas.disbursal import (
    BankDetails,
    DisbursalReadiness,
    DisbursalWorklistItem,
    GeneratedDocumentType,
)
from app.schemas.loan import LoanStage
from app.schemas.verification import VerificationType
from app.services.org_scoping import application_join_condition


DISBURSABLE_STAGES = (
    LoanStage.SANCTION.value,
    LoanStage.SANCTIONED.value,
    LoanStage.DISBURSEMENT_PENDING.value,
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _signed(org_id: str, document_type: GeneratedDocumentType):
    return (
        select(LoanGeneratedDocument.id)
        .where(
            application_join_condition(LoanApplication, LoanGeneratedDocument, org_id),
            LoanGeneratedDocument.document_type == document_type.value,
            LoanGeneratedDocument.customer_signed.is_(True),
        )
        .exists()
    )


def documents_signed_clause(org_id: str):
    return or_(
        _signed(org_id, GeneratedDocumentType.COMBINED_LOAN_PACK),
        and_(
            _signed(org_id, GeneratedDocumentType.SANCTION_LETTER),
            _signed(org_id, GeneratedDocumentType.LOAN_AGREEMENT),
        ),
    )


def ready_applications_statement(org_id: str, application_id: UUID | None = None):
    no_disbursement = ~(
        select(LoanDisbursement.id)
        .where(LoanDisbursement.loan_application_id == LoanApplication.id)
        .exists()
    )
    stmt = (
        select(LoanApplication, LoanSanction.net_disbursement_amount)
        .outerjoin(
            LoanSanction,
            application_join_condition(LoanApplication, LoanSanction, org_id),
        )
        .where(
            LoanApplication.org_id == org_id,
            LoanApplication.current_stage.in_(DISBURSABLE_STAGES),
            documents_signed_clause(org_id),
            no_disbursement,
        )
    )
    if application_id is not None:
        stmt = stmt.where(LoanApplication.id == application_id)
    return stmt


def disbursement_rows_statement(org_id: str, application_id: UUID | None = None):
    stmt = (
        select(LoanDisbursement, LoanApplication)
        .join(
            LoanApplication,
            and_(
                LoanApplication.id == LoanDisbursement.loan_application_id,
                LoanApplication.org_id == org_id,
            ),
        )
        .where(LoanDisbursement.org_id == org_id)
    )
    if application_id is not None:
        stmt = stmt.where(LoanDisbursement.loan_application_id == application_id)
    return stmt


def bank_details_from_verification(
    record: LoanVerification | None,
) -> BankDetails | None:
    """Beneficiary details captured by the bank account check, if any."""
    if record is None:
        return None
    request = record.request_payload or {}
    response = record.response_payload or {}
    account_number = request.get("account_number")
    if not account_number:
        return None
    return BankDetails(
        beneficiary_name=response.get("account_holder_name"),
        account_number=str(account_number),
        ifsc_code=request.get("ifsc_code"),
        bank_name=response.get("bank_name"),
    )


def bank_details_complete(details: BankDetails | None) -> bool:
    return bool(details and details.account_number and details.ifsc_code)


def _snapshot_bank_details(disbursement: LoanDisbursement) -> BankDetails | None:
    if not disbursement.account_number:
        return None
    return BankDetails(
        beneficiary_name=disbursement.beneficiary_name,
        account_number=disbursement.account_number,
        ifsc_code=disbursement.ifsc_code,
        bank_name=disbursement.bank_name,
    )


async def load_bank_records(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_ids: list[UUID],
) -> dict[UUID, LoanVerification]:
    if not application_ids:
        return {}
    stmt = select(LoanVerification).where(
        LoanVerification.org_id == ctx.org_id,
        LoanVerification.loan_application_id.in_(application_ids),
        LoanVerification.verification_type == VerificationType.BANK_ACCOUNT.value,
    )
    result = await db.execute(stmt)
    return {record.loan_application_id: record for record in result.scalars().all()}


def _ready_item(
    application: LoanApplication,
    net_amount,
    bank_record: LoanVerification | None,
) -> DisbursalWorklistItem:
    details = bank_details_from_verification(bank_record)
    return DisbursalWorklistItem(
        application_id=application.id,
        application_number=application.application_number,
        current_stage=application.current_stage,
        readiness=DisbursalReadiness.READY,
        amount=net_amount if net_amount is not None else application.approved_amount,
        bank_details=details,
        bank_details_complete=bank_details_complete(details),
        updated_at=application.updated_at,
    )


def _disbursement_item(
    disbursement: LoanDisbursement,
    application: LoanApplication,
) -> DisbursalWorklistItem:
    details = _snapshot_bank_details(disbursement)
    return DisbursalWorklistItem(
        application_id=application.id,
        application_number=application.application_number,
        current_stage=application.current_stage,
        readiness=DisbursalReadiness(disbursement.status),
        amount=disbursement.disbursement_amount,
        disbursement_id=disbursement.id,
        disbursement_number=disbursement.disbursement_number,
        utr_number=disbursement.utr_number,
        proof_uploaded=bool(disbursement.proof_uploaded),
        bank_details=details,
        bank_details_complete=bank_details_complete(details),
        updated_at=disbursement.updated_at,
    )


async def _resolve(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID | None = None,
) -> list[DisbursalWorklistItem]:
    ready_rows = (
        await db.execute(ready_applications_statement(ctx.org_id, application_id))
    ).all()
    disbursement_rows = (
        await db.execute(disbursement_rows_statement(ctx.org_id, application_id))
    ).all()

    bank_records = await load_bank_records(
        db, ctx, [application.id for application, _ in ready_rows]
    )
    items = [
        _ready_item(application, net_amount, bank_records.get(application.id))
        for application, net_amount in ready_rows
    ]
    items.extend(
        _disbursement_item(disbursement, application)
        for disbursement, application in disbursement_rows
    )
    items.sort(key=lambda item: item.updated_at or _EPOCH, reverse=True)
    return items


async def resolve_worklist(
    db: AsyncSession,
    ctx: deps.TenantContext,
) -> list[DisbursalWorklistItem]:
    return await _resolve(db, ctx)


async def resolve_application(
    db: AsyncSession,
    ctx: deps.TenantContext,
    application_id: UUID,
) -> DisbursalWorklistItem | None:
    items = await _resolve(db, ctx, application_id)
    return items[0] if items else None
