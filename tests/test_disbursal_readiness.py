from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import (
    FakeResult,
    compiled_params,
    entity_handler,
    make_application,
    make_bank_verification,
    make_disbursement,
)
from app.models.loan_application import LoanApplication
from app.models.loan_disbursement import LoanDisbursement
from app.models.loan_verification import LoanVerification
from app.schemas.disbursal import DisbursalReadiness
from app.services import disbursal_readiness


def _configure(fake_db, *, ready=(), disbursed=(), bank=()):
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(rows=list(ready))))
    fake_db.on_execute(entity_handler(LoanDisbursement, FakeResult(rows=list(disbursed))))
    fake_db.on_execute(entity_handler(LoanVerification, FakeResult(items=list(bank))))


def test_ready_statement_requires_signed_documents_and_no_disbursement():
    stmt = disbursal_readiness.ready_applications_statement("default")
    params = compiled_params(stmt)
    sql = str(stmt)

    assert sql.count("EXISTS") == 4
    assert "NOT" in sql
    values = set(str(value) for value in params.values() if not isinstance(value, (list, tuple)))
    assert {"combined_loan_pack", "sanction_letter", "loan_agreement"} <= values
    stage_values = next(value for value in params.values() if isinstance(value, (list, tuple)))
    assert set(stage_values) == {"sanction", "sanctioned", "disbursement_pending"}


@pytest.mark.asyncio
async def test_ready_item_carries_net_amount_and_bank_details(fake_db, tenant_ctx):
    application = make_application(current_stage="disbursement_pending", status="approved")
    _configure(
        fake_db,
        ready=[(application, Decimal("48500.00"))],
        bank=[make_bank_verification(application)],
    )

    items = await disbursal_readiness.resolve_worklist(fake_db, tenant_ctx)

    assert len(items) == 1
    item = items[0]
    assert item.readiness == DisbursalReadiness.READY
    assert item.amount == Decimal("48500.00")
    assert item.bank_details.account_number == "1234567890"
    assert item.bank_details.ifsc_code == "HDFC0001234"
    assert item.bank_details.beneficiary_name == "Asha Rao"
    assert item.bank_details_complete is True
    assert item.disbursement_id is None


@pytest.mark.asyncio
async def test_missing_account_number_leaves_bank_details_empty(fake_db, tenant_ctx):
    application = make_application(
        current_stage="sanctioned", status="approved", approved_amount=Decimal("40000")
    )
    _configure(
        fake_db,
        ready=[(application, None)],
        bank=[make_bank_verification(application, account_number=None)],
    )

    [item] = await disbursal_readiness.resolve_worklist(fake_db, tenant_ctx)

    assert item.bank_details is None
    assert item.bank_details_complete is False
    assert item.amount == Decimal("40000")


@pytest.mark.asyncio
async def test_missing_ifsc_is_incomplete(fake_db, tenant_ctx):
    application = make_application(current_stage="sanctioned", status="approved")
    _configure(
        fake_db,
        ready=[(application, Decimal("1000"))],
        bank=[make_bank_verification(application, ifsc_code=None)],
    )

    [item] = await disbursal_readiness.resolve_worklist(fake_db, tenant_ctx)

    assert item.bank_details is not None
    assert item.bank_details_complete is False


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["pending", "completed", "failed"])
async def test_disbursement_row_reports_its_status(fake_db, tenant_ctx, status):
    application = make_application(current_stage="disbursement_pending", status="approved")
    disbursement = make_disbursement(application, status=status, utr_number="UTR1")
    _configure(fake_db, disbursed=[(disbursement, application)])

    [item] = await disbursal_readiness.resolve_worklist(fake_db, tenant_ctx)

    assert item.readiness == DisbursalReadiness(status)
    assert item.disbursement_id == disbursement.id
    assert item.amount == disbursement.disbursement_amount
    assert item.bank_details.account_number == disbursement.account_number


@pytest.mark.asyncio
async def test_worklist_is_most_recent_first(fake_db, tenant_ctx):
    now = datetime.now(timezone.utc)
    older = make_application(current_stage="sanctioned", updated_at=now - timedelta(days=2))
    newer = make_application(current_stage="disbursement_pending", updated_at=now)
    disbursed_app = make_application(current_stage="disbursed")
    disbursement = make_disbursement(
        disbursed_app, status="completed", updated_at=now - timedelta(days=1)
    )
    _configure(
        fake_db,
        ready=[(older, None), (newer, None)],
        disbursed=[(disbursement, disbursed_app)],
    )

    items = await disbursal_readiness.resolve_worklist(fake_db, tenant_ctx)

    assert [item.application_id for item in items] == [newer.id, disbursed_app.id, older.id]
    assert len({item.application_id for item in items}) == 3


@pytest.mark.asyncio
async def test_bank_records_not_queried_without_ready_rows(fake_db, tenant_ctx):
    _configure(fake_db)

    assert await disbursal_readiness.resolve_worklist(fake_db, tenant_ctx) == []
    assert len(fake_db.executed) == 2


@pytest.mark.asyncio
async def test_resolve_application_returns_none_when_not_eligible(fake_db, tenant_ctx):
    _configure(fake_db)

    item = await disbursal_readiness.resolve_application(
        fake_db, tenant_ctx, make_application().id
    )

    assert item is None
