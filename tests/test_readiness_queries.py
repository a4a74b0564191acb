"""Readiness queries evaluated by a real engine (SQLite through aiosqlite)."""

from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from conftest import make_application, make_disbursement, make_sanction
from app.api import deps
from app.db.base import Base
from app.models.loan_generated_document import LoanGeneratedDocument
from app.schemas.disbursal import DisbursalReadiness
from app.services import disbursal_readiness


@compiles(JSONB, "sqlite")
def _jsonb_on_sqlite(type_, compiler, **kw):
    return "JSON"


@compiles(UUID, "sqlite")
def _uuid_on_sqlite(type_, compiler, **kw):
    return "CHAR(32)"


@pytest_asyncio.fixture
async def sessions():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def ctx() -> deps.TenantContext:
    return deps.TenantContext(org_id="default")


def _document(application, document_type: str, *, signed: bool = True, org_id=None):
    return LoanGeneratedDocument(
        id=uuid4(),
        org_id=org_id or application.org_id,
        loan_application_id=application.id,
        document_type=document_type,
        customer_signed=signed,
    )


async def _store(sessions, *rows) -> None:
    async with sessions() as session:
        session.add_all(rows)
        await session.commit()


async def _resolve(sessions, ctx, application_id):
    async with sessions() as session:
        return await disbursal_readiness.resolve_application(session, ctx, application_id)


def _sanctioned(**overrides):
    overrides.setdefault("current_stage", "disbursement_pending")
    overrides.setdefault("status", "approved")
    overrides.setdefault("approved_amount", Decimal("50000.00"))
    return make_application(**overrides)


@pytest.mark.asyncio
async def test_signed_pack_is_ready_until_disbursement_exists(sessions, ctx):
    application = _sanctioned()
    await _store(
        sessions,
        application,
        make_sanction(application, net_disbursement_amount=Decimal("48500.00")),
        _document(application, "combined_loan_pack"),
    )

    item = await _resolve(sessions, ctx, application.id)

    assert item.readiness == DisbursalReadiness.READY
    assert item.amount == Decimal("48500.00")
    assert item.disbursement_id is None

    disbursement = make_disbursement(application)
    await _store(sessions, disbursement)

    item = await _resolve(sessions, ctx, application.id)

    assert item.readiness == DisbursalReadiness.PENDING
    assert item.disbursement_id == disbursement.id
    async with sessions() as session:
        worklist = await disbursal_readiness.resolve_worklist(session, ctx)
    assert [entry.readiness for entry in worklist] == [DisbursalReadiness.PENDING]


@pytest.mark.asyncio
async def test_letter_without_agreement_is_not_ready(sessions, ctx):
    application = _sanctioned()
    await _store(
        sessions,
        application,
        _document(application, "sanction_letter"),
        _document(application, "loan_agreement", signed=False),
    )

    assert await _resolve(sessions, ctx, application.id) is None


@pytest.mark.asyncio
async def test_letter_and_agreement_both_signed_is_ready(sessions, ctx):
    application = _sanctioned(current_stage="sanctioned")
    await _store(
        sessions,
        application,
        _document(application, "sanction_letter"),
        _document(application, "loan_agreement"),
    )

    item = await _resolve(sessions, ctx, application.id)

    assert item.readiness == DisbursalReadiness.READY
    # No sanction row: the approved amount stands in.
    assert item.amount == Decimal("50000.00")


@pytest.mark.asyncio
async def test_stage_before_sanction_is_not_ready(sessions, ctx):
    application = _sanctioned(current_stage="approval_pending", status="in_progress")
    await _store(sessions, application, _document(application, "combined_loan_pack"))

    assert await _resolve(sessions, ctx, application.id) is None


@pytest.mark.asyncio
async def test_other_org_signature_does_not_count(sessions, ctx):
    application = _sanctioned()
    await _store(
        sessions,
        application,
        _document(application, "combined_loan_pack", org_id="other-org"),
    )

    assert await _resolve(sessions, ctx, application.id) is None


@pytest.mark.asyncio
async def test_settled_disbursements_report_their_status(sessions, ctx):
    completed = _sanctioned(current_stage="disbursed", status="disbursed")
    failed = _sanctioned()
    await _store(
        sessions,
        completed,
        failed,
        _document(failed, "combined_loan_pack"),
        make_disbursement(completed, status="completed", utr_number="UTR42"),
        make_disbursement(failed, status="failed", disbursement_number="DB1700000000001"),
    )

    async with sessions() as session:
        worklist = await disbursal_readiness.resolve_worklist(session, ctx)

    by_application = {item.application_id: item for item in worklist}
    assert by_application[completed.id].readiness == DisbursalReadiness.COMPLETED
    assert by_application[completed.id].utr_number == "UTR42"
    assert by_application[failed.id].readiness == DisbursalReadiness.FAILED
    assert len(worklist) == 2
