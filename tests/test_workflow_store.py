"""Workflow store: one record per payment, processed flips exactly once."""

from decimal import Decimal

import pytest
from sqlmodel import func, select

from app.models import CompanyCreate, Payment, WorkflowRecord
from app.services import workflow_store
from app.services.intake import create_company_with_optional_plan


async def _staged(session, operator, plan):
    staged = await create_company_with_optional_plan(
        session,
        operator["user_id"],
        operator["tenant_id"],
        CompanyCreate(legal_name="Stockage SARL"),
        None,
        plan.id,
    )
    payment = await session.get(Payment, staged.payment_id)
    record = await workflow_store.get_by_payment(session, staged.payment_id)
    return payment, record


@pytest.mark.asyncio
async def test_restaging_refreshes_snapshot_without_duplicate(session, operator, plan):
    payment, record = await _staged(session, operator, plan)
    snapshot = record.load_snapshot().model_copy(update={"plan_name": "Renamed"})

    await workflow_store.stage(session, payment=payment, snapshot=snapshot)
    await session.commit()

    count = (await session.execute(select(func.count()).select_from(WorkflowRecord))).scalar_one()
    assert count == 1
    refreshed = await workflow_store.get_by_payment(session, payment.id)
    assert refreshed.id == record.id
    assert refreshed.load_snapshot().plan_name == "Renamed"
    assert refreshed.load_snapshot().amount_gross == Decimal("60.00")


@pytest.mark.asyncio
async def test_restaging_never_resets_processed(session, operator, plan):
    payment, record = await _staged(session, operator, plan)
    assert await workflow_store.mark_processed(session, payment.id) is True
    await session.commit()

    await workflow_store.stage(session, payment=payment, snapshot=record.load_snapshot())
    await session.commit()

    refreshed = await workflow_store.get_by_payment(session, payment.id)
    assert refreshed.processed is True


@pytest.mark.asyncio
async def test_mark_processed_only_once(session, operator, plan):
    payment, _ = await _staged(session, operator, plan)

    assert await workflow_store.mark_processed(session, payment.id) is True
    assert await workflow_store.mark_processed(session, payment.id) is False
    await session.commit()

    record = await workflow_store.get_by_payment(session, payment.id)
    assert record.processed is True
    assert record.processed_at is not None
