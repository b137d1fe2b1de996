"""Provisioning saga: replay, crash recovery and integrity faults."""

import logging
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import delete, update
from sqlmodel import func, select

from app.core.errors import PaymentNotFound, PaymentNotPaid, ProvisioningIncomplete, WorkflowRecordMissing
from app.models import (
    Company,
    CompanyCreate,
    CompanyPaymentStatus,
    CustomerCreate,
    Invoice,
    MemberAccount,
    Payment,
    PaymentStatus,
    Subscription,
    WorkflowRecord,
)
from app.models.base import utcnow
from app.services import workflow_store
from app.services.confirmation import confirm_payment
from app.services.intake import create_company_with_optional_plan
from app.services.saga import invoice_number, run_saga


async def _staged_and_paid(session, operator, plan):
    """Stage a payment and mark it paid without running the saga."""
    staged = await create_company_with_optional_plan(
        session,
        operator["user_id"],
        operator["tenant_id"],
        CompanyCreate(legal_name="Menuiserie Petit"),
        CustomerCreate(email="petit@example.com"),
        plan.id,
    )
    await session.execute(
        update(Payment)
        .where(Payment.id == staged.payment_id)
        .values(status=PaymentStatus.PAID, paid_at=utcnow())
    )
    await session.commit()
    return staged


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_replay_returns_identical_ids(session, operator, plan):
    staged = await _staged_and_paid(session, operator, plan)

    first = await run_saga(session, staged.payment_id)
    second = await run_saga(session, staged.payment_id)

    assert first.replayed is False
    assert second.replayed is True
    assert (first.invoice_id, first.subscription_id, first.member_account_id) == (
        second.invoice_id, second.subscription_id, second.member_account_id,
    )
    assert await _count(session, Invoice) == 1
    assert await _count(session, Subscription) == 1
    assert await _count(session, MemberAccount) == 1


@pytest.mark.asyncio
async def test_crash_after_invoice_converges(session, operator, plan, mail_client):
    staged = await _staged_and_paid(session, operator, plan)

    boom = AsyncMock(side_effect=RuntimeError("connection reset"))
    with patch("app.services.saga._ensure_subscription", boom):
        with pytest.raises(ProvisioningIncomplete) as excinfo:
            await run_saga(session, staged.payment_id)
    assert excinfo.value.step == "subscription"
    assert excinfo.value.retryable is True

    # Invoice committed, nothing else; record left for a retry
    assert await _count(session, Invoice) == 1
    assert await _count(session, Subscription) == 0
    record = await workflow_store.get_by_payment(session, staged.payment_id)
    assert record.processed is False
    assert record.attempts == 1
    assert "subscription" in record.last_error
    company = await session.get(Company, staged.company_id, populate_existing=True)
    assert company.payment_status == CompanyPaymentStatus.PENDING
    mail_client.post.assert_not_called()

    result = await run_saga(session, staged.payment_id)

    assert await _count(session, Invoice) == 1
    assert await _count(session, Subscription) == 1
    assert await _count(session, MemberAccount) == 1
    invoice = (await session.execute(select(Invoice))).scalar_one()
    assert result.invoice_id == invoice.id
    record = await workflow_store.get_by_payment(session, staged.payment_id)
    assert record.processed is True
    assert record.last_error is None
    assert mail_client.post.call_count == 2


@pytest.mark.asyncio
async def test_failed_confirmation_is_reported_and_retryable(session, operator, plan):
    staged = await create_company_with_optional_plan(
        session,
        operator["user_id"],
        operator["tenant_id"],
        CompanyCreate(legal_name="Retry SARL"),
        None,
        plan.id,
    )

    with patch("app.services.saga._ensure_invoice", AsyncMock(side_effect=RuntimeError("disk full"))):
        failed = await confirm_payment(session, staged.payment_id)
    assert failed.success is False
    assert failed.error == {
        "code": "provisioning_incomplete",
        "message": "Provisioning stopped at step 'invoice'",
        "retryable": True,
    }
    payment = await session.get(Payment, staged.payment_id, populate_existing=True)
    assert payment.status == PaymentStatus.PAID

    retried = await confirm_payment(session, staged.payment_id)
    assert retried.success is True
    assert retried.already_paid is True
    assert retried.invoice_id is not None


@pytest.mark.asyncio
async def test_company_already_paid_closes_record(session, operator, plan, mail_client):
    staged = await _staged_and_paid(session, operator, plan)
    first = await run_saga(session, staged.payment_id)
    mail_client.post.reset_mock()

    # Simulate a crash between the company update and the commit point
    await session.execute(
        update(WorkflowRecord)
        .where(WorkflowRecord.payment_id == staged.payment_id)
        .values(processed=False)
    )
    await session.commit()

    result = await run_saga(session, staged.payment_id)

    assert result.replayed is True
    assert result.invoice_id == first.invoice_id
    record = await workflow_store.get_by_payment(session, staged.payment_id)
    assert record.processed is True
    mail_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_saga_refuses_unpaid_payment(session, operator, plan):
    staged = await create_company_with_optional_plan(
        session,
        operator["user_id"],
        operator["tenant_id"],
        CompanyCreate(legal_name="Pas Encore"),
        None,
        plan.id,
    )
    with pytest.raises(PaymentNotPaid):
        await run_saga(session, staged.payment_id)
    assert await _count(session, Invoice) == 0


@pytest.mark.asyncio
async def test_unknown_payment(session):
    with pytest.raises(PaymentNotFound):
        await run_saga(session, uuid.uuid4())


@pytest.mark.asyncio
async def test_missing_workflow_record_is_critical(session, operator, plan, caplog):
    staged = await _staged_and_paid(session, operator, plan)
    await session.execute(delete(WorkflowRecord))
    await session.commit()

    with caplog.at_level(logging.CRITICAL, logger="app.services.saga"):
        with pytest.raises(WorkflowRecordMissing) as excinfo:
            await run_saga(session, staged.payment_id)
    assert excinfo.value.retryable is False
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)
    assert await _count(session, Invoice) == 0


def test_invoice_number_is_deterministic():
    payment_id = uuid.UUID("12345678-9abc-def0-1234-56789abcdef0")
    issued = utcnow().date()
    assert invoice_number(payment_id, issued) == invoice_number(payment_id, issued)
    assert invoice_number(payment_id, issued) == f"FAC-{issued:%Y%m%d}-123456789ABC"
