"""Payment confirmation: state transitions, duplicate delivery, references."""

import json
import logging
import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlmodel import func, select

from app.core.errors import InvalidPaymentTransition, PaymentNotFound
from app.models import (
    Company,
    CompanyCreate,
    CompanyPaymentStatus,
    CustomerCreate,
    Invoice,
    MemberAccount,
    MemberAccountStatus,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
    WorkflowRecord,
)
from app.services.confirmation import confirm_payment, settle_unpaid
from app.services.intake import create_company_with_optional_plan


async def _stage(session, operator, plan, *, email: str | None = "client@example.com"):
    return await create_company_with_optional_plan(
        session,
        operator["user_id"],
        operator["tenant_id"],
        CompanyCreate(legal_name="Cabinet Durand", email="compta@durand.fr"),
        CustomerCreate(email=email) if email else None,
        plan.id,
    )


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_confirm_provisions_everything(session, operator, plan, mail_client):
    staged = await _stage(session, operator, plan)

    result = await confirm_payment(session, staged.payment_id, "pi_123")

    assert result.success is True
    assert result.already_paid is False
    invoice = await session.get(Invoice, result.invoice_id)
    assert invoice.amount_gross == Decimal("60.00")
    assert invoice.payment_id == staged.payment_id
    assert invoice.number.startswith("FAC-")

    subscription = await session.get(Subscription, result.subscription_id)
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.plan_id == plan.id
    assert subscription.period_end > subscription.period_start

    account = await session.get(MemberAccount, result.member_account_id)
    assert account.status == MemberAccountStatus.ACTIVE
    assert account.customer_id == staged.customer_id

    company = await session.get(Company, staged.company_id, populate_existing=True)
    assert company.payment_status == CompanyPaymentStatus.PAID

    payment = await session.get(Payment, staged.payment_id, populate_existing=True)
    assert payment.status == PaymentStatus.PAID
    assert payment.paid_at is not None
    assert payment.external_reference == "pi_123"

    record = (await session.execute(select(WorkflowRecord))).scalar_one()
    await session.refresh(record)
    assert record.processed is True

    kinds = [json.loads(c.kwargs["content"])["kind"] for c in mail_client.post.call_args_list]
    assert kinds == ["invoice_issued", "member_credentials"]


@pytest.mark.asyncio
async def test_duplicate_confirmation_returns_previous_result(session, operator, plan, mail_client):
    staged = await _stage(session, operator, plan)
    first = await confirm_payment(session, staged.payment_id)
    mail_client.post.reset_mock()

    second = await confirm_payment(session, staged.payment_id)

    assert second.success is True
    assert second.already_paid is True
    assert (second.invoice_id, second.subscription_id, second.member_account_id) == (
        first.invoice_id, first.subscription_id, first.member_account_id,
    )
    assert await _count(session, Invoice) == 1
    assert await _count(session, Subscription) == 1
    assert await _count(session, MemberAccount) == 1
    mail_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_confirm_without_customer(session, operator, plan, mail_client):
    staged = await _stage(session, operator, plan, email=None)
    result = await confirm_payment(session, staged.payment_id)

    assert result.success is True
    assert result.member_account_id is None
    assert await _count(session, MemberAccount) == 0
    # Invoice mail falls back to the company address
    body = json.loads(mail_client.post.call_args.kwargs["content"])
    assert body["recipient"] == "compta@durand.fr"


@pytest.mark.asyncio
async def test_unknown_payment(session):
    with pytest.raises(PaymentNotFound):
        await confirm_payment(session, uuid.uuid4())


@pytest.mark.asyncio
async def test_second_reference_is_logged_not_applied(session, operator, plan, caplog):
    staged = await _stage(session, operator, plan)
    await confirm_payment(session, staged.payment_id, "pi_first")

    with caplog.at_level(logging.WARNING, logger="app.services.confirmation"):
        result = await confirm_payment(session, staged.payment_id, "pi_second")

    assert result.success is True
    payment = await session.get(Payment, staged.payment_id, populate_existing=True)
    assert payment.external_reference == "pi_first"
    assert "pi_second" in caplog.text


@pytest.mark.asyncio
async def test_canceled_payment_cannot_be_confirmed(session, operator, plan):
    staged = await _stage(session, operator, plan)
    payment = await settle_unpaid(session, staged.payment_id, PaymentStatus.CANCELED, "client withdrew")
    assert payment.status == PaymentStatus.CANCELED

    # Repeating the same outcome is harmless
    again = await settle_unpaid(session, staged.payment_id, PaymentStatus.CANCELED)
    assert again.status == PaymentStatus.CANCELED

    with pytest.raises(InvalidPaymentTransition):
        await confirm_payment(session, staged.payment_id)
    assert await _count(session, Invoice) == 0


@pytest.mark.asyncio
async def test_paid_payment_cannot_be_failed(session, operator, plan):
    staged = await _stage(session, operator, plan)
    await confirm_payment(session, staged.payment_id)

    with pytest.raises(InvalidPaymentTransition):
        await settle_unpaid(session, staged.payment_id, PaymentStatus.FAILED, "late decline")
    payment = await session.get(Payment, staged.payment_id, populate_existing=True)
    assert payment.status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_confirm_endpoint(client: AsyncClient, operator, plan):
    resp = await client.post("/v1/companies", json={
        "company": {"legal_name": "Pressing Express"},
        "customer": {"email": "pressing@example.com"},
        "plan_id": str(plan.id),
    }, headers=operator["headers"])
    payment_id = resp.json()["payment_id"]

    resp = await client.post(
        f"/v1/payments/{payment_id}/confirm",
        json={"external_reference": "manual-0001"},
        headers=operator["headers"],
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["success"] is True
    assert data["invoice_id"] and data["subscription_id"] and data["member_account_id"]

    resp = await client.post(f"/v1/payments/{payment_id}/confirm", headers=operator["headers"])
    assert resp.status_code == 200
    assert resp.json()["already_paid"] is True
    assert resp.json()["invoice_id"] == data["invoice_id"]

    resp = await client.get(f"/v1/payments/{payment_id}", headers=operator["headers"])
    assert resp.json()["status"] == "paid"
    assert resp.json()["external_reference"] == "manual-0001"


@pytest.mark.asyncio
async def test_confirm_endpoint_errors(client: AsyncClient, operator, plan):
    resp = await client.post(f"/v1/payments/{uuid.uuid4()}/confirm", headers=operator["headers"])
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "payment_not_found"

    resp = await client.post("/v1/companies", json={
        "company": {"legal_name": "Annule"},
        "plan_id": str(plan.id),
    }, headers=operator["headers"])
    payment_id = resp.json()["payment_id"]

    resp = await client.post(f"/v1/payments/{payment_id}/cancel", headers=operator["headers"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "canceled"

    resp = await client.post(f"/v1/payments/{payment_id}/confirm", headers=operator["headers"])
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "invalid_payment_transition"


@pytest.mark.asyncio
async def test_provisioning_endpoint_lists_derived_records(client: AsyncClient, operator, plan):
    resp = await client.post("/v1/companies", json={
        "company": {"legal_name": "Boulangerie Petit"},
        "customer": {"email": "petit@example.com"},
        "plan_id": str(plan.id),
    }, headers=operator["headers"])
    payment_id = resp.json()["payment_id"]

    resp = await client.get(f"/v1/payments/{payment_id}/provisioning", headers=operator["headers"])
    assert resp.status_code == 200
    assert resp.json() == {"invoice": None, "subscription": None, "member_account": None}

    confirmed = (await client.post(
        f"/v1/payments/{payment_id}/confirm", headers=operator["headers"],
    )).json()

    resp = await client.get(f"/v1/payments/{payment_id}/provisioning", headers=operator["headers"])
    data = resp.json()
    assert data["invoice"]["id"] == confirmed["invoice_id"]
    assert Decimal(data["invoice"]["amount_gross"]) == Decimal("60.00")
    assert data["subscription"]["id"] == confirmed["subscription_id"]
    assert data["subscription"]["status"] == "active"
    assert data["member_account"]["id"] == confirmed["member_account_id"]
    assert data["member_account"]["status"] == "active"

    resp = await client.get(f"/v1/payments/{uuid.uuid4()}/provisioning", headers=operator["headers"])
    assert resp.status_code == 404
