"""Concurrent confirmations of the same payment against a shared database."""

import asyncio
import json
from decimal import Decimal

import pytest
from sqlmodel import func, select

from app.models import (
    CompanyCreate,
    CustomerCreate,
    Invoice,
    MemberAccount,
    Plan,
    Subscription,
    Tenant,
    User,
    UserRole,
    WorkflowRecord,
)
from app.services.confirmation import confirm_payment
from app.services.intake import create_company_with_optional_plan

CONCURRENT_CALLS = 8


async def _seed(factory):
    async with factory() as session:
        tenant = Tenant(name="Race Co", slug="race-co")
        session.add(tenant)
        await session.flush()
        owner = User(
            tenant_id=tenant.id,
            email="owner@race.co",
            password_hash="x",
            role=UserRole.OWNER,
        )
        plan = Plan(name="Standard", monthly_price=Decimal("50.00"))
        session.add_all([owner, plan])
        await session.commit()

        staged = await create_company_with_optional_plan(
            session,
            owner.id,
            tenant.id,
            CompanyCreate(legal_name="Course SARL"),
            CustomerCreate(email="course@example.com"),
            plan.id,
        )
        return staged.payment_id


async def _count(factory, model) -> int:
    async with factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_concurrent_confirmations_create_one_invoice(file_session_factory, mail_client):
    payment_id = await _seed(file_session_factory)

    async def _confirm_once():
        async with file_session_factory() as session:
            return await confirm_payment(session, payment_id, "pi_race")

    outcomes = await asyncio.gather(
        *(_confirm_once() for _ in range(CONCURRENT_CALLS)),
        return_exceptions=True,
    )

    # Whatever interleaving happened, one more call converges
    async with file_session_factory() as session:
        final = await confirm_payment(session, payment_id)
    assert final.success is True

    assert await _count(file_session_factory, Invoice) == 1
    assert await _count(file_session_factory, Subscription) == 1
    assert await _count(file_session_factory, MemberAccount) == 1
    assert await _count(file_session_factory, WorkflowRecord) == 1

    succeeded = [o for o in outcomes if not isinstance(o, BaseException) and o.success]
    assert succeeded
    assert {o.invoice_id for o in succeeded} == {final.invoice_id}
    # Exactly one caller performed the pending -> paid transition
    fresh = [o for o in outcomes if not isinstance(o, BaseException) and not o.already_paid]
    assert len(fresh) <= 1

    kinds = [json.loads(c.kwargs["content"])["kind"] for c in mail_client.post.call_args_list]
    assert kinds.count("invoice_issued") == 1
