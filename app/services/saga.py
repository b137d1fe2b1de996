"""Provisioning saga: invoice, subscription and member account for a paid payment.

Every creative step is insert-or-reuse keyed on a unique column and is
committed on its own, so a crashed or concurrent run is finished by simply
running the saga again. Flipping ``WorkflowRecord.processed`` is the
commit point; nothing after it may fail the saga.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import insert_or_ignore
from app.core.errors import (
    CompanyNotFound,
    PaymentNotFound,
    PaymentNotPaid,
    ProvisioningIncomplete,
    WorkflowRecordMissing,
)
from app.core.security import decrypt_value, encryption_configured
from app.models.base import today, utcnow
from app.models.company import Company, CompanyPaymentStatus
from app.models.customer import Customer, CustomerStatus
from app.models.payment import Payment, PaymentStatus
from app.models.provisioning import (
    Invoice,
    InvoiceStatus,
    MemberAccount,
    MemberAccountStatus,
    Subscription,
    SubscriptionStatus,
)
from app.models.workflow_record import ProvisioningSnapshot
from app.services import notifications, workflow_store
from app.services.notifications import NotificationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningResult:
    payment_id: uuid.UUID
    invoice_id: uuid.UUID
    subscription_id: uuid.UUID
    member_account_id: uuid.UUID | None = None
    replayed: bool = False


def invoice_number(payment_id: uuid.UUID, issued_on: date) -> str:
    """Deterministic per payment, so a retried step computes the same number."""
    return f"FAC-{issued_on:%Y%m%d}-{payment_id.hex[:12].upper()}"


async def run_saga(session: AsyncSession, payment_id: uuid.UUID) -> ProvisioningResult:
    """Provision everything a paid payment entitles its company to.

    Raises PaymentNotFound / PaymentNotPaid / WorkflowRecordMissing for
    state errors and ProvisioningIncomplete when a step fails; in that case
    the record stays unprocessed and calling again resumes the work.
    """
    payment = await session.get(Payment, payment_id, populate_existing=True)
    if payment is None:
        raise PaymentNotFound(f"Payment {payment_id} not found")
    if payment.status != PaymentStatus.PAID:
        raise PaymentNotPaid(f"Payment {payment_id} is {payment.status}, not paid")

    record = await workflow_store.get_by_payment(session, payment_id)
    if record is None:
        logger.critical(
            "Workflow record missing for paid payment %s; operator action required",
            payment_id,
        )
        raise WorkflowRecordMissing(f"No workflow record for payment {payment_id}")

    snapshot = record.load_snapshot()
    if record.processed:
        return await _replay(session, payment, snapshot)

    step = "load_company"
    try:
        company = await session.get(Company, snapshot.company_id, populate_existing=True)
        if company is None:
            raise CompanyNotFound(f"Company {snapshot.company_id} not found")

        if company.payment_status != CompanyPaymentStatus.PENDING:
            existing = await _existing_result(session, payment, snapshot)
            if existing is not None:
                step = "commit_point"
                await workflow_store.mark_processed(session, payment_id)
                await session.commit()
                logger.info("Payment %s was already provisioned, closing record", payment_id)
                return existing

        step = "invoice"
        invoice = await _ensure_invoice(session, payment, snapshot)
        await session.commit()

        step = "subscription"
        subscription = await _ensure_subscription(session, payment, snapshot)
        await session.commit()

        step = "member_account"
        account = None
        if snapshot.customer_id is not None:
            account = await _ensure_member_account(session, payment, snapshot, subscription)
        await session.commit()

        step = "company_status"
        await _mark_company_paid(session, company.id)
        await session.commit()

        step = "commit_point"
        flipped = await workflow_store.mark_processed(session, payment_id)
        await session.commit()
    except Exception as exc:
        await session.rollback()
        logger.exception("Provisioning step %s failed for payment %s", step, payment_id)
        await _record_failure(session, payment_id, step, exc)
        raise ProvisioningIncomplete(
            f"Provisioning stopped at step '{step}'",
            step=step,
            payment_id=str(payment_id),
        ) from exc

    result = ProvisioningResult(
        payment_id=payment_id,
        invoice_id=invoice.id,
        subscription_id=subscription.id,
        member_account_id=account.id if account else None,
    )
    logger.info(
        "Provisioned payment %s: invoice %s, subscription %s, member account %s",
        payment_id, invoice.id, subscription.id, result.member_account_id,
    )

    # Only the run that reached the commit point first sends mail
    if flipped:
        await _send_notifications(company, invoice, snapshot)
    return result


# ── Steps ─────────────────────────────────────────────────────


def _billing_date(payment: Payment) -> date:
    return payment.paid_at.date() if payment.paid_at else today()


async def _ensure_invoice(
    session: AsyncSession, payment: Payment, snapshot: ProvisioningSnapshot
) -> Invoice:
    issued_on = _billing_date(payment)
    candidate = Invoice(
        tenant_id=payment.tenant_id,
        company_id=payment.company_id,
        payment_id=payment.id,
        customer_id=snapshot.customer_id,
        number=invoice_number(payment.id, issued_on),
        amount_net=payment.amount_net,
        amount_tax=payment.amount_tax,
        amount_gross=payment.amount_gross,
        status=InvoiceStatus.PAID,
        issued_on=issued_on,
    )
    if not await insert_or_ignore(session, candidate, ["payment_id"]):
        logger.info("Reusing existing invoice for payment %s", payment.id)
    result = await session.execute(select(Invoice).where(Invoice.payment_id == payment.id))
    return result.scalar_one()


async def _ensure_subscription(
    session: AsyncSession, payment: Payment, snapshot: ProvisioningSnapshot
) -> Subscription:
    start = _billing_date(payment)
    candidate = Subscription(
        tenant_id=payment.tenant_id,
        company_id=payment.company_id,
        plan_id=snapshot.plan_id,
        payment_id=payment.id,
        customer_id=snapshot.customer_id,
        status=SubscriptionStatus.ACTIVE,
        period_start=start,
        period_end=start + timedelta(days=get_settings().subscription_period_days),
        monthly_amount=snapshot.amount_net,
        add_on_ids=json.dumps([str(a) for a in snapshot.add_on_ids]),
    )
    if not await insert_or_ignore(session, candidate, ["payment_id"]):
        logger.info("Reusing existing subscription for payment %s", payment.id)
    result = await session.execute(
        select(Subscription).where(Subscription.payment_id == payment.id)
    )
    return result.scalar_one()


async def _ensure_member_account(
    session: AsyncSession,
    payment: Payment,
    snapshot: ProvisioningSnapshot,
    subscription: Subscription,
) -> MemberAccount:
    if snapshot.identity_id is None:
        raise ValueError(f"Snapshot for customer {snapshot.customer_id} has no identity")

    candidate = MemberAccount(
        tenant_id=payment.tenant_id,
        company_id=payment.company_id,
        customer_id=snapshot.customer_id,
        identity_id=snapshot.identity_id,
        subscription_id=subscription.id,
        role=snapshot.portal_role,
        status=MemberAccountStatus.ACTIVE,
    )
    await insert_or_ignore(session, candidate, ["customer_id"])

    # An account staged by an earlier flow is activated and bound to this subscription
    now = utcnow()
    await session.execute(
        update(MemberAccount)
        .where(
            MemberAccount.customer_id == snapshot.customer_id,
            MemberAccount.status != MemberAccountStatus.ACTIVE,
        )
        .values(status=MemberAccountStatus.ACTIVE, subscription_id=subscription.id, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        update(Customer)
        .where(Customer.id == snapshot.customer_id, Customer.status != CustomerStatus.ACTIVE)
        .values(status=CustomerStatus.ACTIVE, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    result = await session.execute(
        select(MemberAccount)
        .where(MemberAccount.customer_id == snapshot.customer_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _mark_company_paid(session: AsyncSession, company_id: uuid.UUID) -> None:
    await session.execute(
        update(Company)
        .where(Company.id == company_id, Company.payment_status == CompanyPaymentStatus.PENDING)
        .values(payment_status=CompanyPaymentStatus.PAID, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )


# ── Replay / recovery helpers ─────────────────────────────────


async def _existing_result(
    session: AsyncSession, payment: Payment, snapshot: ProvisioningSnapshot
) -> ProvisioningResult | None:
    """Ids of the already-created records, or None if any is still missing."""
    invoice_id = (await session.execute(
        select(Invoice.id).where(Invoice.payment_id == payment.id)
    )).scalar_one_or_none()
    subscription_id = (await session.execute(
        select(Subscription.id).where(Subscription.payment_id == payment.id)
    )).scalar_one_or_none()
    if invoice_id is None or subscription_id is None:
        return None

    account_id = None
    if snapshot.customer_id is not None:
        account_id = (await session.execute(
            select(MemberAccount.id).where(MemberAccount.customer_id == snapshot.customer_id)
        )).scalar_one_or_none()
        if account_id is None:
            return None

    return ProvisioningResult(
        payment_id=payment.id,
        invoice_id=invoice_id,
        subscription_id=subscription_id,
        member_account_id=account_id,
        replayed=True,
    )


async def _replay(
    session: AsyncSession, payment: Payment, snapshot: ProvisioningSnapshot
) -> ProvisioningResult:
    existing = await _existing_result(session, payment, snapshot)
    if existing is None:
        logger.error("Processed payment %s is missing derived records", payment.id)
        raise ProvisioningIncomplete(
            "Processed payment is missing derived records",
            step="replay",
            payment_id=str(payment.id),
        )
    return existing


async def _record_failure(
    session: AsyncSession, payment_id: uuid.UUID, step: str, exc: Exception
) -> None:
    try:
        await workflow_store.record_failure(session, payment_id, f"{step}: {exc}")
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Could not record provisioning failure for payment %s", payment_id)


async def _send_notifications(
    company: Company, invoice: Invoice, snapshot: ProvisioningSnapshot
) -> None:
    """Best-effort mail requests once provisioning is committed."""
    recipient = snapshot.customer_email or company.email
    try:
        if recipient:
            await notifications.notify(
                NotificationKind.INVOICE_ISSUED,
                recipient,
                {
                    "company_name": company.legal_name,
                    "invoice_number": invoice.number,
                    "amount_gross": str(invoice.amount_gross),
                    "issued_on": invoice.issued_on.isoformat(),
                },
            )
        if (
            snapshot.customer_email
            and snapshot.send_welcome_email
            and snapshot.encrypted_password
            and encryption_configured()
        ):
            await notifications.notify(
                NotificationKind.MEMBER_CREDENTIALS,
                snapshot.customer_email,
                {
                    "company_name": company.legal_name,
                    "email": snapshot.customer_email,
                    "password": decrypt_value(snapshot.encrypted_password),
                },
            )
    except Exception:
        logger.warning("Notification after provisioning failed for invoice %s", invoice.id, exc_info=True)
