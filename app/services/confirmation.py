"""Payment confirmation: the single entry point for "this payment was captured".

Called by the operator ("mark as paid") and by the payment-provider
callback. Safe to call any number of times with the same payment id.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidPaymentTransition, PaymentNotFound, ProvisioningIncomplete
from app.models.base import utcnow
from app.models.payment import Payment, PaymentStatus
from app.services.saga import run_saga

logger = logging.getLogger(__name__)


@dataclass
class ConfirmationResult:
    success: bool
    payment_id: uuid.UUID
    invoice_id: uuid.UUID | None = None
    subscription_id: uuid.UUID | None = None
    member_account_id: uuid.UUID | None = None
    already_paid: bool = False
    error: dict | None = None

    def as_dict(self) -> dict:
        return asdict(self)


async def _load_payment(
    session: AsyncSession,
    payment_id: uuid.UUID,
    tenant_id: uuid.UUID | None = None,
) -> Payment:
    payment = await session.get(Payment, payment_id, populate_existing=True)
    if payment is None or (tenant_id is not None and payment.tenant_id != tenant_id):
        raise PaymentNotFound(f"Payment {payment_id} not found")
    return payment


async def _attach_reference(
    session: AsyncSession, payment: Payment, external_reference: str
) -> None:
    """First writer wins; a different later reference is logged and dropped."""
    result = await session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.external_reference.is_(None))  # type: ignore[union-attr]
        .values(external_reference=external_reference, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return
    await session.refresh(payment)
    if payment.external_reference != external_reference:
        logger.warning(
            "Ignoring external reference %s for payment %s: already bound to %s",
            external_reference, payment.id, payment.external_reference,
        )


async def _transition(
    session: AsyncSession,
    payment_id: uuid.UUID,
    target: PaymentStatus,
    **values: object,
) -> bool:
    """Compare-and-swap ``pending -> target``. True only for the caller that won."""
    result = await session.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
        .values(status=target, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def confirm_payment(
    session: AsyncSession,
    payment_id: uuid.UUID,
    external_reference: str | None = None,
    *,
    tenant_id: uuid.UUID | None = None,
) -> ConfirmationResult:
    """Mark *payment_id* paid and run the provisioning saga.

    A payment that is already paid is not transitioned again; the saga
    then either replays the stored ids or finishes an earlier partial run.
    ProvisioningIncomplete is reported in the result (``success=False``),
    every other error is raised.
    """
    payment = await _load_payment(session, payment_id, tenant_id)
    if payment.status in (PaymentStatus.FAILED, PaymentStatus.CANCELED):
        raise InvalidPaymentTransition(f"Payment {payment_id} is {payment.status}")

    if external_reference:
        await _attach_reference(session, payment, external_reference)

    already_paid = payment.status == PaymentStatus.PAID
    if not already_paid:
        won = await _transition(session, payment_id, PaymentStatus.PAID, paid_at=utcnow())
        await session.commit()
        if won:
            logger.info("Payment %s marked paid", payment_id)
        else:
            payment = await _load_payment(session, payment_id)
            if payment.status != PaymentStatus.PAID:
                raise InvalidPaymentTransition(f"Payment {payment_id} is {payment.status}")
            already_paid = True
    else:
        await session.commit()
        logger.info("Payment %s already paid, re-entering provisioning", payment_id)

    try:
        provisioned = await run_saga(session, payment_id)
    except ProvisioningIncomplete as exc:
        return ConfirmationResult(
            success=False,
            payment_id=payment_id,
            already_paid=already_paid,
            error=exc.to_dict(),
        )

    return ConfirmationResult(
        success=True,
        payment_id=payment_id,
        invoice_id=provisioned.invoice_id,
        subscription_id=provisioned.subscription_id,
        member_account_id=provisioned.member_account_id,
        already_paid=already_paid,
    )


async def settle_unpaid(
    session: AsyncSession,
    payment_id: uuid.UUID,
    target: PaymentStatus,
    reason: str | None = None,
    *,
    tenant_id: uuid.UUID | None = None,
) -> Payment:
    """Move a pending payment to ``failed`` or ``canceled``.

    Repeating the same outcome is a no-op; a paid payment cannot be undone.
    """
    if target not in (PaymentStatus.FAILED, PaymentStatus.CANCELED):
        raise ValueError(f"Unsupported settlement status: {target}")

    await _load_payment(session, payment_id, tenant_id)
    won = await _transition(session, payment_id, target, failure_reason=reason)
    await session.commit()

    payment = await _load_payment(session, payment_id)
    if won:
        logger.info("Payment %s marked %s", payment_id, target)
    elif payment.status != target:
        raise InvalidPaymentTransition(
            f"Payment {payment_id} is {payment.status}, cannot become {target}"
        )
    return payment
