"""Payment-provider callbacks: Stripe signature check and event routing.

Stripe redelivers until it sees a 2xx, so every handler here is
idempotent: a succeeded event goes through ``confirm_payment`` and a
failed event through ``settle_unpaid``.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import InvalidPaymentTransition, InvalidSignature
from app.models.payment import PaymentStatus
from app.services.confirmation import ConfirmationResult, confirm_payment, settle_unpaid

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"

SUCCEEDED_EVENTS = ("checkout.session.completed", "payment_intent.succeeded")
FAILED_EVENTS = ("checkout.session.async_payment_failed", "payment_intent.payment_failed")


@dataclass
class ProviderEvent:
    id: str
    type: str
    # The event's data.object (a checkout session or a payment intent)
    data: Any

    @property
    def payment_id(self) -> uuid.UUID | None:
        raw = self.data.get("client_reference_id") or (self.data.get("metadata") or {}).get("payment_id")
        if not raw:
            return None
        try:
            return uuid.UUID(str(raw))
        except ValueError:
            return None

    @property
    def reference(self) -> str | None:
        # Checkout sessions point at their payment intent
        return self.data.get("payment_intent") or self.data.get("id") or None

    @property
    def failure_reason(self) -> str | None:
        error = self.data.get("last_payment_error") or {}
        return error.get("message") or self.data.get("failure_message")


@dataclass
class EventOutcome:
    event_id: str
    event_type: str
    handled: bool
    payment_id: uuid.UUID | None = None
    confirmation: ConfirmationResult | None = None

    @property
    def incomplete(self) -> bool:
        return self.confirmation is not None and not self.confirmation.success

    def as_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "handled": self.handled,
            "payment_id": str(self.payment_id) if self.payment_id else None,
            "confirmation": self.confirmation.as_dict() if self.confirmation else None,
        }


def construct_event(body: bytes, header: str | None) -> ProviderEvent:
    """Verify the Stripe-Signature header over the raw body and parse the event."""
    settings = get_settings()
    if not settings.provider_webhook_secret:
        raise InvalidSignature("Provider webhook secret is not configured")
    if not header:
        raise InvalidSignature(f"Missing {SIGNATURE_HEADER} header")
    try:
        event = stripe.Webhook.construct_event(
            body,
            header,
            settings.provider_webhook_secret,
            tolerance=settings.provider_webhook_tolerance_seconds,
        )
    except stripe.SignatureVerificationError as exc:
        raise InvalidSignature(f"Signature verification failed: {exc}") from exc
    except ValueError as exc:
        # Undecodable or non-JSON payloads
        raise InvalidSignature("Event body is not valid JSON") from exc

    data = event.get("data") or {}
    return ProviderEvent(
        id=str(event.get("id") or ""),
        type=str(event.get("type") or ""),
        data=data.get("object") or {},
    )


async def handle_event(session: AsyncSession, event: ProviderEvent) -> EventOutcome:
    """Route a verified event. Unknown types are acknowledged and ignored."""
    outcome = EventOutcome(
        event_id=event.id,
        event_type=event.type,
        handled=False,
        payment_id=event.payment_id,
    )
    if event.type not in SUCCEEDED_EVENTS + FAILED_EVENTS:
        logger.info("Ignoring provider event %s of type %s", event.id, event.type)
        return outcome
    if outcome.payment_id is None:
        logger.warning("Provider event %s carries no payment id", event.id)
        return outcome

    if event.type in SUCCEEDED_EVENTS:
        outcome.confirmation = await confirm_payment(
            session, outcome.payment_id, event.reference,
        )
    else:
        try:
            await settle_unpaid(
                session, outcome.payment_id, PaymentStatus.FAILED, event.failure_reason,
            )
        except InvalidPaymentTransition:
            logger.warning(
                "Provider reported failure for payment %s which is no longer pending",
                outcome.payment_id,
            )
            return outcome
    outcome.handled = True
    logger.info("Handled provider event %s (%s) for payment %s", event.id, event.type, outcome.payment_id)
    return outcome
