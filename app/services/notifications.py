"""Notification dispatch: fire email requests at the mail collaborator."""

import json
import logging
from enum import StrEnum

import httpx

from app.core.config import get_settings
from app.core.security import sign_payload

logger = logging.getLogger(__name__)


class NotificationKind(StrEnum):
    WELCOME = "welcome"
    MEMBER_CREDENTIALS = "member_credentials"
    INVOICE_ISSUED = "invoice_issued"


async def notify(kind: str, recipient_email: str, template_data: dict) -> None:
    """Request an email of *kind* for *recipient_email*. Never raises."""
    settings = get_settings()
    if not settings.notification_url:
        logger.info("Notification %s skipped: no notification_url configured", kind)
        return

    body = json.dumps(
        {"kind": kind, "recipient": recipient_email, "data": template_data},
        default=str,
    )
    headers = {
        "Content-Type": "application/json",
        "X-BizDesk-Notification": str(kind),
    }
    if settings.notification_secret:
        headers["X-BizDesk-Signature"] = sign_payload(settings.notification_secret, body)

    try:
        async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
            resp = await client.post(settings.notification_url, content=body, headers=headers)
        if not resp.is_success:
            logger.warning("Notification %s rejected with status %s", kind, resp.status_code)
    except Exception:
        logger.warning("Notification %s delivery failed", kind, exc_info=True)
