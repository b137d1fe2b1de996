"""Periodic job: finish provisioning for paid payments that never completed it."""

from __future__ import annotations

import logging
from datetime import timedelta

from app.core.config import get_settings
from app.core.database import async_session_factory
from app.core.errors import ProvisioningError, ProvisioningIncomplete
from app.models.base import utcnow
from app.services import workflow_store
from app.services.saga import run_saga

logger = logging.getLogger(__name__)


async def sweep_unprocessed_payments(ctx: dict) -> dict:
    """Periodic job: re-run the saga for paid payments left unprocessed.

    Payments younger than ``sweep_min_age_seconds`` are skipped so the
    sweep does not race the confirmation request that is still running.
    Each payment gets its own session; one failure never stops the batch.
    """
    settings = get_settings()
    cutoff = utcnow() - timedelta(seconds=settings.sweep_min_age_seconds)

    async with async_session_factory() as session:
        payment_ids = await workflow_store.find_unprocessed_paid(
            session, paid_before=cutoff, limit=settings.sweep_batch_size,
        )

    if not payment_ids:
        logger.info("Provisioning sweep: nothing to retry")
        return {"retried": 0, "completed": 0, "failed": 0}

    completed = failed = 0
    for payment_id in payment_ids:
        async with async_session_factory() as session:
            try:
                await run_saga(session, payment_id)
            except ProvisioningIncomplete as exc:
                failed += 1
                logger.warning("Sweep could not finish payment %s at step %s", payment_id, exc.step)
            except ProvisioningError:
                failed += 1
                logger.exception("Sweep skipped payment %s", payment_id)
            else:
                completed += 1

    logger.info(
        "Provisioning sweep: retried %d, completed %d, failed %d",
        len(payment_ids), completed, failed,
    )
    return {"retried": len(payment_ids), "completed": completed, "failed": failed}
