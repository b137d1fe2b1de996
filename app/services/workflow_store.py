"""Workflow store: durable staging of provisioning inputs, keyed by payment."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import upsert
from app.models.base import utcnow
from app.models.payment import Payment, PaymentStatus
from app.models.workflow_record import ProvisioningSnapshot, WorkflowRecord

logger = logging.getLogger(__name__)


async def stage(
    session: AsyncSession,
    *,
    payment: Payment,
    snapshot: ProvisioningSnapshot,
) -> None:
    """Upsert the WorkflowRecord for *payment* with ``processed = False``.

    A retried intake for the same payment refreshes the snapshot instead of
    adding a second row; ``processed`` is never touched on conflict.
    """
    record = WorkflowRecord(
        payment_id=payment.id,
        tenant_id=payment.tenant_id,
        company_id=payment.company_id,
        snapshot=snapshot.to_json(),
        processed=False,
    )
    await upsert(
        session,
        record,
        index_elements=["payment_id"],
        update_columns=["snapshot", "updated_at"],
    )


async def get_by_payment(
    session: AsyncSession, payment_id: uuid.UUID
) -> WorkflowRecord | None:
    stmt = (
        select(WorkflowRecord)
        .where(WorkflowRecord.payment_id == payment_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def mark_processed(session: AsyncSession, payment_id: uuid.UUID) -> bool:
    """Flip ``processed`` false -> true. Returns True only for the caller that flipped it."""
    now = utcnow()
    stmt = (
        update(WorkflowRecord)
        .where(
            WorkflowRecord.payment_id == payment_id,
            WorkflowRecord.processed.is_(False),  # type: ignore[attr-defined]
        )
        .values(processed=True, processed_at=now, last_error=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def record_failure(
    session: AsyncSession, payment_id: uuid.UUID, error: str
) -> None:
    stmt = (
        update(WorkflowRecord)
        .where(WorkflowRecord.payment_id == payment_id)
        .values(
            attempts=WorkflowRecord.attempts + 1,
            last_error=error[:2000],
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


async def find_unprocessed_paid(
    session: AsyncSession,
    *,
    paid_before: datetime,
    limit: int,
) -> list[uuid.UUID]:
    """Payment ids that are paid but whose provisioning never reached its commit point."""
    stmt = (
        select(WorkflowRecord.payment_id)
        .join(Payment, Payment.id == WorkflowRecord.payment_id)
        .where(
            WorkflowRecord.processed.is_(False),  # type: ignore[attr-defined]
            Payment.status == PaymentStatus.PAID,
            Payment.paid_at <= paid_before,  # type: ignore[operator]
        )
        .order_by(Payment.paid_at.asc())  # type: ignore[union-attr]
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
