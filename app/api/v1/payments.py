"""Payment lookup, operator confirmation and cancellation: scoped to tenant_id."""

import uuid

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.api.deps import Auth, Session
from app.core.errors import PaymentNotFound, WorkflowRecordMissing
from app.models.payment import Payment, PaymentRead, PaymentStatus
from app.models.provisioning import (
    Invoice,
    InvoiceRead,
    MemberAccount,
    MemberAccountRead,
    Subscription,
    SubscriptionRead,
)
from app.models.workflow_record import WorkflowRecordRead
from app.services import workflow_store
from app.services.confirmation import confirm_payment, settle_unpaid

router = APIRouter(prefix="/payments", tags=["payments"])


class ConfirmRequest(BaseModel):
    external_reference: str | None = Field(default=None, max_length=255)


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ConfirmResponse(BaseModel):
    success: bool
    payment_id: uuid.UUID
    invoice_id: uuid.UUID | None = None
    subscription_id: uuid.UUID | None = None
    member_account_id: uuid.UUID | None = None
    already_paid: bool = False
    error: dict | None = None


class ProvisioningRead(BaseModel):
    invoice: InvoiceRead | None = None
    subscription: SubscriptionRead | None = None
    member_account: MemberAccountRead | None = None


async def _tenant_payment(session: AsyncSession, payment_id: uuid.UUID, tenant_id: uuid.UUID) -> Payment:
    payment = await session.get(Payment, payment_id)
    if payment is None or payment.tenant_id != tenant_id:
        raise PaymentNotFound(f"Payment {payment_id} not found")
    return payment


@router.get("/{payment_id}", response_model=PaymentRead)
async def get_payment(payment_id: uuid.UUID, auth: Auth, session: Session) -> PaymentRead:
    payment = await _tenant_payment(session, payment_id, auth.tenant_id)
    return PaymentRead.model_validate(payment)


@router.get("/{payment_id}/workflow", response_model=WorkflowRecordRead)
async def get_payment_workflow(
    payment_id: uuid.UUID, auth: Auth, session: Session
) -> WorkflowRecordRead:
    """Staged provisioning record for a payment, for operator diagnostics."""
    await _tenant_payment(session, payment_id, auth.tenant_id)
    record = await workflow_store.get_by_payment(session, payment_id)
    if record is None:
        raise WorkflowRecordMissing(f"No workflow record for payment {payment_id}")
    return WorkflowRecordRead.model_validate(record)


@router.get("/{payment_id}/provisioning", response_model=ProvisioningRead)
async def get_payment_provisioning(
    payment_id: uuid.UUID, auth: Auth, session: Session
) -> ProvisioningRead:
    """Invoice, subscription and member account derived from a payment so far."""
    payment = await _tenant_payment(session, payment_id, auth.tenant_id)
    invoice = (
        await session.execute(select(Invoice).where(Invoice.payment_id == payment.id))
    ).scalar_one_or_none()
    subscription = (
        await session.execute(select(Subscription).where(Subscription.payment_id == payment.id))
    ).scalar_one_or_none()
    account = None
    if subscription is not None:
        account = (
            await session.execute(
                select(MemberAccount).where(MemberAccount.subscription_id == subscription.id)
            )
        ).scalar_one_or_none()
    return ProvisioningRead(
        invoice=InvoiceRead.model_validate(invoice) if invoice else None,
        subscription=SubscriptionRead.model_validate(subscription) if subscription else None,
        member_account=MemberAccountRead.model_validate(account) if account else None,
    )


@router.post(
    "/{payment_id}/confirm",
    response_model=ConfirmResponse,
    responses={503: {"model": ConfirmResponse}},
)
async def confirm(
    payment_id: uuid.UUID,
    auth: Auth,
    session: Session,
    body: ConfirmRequest | None = None,
) -> ConfirmResponse | JSONResponse:
    """Mark a payment as paid ("mark as paid") and provision it.

    Safe to repeat. Answers 503 with the partial result when provisioning
    stopped early; calling again resumes it.
    """
    result = await confirm_payment(
        session,
        payment_id,
        body.external_reference if body else None,
        tenant_id=auth.tenant_id,
    )
    response = ConfirmResponse(**result.as_dict())
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )
    return response


@router.post("/{payment_id}/cancel", response_model=PaymentRead)
async def cancel(
    payment_id: uuid.UUID,
    auth: Auth,
    session: Session,
    body: CancelRequest | None = None,
) -> PaymentRead:
    payment = await settle_unpaid(
        session,
        payment_id,
        PaymentStatus.CANCELED,
        body.reason if body else None,
        tenant_id=auth.tenant_id,
    )
    return PaymentRead.model_validate(payment)
