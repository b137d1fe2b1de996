"""Payment model: one billing attempt for a company."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"


class PaymentMethod(StrEnum):
    CARD = "card"
    TRANSFER = "transfer"


class Payment(TimestampMixin, SQLModel, table=True):
    __tablename__ = "payments"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)

    amount_net: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    amount_tax: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    amount_gross: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    currency: str = Field(default="EUR", max_length=3)

    # pending -> paid | failed | canceled; paid is terminal
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True)
    method: PaymentMethod = Field(default=PaymentMethod.CARD)
    due_date: date | None = Field(default=None)
    paid_at: datetime | None = Field(default=None)
    failure_reason: str | None = Field(default=None, max_length=500)

    # Attached once, first writer wins
    external_reference: str | None = Field(default=None, max_length=255, index=True)

    # ProvisioningSnapshot JSON captured at creation time
    snapshot: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))


class PaymentRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID
    amount_net: Decimal
    amount_tax: Decimal
    amount_gross: Decimal
    currency: str
    status: PaymentStatus
    method: PaymentMethod
    due_date: date | None
    paid_at: datetime | None
    external_reference: str | None
    created_at: datetime
