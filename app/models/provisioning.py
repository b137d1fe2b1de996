"""Records derived from a confirmed payment: invoice, subscription, member account."""

import uuid
from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from app.models.base import TimestampMixin, new_uuid
from app.models.identity import PortalRole


class InvoiceStatus(StrEnum):
    ISSUED = "issued"
    PAID = "paid"
    VOID = "void"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELED = "canceled"
    EXPIRED = "expired"


class MemberAccountStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"


class Invoice(TimestampMixin, SQLModel, table=True):
    __tablename__ = "invoices"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    # At most one invoice per payment
    payment_id: uuid.UUID = Field(
        foreign_key="payments.id", unique=True, nullable=False, index=True,
    )
    customer_id: uuid.UUID | None = Field(default=None, foreign_key="customers.id")

    number: str = Field(max_length=50, unique=True, nullable=False)
    amount_net: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    amount_tax: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    amount_gross: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    status: InvoiceStatus = Field(default=InvoiceStatus.PAID)
    issued_on: date = Field(nullable=False)


class Subscription(TimestampMixin, SQLModel, table=True):
    __tablename__ = "subscriptions"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    plan_id: uuid.UUID = Field(foreign_key="plans.id", nullable=False, index=True)
    payment_id: uuid.UUID = Field(
        foreign_key="payments.id", unique=True, nullable=False, index=True,
    )
    customer_id: uuid.UUID | None = Field(default=None, foreign_key="customers.id")

    status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE)
    period_start: date = Field(nullable=False)
    period_end: date = Field(nullable=False)
    monthly_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)

    # JSON array of add-on ids selected at intake
    add_on_ids: str = Field(default="[]", sa_column=Column(Text, nullable=False, server_default="[]"))


class MemberAccount(TimestampMixin, SQLModel, table=True):
    __tablename__ = "member_accounts"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)
    customer_id: uuid.UUID = Field(
        foreign_key="customers.id", unique=True, nullable=False, index=True,
    )
    identity_id: uuid.UUID = Field(foreign_key="portal_identities.id", nullable=False)
    subscription_id: uuid.UUID | None = Field(default=None, foreign_key="subscriptions.id")

    role: PortalRole = Field(default=PortalRole.PORTAL_MEMBER)
    status: MemberAccountStatus = Field(default=MemberAccountStatus.PENDING)


# ── Pydantic schemas ─────────────────────────────────────────

class InvoiceRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID
    payment_id: uuid.UUID
    number: str
    amount_net: Decimal
    amount_tax: Decimal
    amount_gross: Decimal
    status: InvoiceStatus
    issued_on: date


class SubscriptionRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID
    plan_id: uuid.UUID
    payment_id: uuid.UUID
    status: SubscriptionStatus
    period_start: date
    period_end: date
    monthly_amount: Decimal


class MemberAccountRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID
    customer_id: uuid.UUID
    identity_id: uuid.UUID
    role: PortalRole
    status: MemberAccountStatus
