"""Company model: the tenant-owner business entity."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class CompanyPaymentStatus(StrEnum):
    NONE_REQUIRED = "none_required"
    PENDING = "pending"
    PAID = "paid"


class Company(TimestampMixin, SQLModel, table=True):
    __tablename__ = "companies"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    owner_user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    legal_name: str = Field(max_length=255, nullable=False)
    legal_form: str = Field(default="SARL", max_length=50)
    registration_number: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)

    # Mutated only by the payment confirmation flow once set at intake
    payment_status: CompanyPaymentStatus = Field(default=CompanyPaymentStatus.NONE_REQUIRED)


# ── Pydantic schemas ─────────────────────────────────────────

class CompanyRead(SQLModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    owner_user_id: uuid.UUID
    legal_name: str
    legal_form: str
    registration_number: str | None
    email: str | None
    phone: str | None
    address: str | None
    postal_code: str | None
    city: str | None
    payment_status: CompanyPaymentStatus
    created_at: datetime


class CompanyCreate(SQLModel):
    legal_name: str = Field(min_length=1, max_length=255)
    legal_form: str = Field(default="SARL", max_length=50)
    registration_number: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
