"""Customer model: a contact attached to a company."""

import uuid
from enum import StrEnum

from pydantic import EmailStr
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class CustomerStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"


class Customer(TimestampMixin, SQLModel, table=True):
    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)

    email: str = Field(max_length=320, nullable=False, index=True)
    last_name: str = Field(default="Client", max_length=255)
    first_name: str = Field(default="", max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)

    status: CustomerStatus = Field(default=CustomerStatus.PENDING)


# ── Pydantic schemas ─────────────────────────────────────────

class CustomerCreate(SQLModel):
    email: EmailStr
    last_name: str = Field(default="", max_length=255)
    first_name: str = Field(default="", max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=500)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    # Generated when omitted
    password: str | None = Field(default=None, min_length=8, max_length=128)


class CustomerRead(SQLModel):
    id: uuid.UUID
    company_id: uuid.UUID
    email: str
    last_name: str
    first_name: str
    status: CustomerStatus
