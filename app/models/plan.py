"""Plan catalog: subscription plans and their optional add-ons."""

import uuid
from decimal import Decimal

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class Plan(TimestampMixin, SQLModel, table=True):
    __tablename__ = "plans"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    description: str = Field(default="", max_length=1000)
    monthly_price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    annual_price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)


class PlanAddOn(TimestampMixin, SQLModel, table=True):
    __tablename__ = "plan_add_ons"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    description: str = Field(default="", max_length=1000)
    monthly_price: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    is_active: bool = Field(default=True)


# ── Pydantic schemas ─────────────────────────────────────────

class PlanCreate(SQLModel):
    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    monthly_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    annual_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    is_active: bool = True
    sort_order: int = 0


class PlanRead(SQLModel):
    id: uuid.UUID
    name: str
    description: str
    monthly_price: Decimal
    annual_price: Decimal
    is_active: bool
    sort_order: int


class PlanAddOnCreate(SQLModel):
    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)
    monthly_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    is_active: bool = True


class PlanAddOnRead(SQLModel):
    id: uuid.UUID
    name: str
    description: str
    monthly_price: Decimal
    is_active: bool
