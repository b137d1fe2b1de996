"""Workflow staging record: the provisioning saga's durable intent.

One row per Payment (unique ``payment_id``). The ``snapshot`` column holds
a :class:`ProvisioningSnapshot` captured at intake time, so confirmation
never has to re-derive its inputs from live rows.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from app.models.base import TimestampMixin, new_uuid
from app.models.identity import PortalRole


class ProvisioningSnapshot(BaseModel):
    """Typed inputs shared by intake (writer) and the saga (reader)."""

    company_id: uuid.UUID
    plan_id: uuid.UUID
    plan_name: str
    add_on_ids: list[uuid.UUID] = PydanticField(default_factory=list)
    amount_net: Decimal
    amount_tax: Decimal
    amount_gross: Decimal

    customer_id: uuid.UUID | None = None
    customer_email: str | None = None
    identity_id: uuid.UUID | None = None
    portal_role: PortalRole = PortalRole.PORTAL_ADMIN

    send_welcome_email: bool = True
    # Fernet ciphertext of a generated portal password, sent once activated
    encrypted_password: str | None = None

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "ProvisioningSnapshot":
        return cls.model_validate_json(raw)


class WorkflowRecord(TimestampMixin, SQLModel, table=True):
    __tablename__ = "workflow_records"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    payment_id: uuid.UUID = Field(
        foreign_key="payments.id", unique=True, nullable=False, index=True,
    )
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", nullable=False, index=True)
    company_id: uuid.UUID = Field(foreign_key="companies.id", nullable=False, index=True)

    snapshot: str = Field(sa_column=Column(Text, nullable=False))

    # Flips False -> True exactly once: the saga's commit point
    processed: bool = Field(default=False, index=True)
    processed_at: datetime | None = Field(default=None)

    attempts: int = Field(default=0)
    last_error: str | None = Field(default=None, max_length=2000)

    def load_snapshot(self) -> ProvisioningSnapshot:
        return ProvisioningSnapshot.from_json(self.snapshot)


class WorkflowRecordRead(SQLModel):
    id: uuid.UUID
    payment_id: uuid.UUID
    company_id: uuid.UUID
    processed: bool
    processed_at: datetime | None
    attempts: int
    last_error: str | None
    created_at: datetime
    updated_at: datetime
