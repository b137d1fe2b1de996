"""Portal identities and the customer ↔ identity link table."""

import uuid
from enum import StrEnum

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class PortalRole(StrEnum):
    PORTAL_ADMIN = "portal_admin"
    PORTAL_MEMBER = "portal_member"


class PortalIdentity(TimestampMixin, SQLModel, table=True):
    """Login identity for the member portal (one per email address)."""

    __tablename__ = "portal_identities"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(max_length=320, unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    display_name: str = Field(default="", max_length=255)
    role: PortalRole = Field(default=PortalRole.PORTAL_MEMBER)
    is_active: bool = Field(default=True)


class CustomerIdentity(TimestampMixin, SQLModel, table=True):
    __tablename__ = "customer_identities"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    customer_id: uuid.UUID = Field(
        foreign_key="customers.id", unique=True, nullable=False, index=True,
    )
    identity_id: uuid.UUID = Field(foreign_key="portal_identities.id", nullable=False, index=True)
