"""Portal identity provisioning: create or re-link a login for a customer."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import insert_or_ignore, upsert
from app.core.security import hash_password
from app.models.identity import CustomerIdentity, PortalIdentity, PortalRole

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_identity_by_email(session: AsyncSession, email: str) -> PortalIdentity | None:
    stmt = select(PortalIdentity).where(PortalIdentity.email == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def provision_identity(
    session: AsyncSession,
    *,
    email: str,
    password: str,
    display_name: str = "",
    role: PortalRole = PortalRole.PORTAL_MEMBER,
) -> tuple[PortalIdentity, bool]:
    """Create a portal identity, or re-link the one already registered for *email*.

    Returns ``(identity, created)``. An email conflict is never an error:
    the existing identity is returned untouched and ``created`` is False.
    """
    candidate = PortalIdentity(
        email=normalize_email(email),
        password_hash=hash_password(password),
        display_name=display_name,
        role=role,
    )
    created = await insert_or_ignore(session, candidate, ["email"])
    identity = await get_identity_by_email(session, email)
    if identity is None:
        raise RuntimeError(f"Portal identity for {email} vanished after insert")
    if not created:
        logger.info("Portal identity %s already registered, re-linking", identity.id)
    return identity, created


async def link_customer(
    session: AsyncSession, customer_id: uuid.UUID, identity_id: uuid.UUID
) -> None:
    """Bind a customer to its identity (one identity per customer)."""
    await upsert(
        session,
        CustomerIdentity(customer_id=customer_id, identity_id=identity_id),
        index_elements=["customer_id"],
        update_columns=["identity_id", "updated_at"],
    )
