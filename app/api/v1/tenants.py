"""Operator onboarding: create a tenant with its owner and first API token."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlmodel import select

from app.api.deps import Session
from app.core.security import generate_api_token, hash_api_token, hash_password
from app.models.api_token import ApiToken
from app.models.tenant import Tenant, TenantRead
from app.models.user import User, UserRead, UserRole

router = APIRouter(prefix="/tenants", tags=["tenants"])


class TenantBootstrapRequest(BaseModel):
    tenant_name: str = Field(max_length=255)
    tenant_slug: str = Field(max_length=100, pattern=r"^[a-z0-9\-]+$")
    owner_email: EmailStr
    owner_password: str = Field(min_length=8, max_length=128)
    owner_display_name: str = Field(default="", max_length=255)


class TenantBootstrapResponse(BaseModel):
    tenant: TenantRead
    owner: UserRead
    api_token: str = Field(description="Returned once, never stored in clear")
    token_prefix: str


@router.post(
    "",
    response_model=TenantBootstrapResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a tenant and its owner",
)
async def bootstrap_tenant(
    body: TenantBootstrapRequest,
    session: Session,
) -> TenantBootstrapResponse:
    """Unauthenticated: the owner uses the returned token for everything else."""
    taken = await session.execute(select(Tenant.id).where(Tenant.slug == body.tenant_slug))
    if taken.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Slug '{body.tenant_slug}' is already taken",
        )

    tenant = Tenant(name=body.tenant_name, slug=body.tenant_slug)
    session.add(tenant)
    await session.flush()

    owner = User(
        tenant_id=tenant.id,
        email=str(body.owner_email).lower(),
        password_hash=hash_password(body.owner_password),
        display_name=body.owner_display_name,
        role=UserRole.OWNER,
    )
    session.add(owner)
    await session.flush()

    raw_token = generate_api_token()
    session.add(
        ApiToken(
            tenant_id=tenant.id,
            user_id=owner.id,
            name="bootstrap",
            token_hash=hash_api_token(raw_token),
            token_prefix=raw_token[:8],
        )
    )
    await session.commit()

    return TenantBootstrapResponse(
        tenant=TenantRead.model_validate(tenant),
        owner=UserRead.model_validate(owner),
        api_token=raw_token,
        token_prefix=raw_token[:8],
    )
