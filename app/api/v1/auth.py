"""Operator login (JWT) and the current-operator lookup."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlmodel import select

from app.api.deps import Auth, Session
from app.core.errors import Unauthenticated
from app.core.security import create_jwt, verify_password
from app.models.tenant import Tenant, TenantRead
from app.models.user import User, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
    tenant: TenantRead


class MeResponse(BaseModel):
    user: UserRead
    tenant: TenantRead
    is_elevated: bool


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, session: Session) -> LoginResponse:
    """Exchange operator credentials for a short-lived JWT."""
    result = await session.execute(select(User).where(User.email == str(body.email).lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(body.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")

    tenant = await session.get(Tenant, user.tenant_id)
    if not user.is_active or tenant is None or not tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    return LoginResponse(
        access_token=create_jwt(
            subject=str(user.id),
            tenant_id=str(user.tenant_id),
            role=user.role,
        ),
        user=UserRead.model_validate(user),
        tenant=TenantRead.model_validate(tenant),
    )


@router.get("/me", response_model=MeResponse)
async def get_me(auth: Auth, session: Session) -> MeResponse:
    user = await session.get(User, auth.user_id)
    tenant = await session.get(Tenant, auth.tenant_id)
    if user is None or tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Operator not found")
    return MeResponse(
        user=UserRead.model_validate(user),
        tenant=TenantRead.model_validate(tenant),
        is_elevated=auth.is_elevated,
    )
