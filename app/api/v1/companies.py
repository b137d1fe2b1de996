"""Company intake endpoint and company lookup: scoped to tenant_id."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.api.deps import Auth, Session
from app.core.errors import CompanyNotFound
from app.models.company import Company, CompanyCreate, CompanyRead
from app.models.customer import CustomerCreate
from app.services.intake import create_company_with_optional_plan

router = APIRouter(prefix="/companies", tags=["companies"])


class IntakeRequest(BaseModel):
    company: CompanyCreate
    customer: CustomerCreate | None = None
    plan_id: uuid.UUID | None = None
    add_on_ids: list[uuid.UUID] = Field(default_factory=list)
    create_portal_admin: bool = True
    send_welcome_email: bool = True


class IntakeResponse(BaseModel):
    company_id: uuid.UUID
    customer_id: uuid.UUID | None = None
    payment_id: uuid.UUID | None = None
    amount_due: Decimal | None = None
    member_account_id: uuid.UUID | None = None


@router.post("", response_model=IntakeResponse, status_code=status.HTTP_201_CREATED)
async def create_company(body: IntakeRequest, auth: Auth, session: Session) -> IntakeResponse:
    """Create a company, its optional customer and, for a paid plan, a pending payment."""
    result = await create_company_with_optional_plan(
        session,
        auth.user_id,
        auth.tenant_id,
        body.company,
        body.customer,
        body.plan_id,
        body.add_on_ids,
        create_portal_admin=body.create_portal_admin,
        send_welcome_email=body.send_welcome_email,
    )
    return IntakeResponse(
        company_id=result.company_id,
        customer_id=result.customer_id,
        payment_id=result.payment_id,
        amount_due=result.amount_due,
        member_account_id=result.member_account_id,
    )


@router.get("/{company_id}", response_model=CompanyRead)
async def get_company(company_id: uuid.UUID, auth: Auth, session: Session) -> CompanyRead:
    company = await session.get(Company, company_id)
    if company is None or company.tenant_id != auth.tenant_id:
        raise CompanyNotFound(f"Company {company_id} not found")
    return CompanyRead.model_validate(company)
