"""Company intake: create a company, its optional customer and staged payment.

Nothing billable is provisioned here. When a plan carries an amount due,
the payment and its WorkflowRecord are staged and everything else waits
for the payment to be confirmed.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import insert_or_ignore
from app.core.errors import AddOnNotFound, PlanInactive, PlanNotFound, Unauthenticated
from app.core.pricing import Amounts, derive_amounts
from app.core.security import encrypt_value, encryption_configured, generate_password
from app.models.base import today
from app.models.company import Company, CompanyCreate, CompanyPaymentStatus
from app.models.customer import Customer, CustomerCreate, CustomerStatus
from app.models.identity import PortalRole
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.models.plan import Plan, PlanAddOn
from app.models.provisioning import MemberAccount, MemberAccountStatus
from app.models.workflow_record import ProvisioningSnapshot
from app.services import identity as identity_service
from app.services import notifications, workflow_store
from app.services.notifications import NotificationKind

logger = logging.getLogger(__name__)


@dataclass
class IntakeResult:
    company_id: uuid.UUID
    customer_id: uuid.UUID | None = None
    payment_id: uuid.UUID | None = None
    amount_due: Decimal | None = None
    member_account_id: uuid.UUID | None = None


@dataclass
class _PortalLogin:
    identity_id: uuid.UUID
    created: bool
    # Set only for a freshly generated password
    generated_password: str | None = None


async def _resolve_plan(session: AsyncSession, plan_id: uuid.UUID) -> Plan:
    plan = await session.get(Plan, plan_id)
    if plan is None:
        raise PlanNotFound(f"Plan {plan_id} not found")
    if not plan.is_active:
        raise PlanInactive(f"Plan {plan.name} is not available")
    return plan


async def _resolve_add_ons(
    session: AsyncSession, add_on_ids: Sequence[uuid.UUID]
) -> list[uuid.UUID]:
    wanted = list(dict.fromkeys(add_on_ids))
    if not wanted:
        return []
    stmt = select(PlanAddOn.id).where(
        PlanAddOn.id.in_(wanted),  # type: ignore[union-attr]
        PlanAddOn.is_active.is_(True),  # type: ignore[union-attr]
    )
    found = set((await session.execute(stmt)).scalars().all())
    missing = [str(a) for a in wanted if a not in found]
    if missing:
        raise AddOnNotFound(f"Unknown or inactive add-ons: {', '.join(missing)}")
    return wanted


async def _create_portal_login(
    session: AsyncSession,
    customer: Customer,
    info: CustomerCreate,
    role: PortalRole,
) -> _PortalLogin:
    generated = None if info.password else generate_password()
    identity, created = await identity_service.provision_identity(
        session,
        email=customer.email,
        password=info.password or generated,
        display_name=f"{customer.first_name} {customer.last_name}".strip(),
        role=role,
    )
    await identity_service.link_customer(session, customer.id, identity.id)
    return _PortalLogin(
        identity_id=identity.id,
        created=created,
        generated_password=generated if created else None,
    )


async def create_company_with_optional_plan(
    session: AsyncSession,
    actor_id: uuid.UUID | None,
    tenant_id: uuid.UUID,
    company_info: CompanyCreate,
    customer_info: CustomerCreate | None = None,
    plan_id: uuid.UUID | None = None,
    add_on_ids: Sequence[uuid.UUID] = (),
    *,
    create_portal_admin: bool = True,
    send_welcome_email: bool = True,
) -> IntakeResult:
    """Create the company and stage whatever its plan requires.

    Input errors (Unauthenticated, PlanNotFound, PlanInactive,
    AddOnNotFound) are raised before anything is written.
    """
    if actor_id is None:
        raise Unauthenticated("Intake requires an authenticated operator")

    plan: Plan | None = None
    selected_add_ons: list[uuid.UUID] = []
    amounts: Amounts | None = None
    if plan_id is not None:
        plan = await _resolve_plan(session, plan_id)
        selected_add_ons = await _resolve_add_ons(session, add_on_ids)
        amounts = derive_amounts(plan.monthly_price, plan.annual_price)
    due = amounts is not None and amounts.is_due

    company = Company(
        tenant_id=tenant_id,
        owner_user_id=actor_id,
        payment_status=CompanyPaymentStatus.PENDING if due else CompanyPaymentStatus.NONE_REQUIRED,
        **company_info.model_dump(),
    )
    session.add(company)
    await session.flush()

    customer: Customer | None = None
    login: _PortalLogin | None = None
    role = PortalRole.PORTAL_ADMIN if create_portal_admin else PortalRole.PORTAL_MEMBER
    if customer_info is not None:
        customer = Customer(
            tenant_id=tenant_id,
            company_id=company.id,
            email=identity_service.normalize_email(customer_info.email),
            last_name=customer_info.last_name or "Client",
            first_name=customer_info.first_name,
            phone=customer_info.phone,
            address=customer_info.address,
            postal_code=customer_info.postal_code,
            city=customer_info.city,
            status=CustomerStatus.PENDING if due else CustomerStatus.ACTIVE,
        )
        session.add(customer)
        await session.flush()
        login = await _create_portal_login(session, customer, customer_info, role)

    result = IntakeResult(
        company_id=company.id,
        customer_id=customer.id if customer else None,
    )

    if plan is not None and amounts is not None and amounts.is_due:
        encrypted_password = None
        if login and login.generated_password and send_welcome_email:
            if encryption_configured():
                encrypted_password = encrypt_value(login.generated_password)
            else:
                logger.warning(
                    "ENCRYPTION_KEY not configured; credentials email for company %s will not be sent",
                    company.id,
                )
        snapshot = ProvisioningSnapshot(
            company_id=company.id,
            plan_id=plan.id,
            plan_name=plan.name,
            add_on_ids=selected_add_ons,
            amount_net=amounts.net,
            amount_tax=amounts.tax,
            amount_gross=amounts.gross,
            customer_id=customer.id if customer else None,
            customer_email=customer.email if customer else None,
            identity_id=login.identity_id if login else None,
            portal_role=role,
            send_welcome_email=send_welcome_email,
            encrypted_password=encrypted_password,
        )
        payment = Payment(
            tenant_id=tenant_id,
            company_id=company.id,
            amount_net=amounts.net,
            amount_tax=amounts.tax,
            amount_gross=amounts.gross,
            status=PaymentStatus.PENDING,
            method=PaymentMethod.CARD,
            due_date=today() + timedelta(days=get_settings().payment_due_days),
            snapshot=snapshot.to_json(),
        )
        session.add(payment)
        await session.flush()
        await workflow_store.stage(session, payment=payment, snapshot=snapshot)
        result.payment_id = payment.id
        result.amount_due = amounts.gross
    elif customer is not None and login is not None:
        account = MemberAccount(
            tenant_id=tenant_id,
            company_id=company.id,
            customer_id=customer.id,
            identity_id=login.identity_id,
            role=role,
            status=MemberAccountStatus.ACTIVE,
        )
        await insert_or_ignore(session, account, ["customer_id"])
        stmt = select(MemberAccount.id).where(MemberAccount.customer_id == customer.id)
        result.member_account_id = (await session.execute(stmt)).scalar_one()

    await session.commit()
    logger.info(
        "Intake created company %s (payment %s, amount due %s)",
        company.id, result.payment_id, result.amount_due,
    )

    if not due and customer is not None and send_welcome_email:
        await _notify_new_member(company, customer, login)
    return result


async def _notify_new_member(
    company: Company, customer: Customer, login: _PortalLogin | None
) -> None:
    if login and login.generated_password:
        await notifications.notify(
            NotificationKind.MEMBER_CREDENTIALS,
            customer.email,
            {
                "company_name": company.legal_name,
                "email": customer.email,
                "password": login.generated_password,
            },
        )
    else:
        await notifications.notify(
            NotificationKind.WELCOME,
            customer.email,
            {"company_name": company.legal_name, "email": customer.email},
        )
