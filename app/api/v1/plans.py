"""Plan catalog: plans and add-ons offered at company intake."""

from fastapi import APIRouter, status
from sqlmodel import select

from app.api.deps import Auth, Session, require_elevated
from app.models.plan import Plan, PlanAddOn, PlanAddOnCreate, PlanAddOnRead, PlanCreate, PlanRead

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("", response_model=list[PlanRead])
async def list_plans(auth: Auth, session: Session, include_inactive: bool = False) -> list[PlanRead]:
    stmt = select(Plan).order_by(Plan.sort_order, Plan.name)
    if not include_inactive:
        stmt = stmt.where(Plan.is_active.is_(True))  # type: ignore[union-attr]
    result = await session.execute(stmt)
    return [PlanRead.model_validate(p) for p in result.scalars().all()]


@router.post("", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
async def create_plan(body: PlanCreate, auth: Auth, session: Session) -> PlanRead:
    require_elevated(auth)
    plan = Plan(**body.model_dump())
    session.add(plan)
    await session.commit()
    await session.refresh(plan)
    return PlanRead.model_validate(plan)


@router.get("/add-ons", response_model=list[PlanAddOnRead])
async def list_add_ons(auth: Auth, session: Session) -> list[PlanAddOnRead]:
    stmt = (
        select(PlanAddOn)
        .where(PlanAddOn.is_active.is_(True))  # type: ignore[union-attr]
        .order_by(PlanAddOn.name)
    )
    result = await session.execute(stmt)
    return [PlanAddOnRead.model_validate(a) for a in result.scalars().all()]


@router.post("/add-ons", response_model=PlanAddOnRead, status_code=status.HTTP_201_CREATED)
async def create_add_on(body: PlanAddOnCreate, auth: Auth, session: Session) -> PlanAddOnRead:
    require_elevated(auth)
    add_on = PlanAddOn(**body.model_dump())
    session.add(add_on)
    await session.commit()
    await session.refresh(add_on)
    return PlanAddOnRead.model_validate(add_on)
