"""Plan catalog endpoints."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.core.security import create_jwt
from app.models import User, UserRole


@pytest.mark.asyncio
async def test_create_and_list_plans(client: AsyncClient, operator):
    resp = await client.post("/v1/plans", json={
        "name": "Annuel",
        "monthly_price": "0",
        "annual_price": "1200",
        "sort_order": 2,
    }, headers=operator["headers"])
    assert resp.status_code == 201, resp.text
    assert Decimal(resp.json()["annual_price"]) == Decimal("1200")

    await client.post("/v1/plans", json={
        "name": "Retire", "monthly_price": "10", "is_active": False,
    }, headers=operator["headers"])

    resp = await client.get("/v1/plans", headers=operator["headers"])
    assert [p["name"] for p in resp.json()] == ["Annuel"]

    resp = await client.get("/v1/plans?include_inactive=true", headers=operator["headers"])
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_annual_plan_amount_at_intake(client: AsyncClient, operator):
    resp = await client.post("/v1/plans", json={
        "name": "Annuel", "monthly_price": "0", "annual_price": "1200",
    }, headers=operator["headers"])
    plan_id = resp.json()["id"]

    resp = await client.post("/v1/companies", json={
        "company": {"legal_name": "Annuelle SAS"},
        "plan_id": plan_id,
    }, headers=operator["headers"])
    payment_id = resp.json()["payment_id"]

    resp = await client.get(f"/v1/payments/{payment_id}", headers=operator["headers"])
    payment = resp.json()
    assert Decimal(payment["amount_net"]) == Decimal("100.00")
    assert Decimal(payment["amount_gross"]) == Decimal("120.00")
    assert payment["status"] == "pending"


@pytest.mark.asyncio
async def test_add_ons(client: AsyncClient, operator):
    resp = await client.post("/v1/plans/add-ons", json={
        "name": "Domiciliation", "monthly_price": "15.00",
    }, headers=operator["headers"])
    assert resp.status_code == 201

    resp = await client.get("/v1/plans/add-ons", headers=operator["headers"])
    assert [a["name"] for a in resp.json()] == ["Domiciliation"]


@pytest.mark.asyncio
async def test_members_cannot_edit_catalog(client: AsyncClient, operator, session):
    member = User(
        tenant_id=operator["tenant_id"],
        email="member@cabinet-martin.fr",
        password_hash="x",
        role=UserRole.MEMBER,
    )
    session.add(member)
    await session.commit()
    token = create_jwt(str(member.id), str(operator["tenant_id"]), role=UserRole.MEMBER)
    headers = {"Authorization": f"Bearer {token}"}

    resp = await client.post("/v1/plans", json={"name": "Pirate"}, headers=headers)
    assert resp.status_code == 403

    resp = await client.get("/v1/plans", headers=headers)
    assert resp.status_code == 200
