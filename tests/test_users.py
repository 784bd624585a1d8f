import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User


def _user_payload(**overrides) -> dict:
    payload = {
        "name": "Ravi Menon",
        "email": "ravi@example.com",
        "username": "ravi",
        "password": "LongEnough1",
        "role": "teacher",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_admin_creates_user(client: AsyncClient, db_session: AsyncSession, admin_headers) -> None:
    response = await client.post("/api/v1/users", headers=admin_headers, json=_user_payload())
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["role"] == "teacher"
    assert data["status"] == "active"
    assert "password" not in data and "password_hash" not in data

    user = (await db_session.execute(select(User).where(User.email == "ravi@example.com"))).scalar_one()
    assert user.password_hash != "LongEnough1"


@pytest.mark.asyncio
async def test_duplicate_email_rejected(client: AsyncClient, admin_headers) -> None:
    first = await client.post("/api/v1/users", headers=admin_headers, json=_user_payload())
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/users", headers=admin_headers, json=_user_payload(username="ravi2", email="RAVI@example.com")
    )
    assert second.status_code == 422
    body = second.json()
    assert body["success"] is False
    assert body["errors"]["email"] == ["The email has already been taken."]


@pytest.mark.asyncio
async def test_admin_cannot_create_superadmin(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/users", headers=admin_headers, json=_user_payload(role="superadmin")
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Only a superadmin can manage superadmin accounts"


@pytest.mark.asyncio
async def test_list_filters_by_role(client: AsyncClient, admin_headers) -> None:
    await client.post("/api/v1/users", headers=admin_headers, json=_user_payload())
    await client.post(
        "/api/v1/users",
        headers=admin_headers,
        json=_user_payload(name="Fee Desk", email="desk@example.com", username="desk", role="accountant"),
    )

    response = await client.get("/api/v1/users", headers=admin_headers, params={"role": "accountant"})
    assert response.status_code == 200
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["username"] == "desk"


@pytest.mark.asyncio
async def test_cannot_delete_own_account(client: AsyncClient, db_session: AsyncSession, admin_headers) -> None:
    me = (await client.get("/api/v1/auth/me", headers=admin_headers)).json()["data"]["user"]

    response = await client.delete(f"/api/v1/users/{me['id']}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete your own account"


@pytest.mark.asyncio
async def test_non_admin_cannot_manage_users(client: AsyncClient, accountant_headers) -> None:
    response = await client.get("/api/v1/users", headers=accountant_headers)
    assert response.status_code == 403
