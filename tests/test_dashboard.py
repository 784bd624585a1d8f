from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Student
from conftest import create_user, login


async def _assign_and_pay(client: AsyncClient, headers, fee_setup) -> None:
    await client.post(
        "/api/v1/fees/assign",
        headers=headers,
        json={
            "class_id": fee_setup["class_id"],
            "session_id": fee_setup["session_id"],
            "fee_type_ids": [fee_setup["tuition_id"], fee_setup["library_id"]],
        },
    )
    response = await client.post(
        "/api/v1/fees/collect",
        headers=headers,
        json={
            "student_id": fee_setup["student_ids"][0],
            "fee_type_id": fee_setup["tuition_id"],
            "session_id": fee_setup["session_id"],
            "amount_paid": "500.00",
            "payment_date": date.today().isoformat(),
            "payment_mode": "cash",
        },
    )
    assert response.status_code == 201, response.text


@pytest.mark.asyncio
async def test_admin_dashboard(
    client: AsyncClient, db_session: AsyncSession, admin_headers, accountant_headers, fee_setup
) -> None:
    await create_user(db_session, "teacher", "retired@example.com", status="inactive")
    await _assign_and_pay(client, accountant_headers, fee_setup)

    response = await client.get(
        "/api/v1/dashboard", headers=admin_headers, params={"session_id": fee_setup["session_id"]}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Admin dashboard data retrieved successfully"
    data = body["data"]
    assert data["role"] == "admin"
    assert data["total_students"] == 3
    assert data["total_teachers"] == 0
    assert data["total_classes"] == 1
    assert data["total_sections"] == 2
    assert data["fee_collection_rate"] == 6.67
    assert data["system_health"] == {"status": "healthy", "database": "connected", "active_users": 2}

    activities = data["recent_activities"]
    assert len(activities) == 4
    assert activities[0]["action"] == "Fee payment received"
    assert activities[0]["user"] == "Asha Rao"
    assert activities[0]["details"] == f"Receipt RCPT{date.today():%Y%m}0001: 500.00"
    assert {a["id"] for a in activities[1:]} == {f"student-{i}" for i in fee_setup["student_ids"]}


@pytest.mark.asyncio
async def test_session_required_for_staff(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/v1/dashboard", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["errors"] == {"session_id": ["The session id field is required."]}

    unknown = await client.get("/api/v1/dashboard", headers=admin_headers, params={"session_id": 404})
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_teacher_dashboard(client: AsyncClient, teacher_headers, school) -> None:
    response = await client.get(
        "/api/v1/dashboard", headers=teacher_headers, params={"session_id": school["session_id"]}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["role"] == "teacher"
    assert data["total_students"] == 3
    assert data["classes"] == [
        {"id": school["class_id"], "name": "Class 5", "sections_count": 2, "students_count": 3}
    ]


@pytest.mark.asyncio
async def test_accountant_dashboard(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign_and_pay(client, accountant_headers, fee_setup)

    response = await client.get(
        "/api/v1/dashboard", headers=accountant_headers, params={"session_id": fee_setup["session_id"]}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["todays_collection"]["count"] == 1
    assert Decimal(data["todays_collection"]["amount"]) == Decimal("500")
    assert data["pending_dues"]["count"] == 6
    assert Decimal(data["pending_dues"]["amount"]) == Decimal("7000")
    assert data["pending_dues"]["overdue_count"] == 0
    assert data["monthly_summary"]["current_month"] == date.today().strftime("%Y-%m")
    assert Decimal(data["monthly_summary"]["current_month_amount"]) == Decimal("500")
    assert data["monthly_summary"]["change_percentage"] is None
    assert len(data["recent_transactions"]) == 1


@pytest.mark.asyncio
async def test_student_dashboard(client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup) -> None:
    await _assign_and_pay(client, accountant_headers, fee_setup)
    user = await create_user(db_session, "student", "asha@example.com", name="Asha Rao")
    student = await db_session.get(Student, fee_setup["student_ids"][0])
    student.user_id = user.id
    await db_session.commit()

    headers = await login(client, "asha@example.com")
    response = await client.get("/api/v1/dashboard", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Student dashboard data retrieved successfully"
    data = body["data"]
    assert data["class_info"]["admission_no"] == "ADM-001"
    assert data["class_info"]["section_name"] == "A"
    assert data["class_info"]["session_name"] == "2025-2026"
    assert Decimal(data["fee_summary"]["total_remaining"]) == Decimal("2000")
    assert data["fee_summary"]["partial_count"] == 1
    assert data["fee_summary"]["pending_count"] == 1


@pytest.mark.asyncio
async def test_student_without_record(client: AsyncClient, db_session: AsyncSession, school) -> None:
    await create_user(db_session, "student", "orphan@example.com")
    headers = await login(client, "orphan@example.com")

    response = await client.get("/api/v1/dashboard", headers=headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Student record not found"
