from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeMaster, StudentFee


# --- Fee groups ---
@pytest.mark.asyncio
async def test_fee_group_crud(client: AsyncClient, admin_headers, school) -> None:
    created = await client.post(
        "/api/v1/fee-groups",
        headers=admin_headers,
        json={"name": "Transport", "session_id": school["session_id"]},
    )
    assert created.status_code == 201
    group_id = created.json()["data"]["id"]

    duplicate = await client.post(
        "/api/v1/fee-groups",
        headers=admin_headers,
        json={"name": "transport", "session_id": school["session_id"]},
    )
    assert duplicate.status_code == 422
    assert duplicate.json()["message"] == "A fee group with this name already exists in the selected session"

    updated = await client.put(f"/api/v1/fee-groups/{group_id}", headers=admin_headers, json={"is_active": False})
    assert updated.json()["data"]["is_active"] is False

    active = await client.get("/api/v1/fee-groups/active", headers=admin_headers, params={"session_id": school["session_id"]})
    assert group_id not in [g["id"] for g in active.json()["data"]]

    deleted = await client.delete(f"/api/v1/fee-groups/{group_id}", headers=admin_headers)
    assert deleted.status_code == 200


@pytest.mark.asyncio
async def test_fee_group_with_types_cannot_be_deleted(client: AsyncClient, admin_headers, fee_setup) -> None:
    listing = await client.get("/api/v1/fee-groups", headers=admin_headers, params={"session_id": fee_setup["session_id"]})
    assert listing.json()["data"][0]["fee_types_count"] == 2

    response = await client.delete(f"/api/v1/fee-groups/{fee_setup['fee_group_id']}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete fee group. It contains fee types."


# --- Fee types ---
@pytest.mark.asyncio
async def test_fee_type_due_date_cannot_be_past(client: AsyncClient, admin_headers, fee_setup) -> None:
    response = await client.post(
        "/api/v1/fee-types",
        headers=admin_headers,
        json={
            "name": "Exam",
            "amount": "300.00",
            "fee_group_id": fee_setup["fee_group_id"],
            "session_id": fee_setup["session_id"],
            "due_date": (date.today() - timedelta(days=1)).isoformat(),
        },
    )
    assert response.status_code == 422
    assert response.json()["message"] == "The due date must be today or later"


@pytest.mark.asyncio
async def test_fee_type_rejects_negative_amount(client: AsyncClient, admin_headers, fee_setup) -> None:
    response = await client.post(
        "/api/v1/fee-types",
        headers=admin_headers,
        json={
            "name": "Refund",
            "amount": "-1",
            "fee_group_id": fee_setup["fee_group_id"],
            "session_id": fee_setup["session_id"],
        },
    )
    assert response.status_code == 422
    assert "amount" in response.json()["errors"]


@pytest.mark.asyncio
async def test_fee_type_group_must_share_session(client: AsyncClient, admin_headers, fee_setup) -> None:
    other = await client.post(
        "/api/v1/sessions",
        headers=admin_headers,
        json={"name": "2031-2032", "start_date": "2031-04-01", "end_date": "2032-03-31"},
    )
    response = await client.post(
        "/api/v1/fee-types",
        headers=admin_headers,
        json={
            "name": "Sports",
            "amount": "100",
            "fee_group_id": fee_setup["fee_group_id"],
            "session_id": other.json()["data"]["id"],
        },
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Fee group does not belong to the selected session"


@pytest.mark.asyncio
async def test_fee_type_in_use_cannot_be_deleted(
    client: AsyncClient, db_session: AsyncSession, admin_headers, fee_setup
) -> None:
    db_session.add(
        StudentFee(
            student_id=fee_setup["student_ids"][0],
            fee_type_id=fee_setup["library_id"],
            session_id=fee_setup["session_id"],
            amount_due=Decimal("500.00"),
            amount_paid=Decimal("0"),
        )
    )
    await db_session.commit()

    response = await client.delete(f"/api/v1/fee-types/{fee_setup['library_id']}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete fee type. It is assigned to students."


@pytest.mark.asyncio
async def test_fee_types_by_group(client: AsyncClient, accountant_headers, fee_setup) -> None:
    response = await client.get(f"/api/v1/fee-types/by-group/{fee_setup['fee_group_id']}", headers=accountant_headers)
    assert response.status_code == 200
    assert sorted(t["name"] for t in response.json()["data"]) == ["Library", "Tuition"]



@pytest.mark.asyncio
async def test_moving_fee_type_moves_its_fee_master_rows(
    client: AsyncClient, db_session: AsyncSession, admin_headers, fee_setup
) -> None:
    other = await client.post(
        "/api/v1/fee-groups",
        headers=admin_headers,
        json={"name": "Extras", "session_id": fee_setup["session_id"]},
    )
    other_id = other.json()["data"]["id"]

    response = await client.put(
        f"/api/v1/fee-types/{fee_setup['library_id']}", headers=admin_headers, json={"fee_group_id": other_id}
    )
    assert response.status_code == 200
    assert response.json()["data"]["fee_group_name"] == "Extras"

    groups = (
        await db_session.execute(
            select(FeeMaster.fee_group_id).where(FeeMaster.fee_type_id == fee_setup["library_id"])
        )
    ).scalars().all()
    assert groups == [other_id]

    summary = await client.get(
        "/api/v1/fee-master/class-summary",
        headers=admin_headers,
        params={"class_id": fee_setup["class_id"], "session_id": fee_setup["session_id"]},
    )
    by_group = {
        g["fee_group_name"]: [t["fee_type_name"] for t in g["fee_types"]]
        for g in summary.json()["data"]["fee_groups"]
    }
    assert by_group == {"Extras": ["Library"], "Tuition & Academic Fees": ["Tuition"]}


# --- Fee master ---
@pytest.mark.asyncio
async def test_fee_master_duplicate_combination(client: AsyncClient, admin_headers, fee_setup) -> None:
    response = await client.post(
        "/api/v1/fee-master",
        headers=admin_headers,
        json={
            "fee_group_id": fee_setup["fee_group_id"],
            "fee_type_id": fee_setup["tuition_id"],
            "class_id": fee_setup["class_id"],
            "session_id": fee_setup["session_id"],
            "amount": "2500.00",
        },
    )
    assert response.status_code == 422
    assert response.json()["message"] == (
        "A fee master entry already exists for this fee type, class, and session combination"
    )


@pytest.mark.asyncio
async def test_fee_master_type_must_belong_to_group(client: AsyncClient, admin_headers, fee_setup) -> None:
    group = await client.post(
        "/api/v1/fee-groups",
        headers=admin_headers,
        json={"name": "Hostel", "session_id": fee_setup["session_id"]},
    )
    response = await client.post(
        "/api/v1/fee-master",
        headers=admin_headers,
        json={
            "fee_group_id": group.json()["data"]["id"],
            "fee_type_id": fee_setup["tuition_id"],
            "class_id": fee_setup["class_id"],
            "session_id": fee_setup["session_id"],
            "amount": "100",
        },
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Fee type does not belong to the selected fee group"


@pytest.mark.asyncio
async def test_fee_master_delete_blocked_once_assigned(client: AsyncClient, admin_headers, fee_setup) -> None:
    listing = await client.get(
        "/api/v1/fee-master",
        headers=admin_headers,
        params={"session_id": fee_setup["session_id"], "fee_type_id": fee_setup["tuition_id"]},
    )
    entry_id = listing.json()["data"]["items"][0]["id"]

    assign = await client.post(
        "/api/v1/fees/assign",
        headers=admin_headers,
        json={
            "class_id": fee_setup["class_id"],
            "session_id": fee_setup["session_id"],
            "fee_type_ids": [fee_setup["tuition_id"]],
        },
    )
    assert assign.status_code == 200

    response = await client.delete(f"/api/v1/fee-master/{entry_id}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete fee master entry. It is already assigned to students."


@pytest.mark.asyncio
async def test_class_fee_summary(client: AsyncClient, accountant_headers, fee_setup) -> None:
    response = await client.get(
        "/api/v1/fee-master/class-summary",
        headers=accountant_headers,
        params={"class_id": fee_setup["class_id"], "session_id": fee_setup["session_id"]},
    )
    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["total_fee_types"] == 2
    assert Decimal(summary["total_amount"]) == Decimal("2500")
    assert summary["fee_groups"][0]["fee_group_name"] == "Tuition & Academic Fees"
    assert len(summary["fee_groups"][0]["fee_types"]) == 2
