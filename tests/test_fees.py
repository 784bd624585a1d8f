from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeTransaction, FeeType, StudentFee


async def _assign(client: AsyncClient, headers, fee_setup, fee_type_ids=None, **extra):
    payload = {
        "class_id": fee_setup["class_id"],
        "session_id": fee_setup["session_id"],
        "fee_type_ids": fee_type_ids or [fee_setup["tuition_id"], fee_setup["library_id"]],
    }
    payload.update(extra)
    return await client.post("/api/v1/fees/assign", headers=headers, json=payload)


async def _collect(client: AsyncClient, headers, fee_setup, student_id: int, fee_type_id: int, amount: str, **extra):
    payload = {
        "student_id": student_id,
        "fee_type_id": fee_type_id,
        "session_id": fee_setup["session_id"],
        "amount_paid": amount,
        "payment_date": date.today().isoformat(),
        "payment_mode": "cash",
    }
    payload.update(extra)
    return await client.post("/api/v1/fees/collect", headers=headers, json=payload)


# --- Assignment ---
@pytest.mark.asyncio
async def test_assign_is_idempotent(client: AsyncClient, accountant_headers, fee_setup) -> None:
    first = await _assign(client, accountant_headers, fee_setup)
    assert first.status_code == 200
    result = first.json()["data"]
    assert result == {"assigned_count": 6, "skipped_count": 0, "total_students": 3, "errors": []}

    second = (await _assign(client, accountant_headers, fee_setup)).json()["data"]
    assert second["assigned_count"] == 0
    assert second["skipped_count"] == 6
    assert "Fee type 'Library' already assigned to student 'Asha Rao'" in second["errors"]


@pytest.mark.asyncio
async def test_assign_uses_class_price_and_section_filter(
    client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup
) -> None:
    # Fee type default differs from the class price; the class price wins
    tuition = await db_session.get(FeeType, fee_setup["tuition_id"])
    tuition.amount = Decimal("9999.00")
    await db_session.commit()

    response = await _assign(
        client,
        accountant_headers,
        fee_setup,
        fee_type_ids=[fee_setup["tuition_id"]],
        section_id=fee_setup["section_a_id"],
        notes="Term 1",
    )
    assert response.json()["data"]["total_students"] == 2

    rows = (await db_session.execute(select(StudentFee))).scalars().all()
    assert len(rows) == 2
    assert {r.amount_due for r in rows} == {Decimal("2000.00")}
    assert {r.status for r in rows} == {"pending"}
    assert {r.notes for r in rows} == {"Term 1"}


@pytest.mark.asyncio
async def test_assign_rejects_past_due_date(client: AsyncClient, accountant_headers, fee_setup) -> None:
    response = await _assign(
        client, accountant_headers, fee_setup, due_date=(date.today() - timedelta(days=1)).isoformat()
    )
    assert response.status_code == 422
    assert response.json()["message"] == "The due date must be today or later"


@pytest.mark.asyncio
async def test_assign_requires_fee_master_rows(
    client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup
) -> None:
    unpriced = FeeType(
        name="Sports",
        amount=Decimal("100"),
        fee_group_id=fee_setup["fee_group_id"],
        session_id=fee_setup["session_id"],
    )
    db_session.add(unpriced)
    await db_session.commit()

    response = await _assign(client, accountant_headers, fee_setup, fee_type_ids=[unpriced.id])
    assert response.status_code == 422
    assert response.json()["message"] == "No fee master entries found for the specified fee types and class"


@pytest.mark.asyncio
async def test_assign_requires_students(client: AsyncClient, admin_headers, fee_setup) -> None:
    empty_class = await client.post(
        "/api/v1/classes", headers=admin_headers, json={"name": "Class 7", "session_id": fee_setup["session_id"]}
    )
    response = await client.post(
        "/api/v1/fees/assign",
        headers=admin_headers,
        json={
            "class_id": empty_class.json()["data"]["id"],
            "session_id": fee_setup["session_id"],
            "fee_type_ids": [fee_setup["tuition_id"]],
        },
    )
    assert response.status_code == 422
    assert response.json()["message"] == "No students found in the specified class and section"


# --- Collection ---
@pytest.mark.asyncio
async def test_collect_partial_then_full(
    client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup
) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][0]
    prefix = f"RCPT{date.today():%Y%m}"

    first = await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "500.00")
    assert first.status_code == 201, first.text
    data = first.json()["data"]
    assert data["transaction"]["receipt_no"] == f"{prefix}0001"
    assert data["transaction"]["collected_by_name"] == "Head Accountant"
    assert data["student_fee"]["status"] == "partial"
    assert Decimal(data["student_fee"]["remaining_amount"]) == Decimal("1500")
    assert data["student_fee"]["payment_percentage"] == 25.0

    second = await _collect(
        client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "1500.00", payment_mode="online"
    )
    data = second.json()["data"]
    assert data["transaction"]["receipt_no"] == f"{prefix}0002"
    assert data["student_fee"]["status"] == "paid"
    assert Decimal(data["student_fee"]["amount_paid"]) == Decimal("2000")


@pytest.mark.asyncio
async def test_overpayment_rejected_without_side_effects(
    client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup
) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][1]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["library_id"], "200.00")

    response = await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["library_id"], "300.01")
    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "Payment amount exceeds remaining amount"
    assert body["errors"]["amount_paid"] == ["Maximum payable amount is 300.00"]

    count = (await db_session.execute(select(func.count(FeeTransaction.id)))).scalar()
    assert count == 1
    fee = (
        await db_session.execute(
            select(StudentFee).where(
                StudentFee.student_id == student_id, StudentFee.fee_type_id == fee_setup["library_id"]
            )
        )
    ).scalar_one()
    assert fee.amount_paid == Decimal("200.00")


@pytest.mark.asyncio
async def test_collect_requires_assignment(client: AsyncClient, accountant_headers, fee_setup) -> None:
    response = await _collect(
        client, accountant_headers, fee_setup, fee_setup["student_ids"][0], fee_setup["tuition_id"], "10"
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Fee not assigned to this student"


@pytest.mark.asyncio
async def test_collect_rejects_non_positive_amount(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    response = await _collect(
        client, accountant_headers, fee_setup, fee_setup["student_ids"][0], fee_setup["tuition_id"], "0"
    )
    assert response.status_code == 422
    assert "amount_paid" in response.json()["errors"]


# --- Student fees ---
@pytest.mark.asyncio
async def test_list_student_fees(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    await _collect(
        client, accountant_headers, fee_setup, fee_setup["student_ids"][0], fee_setup["library_id"], "500"
    )

    response = await client.get(
        "/api/v1/fees/student-fees",
        headers=accountant_headers,
        params={"session_id": fee_setup["session_id"], "status": "paid"},
    )
    page = response.json()["data"]
    assert page["total"] == 1
    row = page["items"][0]
    assert row["fee_type_name"] == "Library"
    assert row["fee_group_name"] == "Tuition & Academic Fees"
    assert row["payment_percentage"] == 100.0


@pytest.mark.asyncio
async def test_remove_fee_assignment(
    client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup
) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][0]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "100")

    rows = (
        await db_session.execute(select(StudentFee.id, StudentFee.fee_type_id).where(StudentFee.student_id == student_id))
    ).all()
    by_type = {fee_type_id: fee_id for fee_id, fee_type_id in rows}

    blocked = await client.delete(
        f"/api/v1/fees/student-fees/{by_type[fee_setup['tuition_id']]}", headers=accountant_headers
    )
    assert blocked.status_code == 422
    assert blocked.json()["message"] == "Cannot remove fee assignment. It has payments."

    removed = await client.delete(
        f"/api/v1/fees/student-fees/{by_type[fee_setup['library_id']]}", headers=accountant_headers
    )
    assert removed.status_code == 200


@pytest.mark.asyncio
async def test_student_summary_counts(client: AsyncClient, teacher_headers, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][2]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "800")

    response = await client.get(
        f"/api/v1/fees/student/{student_id}/summary",
        headers=teacher_headers,
        params={"session_id": fee_setup["session_id"]},
    )
    assert response.status_code == 200
    summary = response.json()["data"]
    assert summary["student"]["section_name"] == "B"
    assert Decimal(summary["total_due"]) == Decimal("2500")
    assert Decimal(summary["total_paid"]) == Decimal("800")
    assert Decimal(summary["total_remaining"]) == Decimal("1700")
    assert (summary["pending_count"], summary["partial_count"], summary["paid_count"]) == (1, 1, 0)


@pytest.mark.asyncio
async def test_fee_report_summary(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    await _collect(
        client, accountant_headers, fee_setup, fee_setup["student_ids"][0], fee_setup["tuition_id"], "2000"
    )
    await _collect(
        client, accountant_headers, fee_setup, fee_setup["student_ids"][1], fee_setup["tuition_id"], "500"
    )

    response = await client.get(
        "/api/v1/fees/reports", headers=accountant_headers, params={"session_id": fee_setup["session_id"]}
    )
    summary = response.json()["data"]["summary"]
    assert summary["total_students"] == 3
    assert Decimal(summary["total_fees_due"]) == Decimal("7500")
    assert Decimal(summary["total_fees_paid"]) == Decimal("2500")
    assert Decimal(summary["total_fees_remaining"]) == Decimal("5000")
    assert Decimal(summary["partial_amount"]) == Decimal("1500")
    # Three untouched library rows and one untouched tuition row
    assert Decimal(summary["pending_amount"]) == Decimal("3500")
    assert Decimal(summary["overdue_amount"]) == Decimal("0")


@pytest.mark.asyncio
async def test_refresh_status_marks_overdue(
    client: AsyncClient, db_session: AsyncSession, accountant_headers, fee_setup
) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][0]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "100")

    rows = (await db_session.execute(select(StudentFee).where(StudentFee.student_id == student_id))).scalars().all()
    for row in rows:
        row.due_date = date.today() - timedelta(days=5)
    await db_session.commit()

    response = await client.post(
        "/api/v1/fees/student-fees/refresh-status",
        headers=accountant_headers,
        json={"session_id": fee_setup["session_id"]},
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"checked": 6, "updated": 1}

    statuses = {r.fee_type_id: r.status for r in rows}
    # Unpaid and past due becomes overdue; a part-paid fee stays partial
    assert statuses == {fee_setup["library_id"]: "overdue", fee_setup["tuition_id"]: "partial"}


# --- Invoice / fee split ---
@pytest.mark.asyncio
async def test_invoice_for_partly_paid_tuition(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][0]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "500")

    response = await client.get(
        f"/api/v1/fees/invoice/{student_id}",
        headers=accountant_headers,
        params={"session_id": fee_setup["session_id"]},
    )
    assert response.status_code == 200
    invoice = response.json()["data"]
    assert invoice["invoice_no"] == f"INV{date.today():%Y%m}{student_id:04d}"
    assert invoice["date"] == date.today().isoformat()
    assert invoice["student"]["class"] == "Class 5"
    assert invoice["student"]["section"] == "A"
    assert invoice["session"] == "2025-2026"

    lines = {line["fee_type"]: line for line in invoice["fees"]}
    assert Decimal(lines["Tuition"]["remaining"]) == Decimal("1500")
    assert lines["Tuition"]["status"] == "partial"
    assert lines["Library"]["fee_group"] == "Tuition & Academic Fees"
    assert Decimal(invoice["summary"]["total_due"]) == Decimal("2500")
    assert Decimal(invoice["summary"]["total_paid"]) == Decimal("500")
    assert Decimal(invoice["summary"]["total_remaining"]) == Decimal("2000")


@pytest.mark.asyncio
async def test_invoice_can_exclude_paid_lines(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][0]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["library_id"], "500")

    response = await client.get(
        f"/api/v1/fees/invoice/{student_id}",
        headers=accountant_headers,
        params={"session_id": fee_setup["session_id"], "include_paid": "false"},
    )
    fees = response.json()["data"]["fees"]
    assert [line["fee_type"] for line in fees] == ["Tuition"]


@pytest.mark.asyncio
async def test_fee_split(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup)
    student_id = fee_setup["student_ids"][0]
    await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "500")

    response = await client.get(
        f"/api/v1/fees/fee-split/{student_id}",
        headers=accountant_headers,
        params={"session_id": fee_setup["session_id"]},
    )
    assert response.status_code == 200
    split = response.json()["data"]
    group = split["by_fee_group"]["Tuition & Academic Fees"]
    assert Decimal(group["total_due"]) == Decimal("2500")
    assert Decimal(group["total_remaining"]) == Decimal("2000")
    assert len(group["fee_types"]) == 2

    by_status = {k: Decimal(v) for k, v in split["by_status"].items()}
    assert by_status == {
        "pending": Decimal("500"),
        "partial": Decimal("1500"),
        "paid": Decimal("0"),
        "overdue": Decimal("0"),
    }
    assert Decimal(split["summary"]["total_paid"]) == Decimal("500")


@pytest.mark.asyncio
async def test_invoice_unknown_student(client: AsyncClient, accountant_headers, fee_setup) -> None:
    response = await client.get(
        "/api/v1/fees/invoice/9999", headers=accountant_headers, params={"session_id": fee_setup["session_id"]}
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Student not found"


@pytest.mark.asyncio
async def test_full_payment_clears_invoice_line(client: AsyncClient, accountant_headers, fee_setup) -> None:
    await _assign(client, accountant_headers, fee_setup, fee_type_ids=[fee_setup["tuition_id"]])
    student_id = fee_setup["student_ids"][1]

    paid = await _collect(client, accountant_headers, fee_setup, student_id, fee_setup["tuition_id"], "2000.00")
    assert paid.json()["data"]["student_fee"]["status"] == "paid"

    response = await client.get(
        f"/api/v1/fees/invoice/{student_id}",
        headers=accountant_headers,
        params={"session_id": fee_setup["session_id"]},
    )
    invoice = response.json()["data"]
    assert [line["status"] for line in invoice["fees"]] == ["paid"]
    assert Decimal(invoice["summary"]["total_remaining"]) == Decimal("0")
