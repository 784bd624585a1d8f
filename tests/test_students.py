from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.models import StudentFee


def _dob(years: int = 10) -> str:
    today = date.today()
    return today.replace(year=today.year - years, day=1).isoformat()


def _student_payload(school, **overrides) -> dict:
    payload = {
        "admission_no": "ADM-100",
        "name": "Divya Shah",
        "email": "divya@example.com",
        "phone": "+919876543210",
        "dob": _dob(),
        "gender": "female",
        "address": "12 Lake Road",
        "class_id": school["class_id"],
        "section_id": school["section_a_id"],
        "session_id": school["session_id"],
        "parent": {"father_name": "Kiran Shah", "mother_phone": "9876500000"},
        "guardian": {"name": "Leela Shah", "relationship": "Aunt"},
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_student_creates_login(
    client: AsyncClient, db_session: AsyncSession, admin_headers, school
) -> None:
    payload = _student_payload(school)
    response = await client.post("/api/v1/students", headers=admin_headers, json=payload)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["class_name"] == "Class 5"
    assert data["section_name"] == "A"
    assert data["parent"]["father_name"] == "Kiran Shah"
    assert data["guardian"]["relationship"] == "Aunt"

    user = (await db_session.execute(select(User).where(User.id == data["user_id"]))).scalar_one()
    assert user.role == "student"
    assert user.username == "ADM-100"

    # First login uses the admission number and date of birth
    login = await client.post("/api/v1/auth/login", json={"username": "ADM-100", "password": payload["dob"]})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_duplicate_admission_number(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/students", headers=admin_headers, json=_student_payload(school, admission_no="ADM-001")
    )
    assert response.status_code == 422
    assert response.json()["errors"]["admission_no"] == ["The admission number has already been taken."]


@pytest.mark.asyncio
async def test_section_must_belong_to_class(
    client: AsyncClient, db_session: AsyncSession, admin_headers, school
) -> None:
    other = await client.post(
        "/api/v1/classes", headers=admin_headers, json={"name": "Class 6", "session_id": school["session_id"]}
    )
    response = await client.post(
        "/api/v1/students",
        headers=admin_headers,
        json=_student_payload(school, class_id=other.json()["data"]["id"]),
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Section does not belong to the selected class"


@pytest.mark.asyncio
async def test_invalid_fields_rejected(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/students",
        headers=admin_headers,
        json=_student_payload(school, admission_no="adm 1", dob=_dob(40)),
    )
    assert response.status_code == 422
    errors = response.json()["errors"]
    assert "admission_no" in errors
    assert "dob" in errors


@pytest.mark.asyncio
async def test_list_students_filters(client: AsyncClient, teacher_headers, school) -> None:
    response = await client.get(
        "/api/v1/students",
        headers=teacher_headers,
        params={"session_id": school["session_id"], "section_id": school["section_a_id"]},
    )
    assert response.status_code == 200
    page = response.json()["data"]
    assert page["total"] == 2
    assert [s["name"] for s in page["items"]] == ["Asha Rao", "Bilal Khan"]

    search = await client.get(
        "/api/v1/students",
        headers=teacher_headers,
        params={"session_id": school["session_id"], "search": "chitra"},
    )
    assert [s["admission_no"] for s in search.json()["data"]["items"]] == ["ADM-003"]


@pytest.mark.asyncio
async def test_update_student_syncs_login(
    client: AsyncClient, db_session: AsyncSession, admin_headers, school
) -> None:
    created = (
        await client.post("/api/v1/students", headers=admin_headers, json=_student_payload(school))
    ).json()["data"]

    response = await client.put(
        f"/api/v1/students/{created['id']}",
        headers=admin_headers,
        json={"name": "Divya S Shah", "section_id": school["section_b_id"]},
    )
    assert response.status_code == 200
    assert response.json()["data"]["section_name"] == "B"

    user = (await db_session.execute(select(User).where(User.id == created["user_id"]))).scalar_one()
    assert user.name == "Divya S Shah"


@pytest.mark.asyncio
async def test_delete_student_with_fees_blocked(
    client: AsyncClient, db_session: AsyncSession, admin_headers, fee_setup
) -> None:
    student_id = fee_setup["student_ids"][0]
    db_session.add(
        StudentFee(
            student_id=student_id,
            fee_type_id=fee_setup["tuition_id"],
            session_id=fee_setup["session_id"],
            amount_due=Decimal("2000.00"),
            amount_paid=Decimal("0"),
        )
    )
    await db_session.commit()

    response = await client.delete(f"/api/v1/students/{student_id}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete student with fee records"


@pytest.mark.asyncio
async def test_delete_student_removes_login(
    client: AsyncClient, db_session: AsyncSession, admin_headers, school
) -> None:
    created = (
        await client.post("/api/v1/students", headers=admin_headers, json=_student_payload(school))
    ).json()["data"]

    response = await client.delete(f"/api/v1/students/{created['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert (await db_session.execute(select(User).where(User.id == created["user_id"]))).first() is None


# --- Bulk import ---
@pytest.mark.asyncio
async def test_import_template(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/v1/students/bulk-import/template", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.strip() == "admission_no,name,email,phone,dob,gender,address,class_name,section_name"


@pytest.mark.asyncio
async def test_import_reports_row_failures(client: AsyncClient, admin_headers, school) -> None:
    dob = _dob(9)
    csv_text = (
        "admission_no,name,email,phone,dob,gender,address,class_name,section_name\n"
        f"ADM-200,Esha Gupta,esha@example.com,9876543210,{dob},Female,Main St,Class 5,A\n"
        f"ADM-201,Farhan Ali,farhan@example.com,,{dob},male,,Class 9,A\n"
        f"ADM-001,Copy Cat,copy@example.com,,{dob},,,Class 5,B\n"
        f"ADM-202,Gita Pillai,esha@example.com,,{dob},,,Class 5,B\n"
    )
    response = await client.post(
        "/api/v1/students/bulk-import",
        headers=admin_headers,
        data={"session_id": str(school["session_id"])},
        files={"file": ("students.csv", csv_text.encode("utf-8"), "text/csv")},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["message"] == "Import completed. 1 imported, 3 failed"
    assert body["data"]["errors"] == [
        "Row 3: Class or section not found",
        "Row 4: Student already exists",
        "Row 5: Email already in use",
    ]

    listing = await client.get(
        "/api/v1/students", headers=admin_headers, params={"session_id": school["session_id"], "search": "ADM-200"}
    )
    assert listing.json()["data"]["items"][0]["gender"] == "female"


@pytest.mark.asyncio
async def test_import_missing_headers(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/students/bulk-import",
        headers=admin_headers,
        data={"session_id": str(school["session_id"])},
        files={"file": ("students.csv", b"admission_no,name\nADM-1,Someone\n", "text/csv")},
    )
    assert response.status_code == 422
    assert response.json()["message"].startswith("Invalid CSV format. Missing headers: email, phone, dob")
