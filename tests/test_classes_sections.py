import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_and_list_classes(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/classes", headers=admin_headers, json={"name": "Class 6", "session_id": school["session_id"]}
    )
    assert response.status_code == 201
    assert response.json()["data"]["sections_count"] == 0

    listing = await client.get("/api/v1/classes", headers=admin_headers, params={"session_id": school["session_id"]})
    classes = {c["name"]: c for c in listing.json()["data"]}
    assert set(classes) == {"Class 5", "Class 6"}
    assert classes["Class 5"]["sections_count"] == 2
    assert classes["Class 5"]["students_count"] == 3


@pytest.mark.asyncio
async def test_class_name_unique_per_session(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/classes", headers=admin_headers, json={"name": "class 5", "session_id": school["session_id"]}
    )
    assert response.status_code == 422
    body = response.json()
    assert body["message"] == "A class with this name already exists in the selected session"
    assert "name" in body["errors"]


@pytest.mark.asyncio
async def test_delete_class_with_students_blocked(client: AsyncClient, admin_headers, school) -> None:
    response = await client.delete(f"/api/v1/classes/{school['class_id']}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete class: it is used by students"


@pytest.mark.asyncio
async def test_section_inherits_class_session(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/sections", headers=admin_headers, json={"name": "C", "class_id": school["class_id"]}
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["session_id"] == school["session_id"]
    assert data["class_name"] == "Class 5"


@pytest.mark.asyncio
async def test_section_name_unique_per_class(client: AsyncClient, admin_headers, school) -> None:
    response = await client.post(
        "/api/v1/sections", headers=admin_headers, json={"name": "A", "class_id": school["class_id"]}
    )
    assert response.status_code == 422
    assert response.json()["message"] == "A section with this name already exists in the selected class"


@pytest.mark.asyncio
async def test_class_sections_endpoint(client: AsyncClient, teacher_headers, school) -> None:
    response = await client.get(f"/api/v1/classes/{school['class_id']}/sections", headers=teacher_headers)
    assert response.status_code == 200
    sections = {s["name"]: s["students_count"] for s in response.json()["data"]}
    assert sections == {"A": 2, "B": 1}


@pytest.mark.asyncio
async def test_delete_section_in_use_blocked(client: AsyncClient, admin_headers, school) -> None:
    response = await client.delete(f"/api/v1/sections/{school['section_b_id']}", headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Cannot delete section: it is used by students"
