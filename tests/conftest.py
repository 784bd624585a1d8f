import os

# Settings are read at import time, so the test environment must be in place first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["FEE_OVERDUE_AFTER_PARTIAL"] = "false"

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.models import User
from app.auth.security import hash_password
from app.core.models import AcademicSession, FeeGroup, FeeMaster, FeeType, SchoolClass, Section, Student
from app.db.session import Base, get_db
from app.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "Secret123!"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the app shares this session through get_db."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def create_user(
    db: AsyncSession,
    role: str,
    email: str,
    password: str = TEST_PASSWORD,
    name: str = "Test User",
    status: str = "active",
) -> User:
    user = User(
        name=name,
        email=email,
        username=email.split("@", 1)[0],
        password_hash=hash_password(password),
        role=role,
        status=status,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD) -> Dict[str, str]:
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


@pytest.fixture()
async def admin_headers(client: AsyncClient, db_session: AsyncSession) -> Dict[str, str]:
    await create_user(db_session, "admin", "admin@example.com", name="School Admin")
    return await login(client, "admin@example.com")


@pytest.fixture()
async def accountant_headers(client: AsyncClient, db_session: AsyncSession) -> Dict[str, str]:
    await create_user(db_session, "accountant", "accounts@example.com", name="Head Accountant")
    return await login(client, "accounts@example.com")


@pytest.fixture()
async def teacher_headers(client: AsyncClient, db_session: AsyncSession) -> Dict[str, str]:
    await create_user(db_session, "teacher", "teacher@example.com", name="Class Teacher")
    return await login(client, "teacher@example.com")


@pytest.fixture()
async def school(db_session: AsyncSession) -> Dict[str, int]:
    """Active session with one class, two sections and three students. Returns ids only."""
    today = date.today()
    session = AcademicSession(
        name="2025-2026",
        start_date=today - timedelta(days=60),
        end_date=today + timedelta(days=300),
        status="active",
    )
    db_session.add(session)
    await db_session.flush()
    school_class = SchoolClass(name="Class 5", session_id=session.id)
    db_session.add(school_class)
    await db_session.flush()
    section_a = Section(name="A", class_id=school_class.id, session_id=session.id)
    section_b = Section(name="B", class_id=school_class.id, session_id=session.id)
    db_session.add_all([section_a, section_b])
    await db_session.flush()

    students = [
        Student(
            admission_no=f"ADM-00{i}",
            name=name,
            email=f"student{i}@example.com",
            class_id=school_class.id,
            section_id=section.id,
            session_id=session.id,
        )
        for i, (name, section) in enumerate(
            [("Asha Rao", section_a), ("Bilal Khan", section_a), ("Chitra Nair", section_b)], start=1
        )
    ]
    db_session.add_all(students)
    await db_session.commit()
    return {
        "session_id": session.id,
        "class_id": school_class.id,
        "section_a_id": section_a.id,
        "section_b_id": section_b.id,
        "student_ids": [s.id for s in students],
    }


@pytest.fixture()
async def fee_setup(db_session: AsyncSession, school: Dict[str, int]) -> Dict[str, int]:
    """Tuition (2000) and Library (500) priced for the seeded class."""
    session_id = school["session_id"]
    group = FeeGroup(name="Tuition & Academic Fees", session_id=session_id, is_active=True)
    db_session.add(group)
    await db_session.flush()
    tuition = FeeType(name="Tuition", amount=Decimal("2000.00"), fee_group_id=group.id, session_id=session_id)
    library = FeeType(name="Library", amount=Decimal("500.00"), fee_group_id=group.id, session_id=session_id)
    db_session.add_all([tuition, library])
    await db_session.flush()
    db_session.add_all(
        [
            FeeMaster(
                fee_group_id=group.id,
                fee_type_id=tuition.id,
                class_id=school["class_id"],
                session_id=session_id,
                amount=Decimal("2000.00"),
            ),
            FeeMaster(
                fee_group_id=group.id,
                fee_type_id=library.id,
                class_id=school["class_id"],
                session_id=session_id,
                amount=Decimal("500.00"),
            ),
        ]
    )
    await db_session.commit()
    return {
        **school,
        "fee_group_id": group.id,
        "tuition_id": tuition.id,
        "library_id": library.id,
    }
