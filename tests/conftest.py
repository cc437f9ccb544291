import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import time
from types import SimpleNamespace
from typing import AsyncGenerator, Callable, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.auth.models import User
from app.auth.security import create_access_token
from app.core.enums import UserRole
from app.core.models import Department, ScheduleEntry, SchoolClass, Subject, TimeSlot
from app.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite shared by every connection of one test (StaticPool)."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _bearer(user_id: int) -> Dict[str, str]:
    token = create_access_token(subject={"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers() -> Callable[[int], Dict[str, str]]:
    """Build an Authorization header for a seeded user id."""
    return _bearer


@pytest.fixture()
async def school(db_session: AsyncSession) -> SimpleNamespace:
    """
    Two departments and a small timetable, all in academic year 2024:

      entry A: class 5, teacher 10 (dept 1), slot 3
      entry B: class 7, teacher 20 (dept 2), slot 3
      entry C: class 9, teacher 11 (dept 1), slot 3
      entry D: class 5, teacher 11 (dept 1), slot 4

    Head of dept 1 (user 100) has users.department_id set; head of dept 2 (user 200)
    is linked only through departments.head_user_id.
    """
    math = Department(id=1, name="Mathematics")
    science = Department(id=2, name="Science")
    db_session.add_all([math, science])
    await db_session.flush()

    db_session.add_all(
        [
            User(id=1, name="Admin", email="admin@school.test", role=UserRole.SYSTEM_ADMIN.value),
            User(id=2, name="Assistant", email="assistant@school.test", role=UserRole.ASSISTANT_MANAGER.value),
            User(id=3, name="Supervisor", email="supervisor@school.test", role=UserRole.ADMIN_SUPERVISOR.value),
            User(id=4, name="Parent", email="parent@school.test", role=UserRole.PARENT.value),
            User(id=100, name="Head Math", email="head.math@school.test", role=UserRole.DEPARTMENT_HEAD.value, department_id=1),
            User(id=200, name="Head Science", email="head.science@school.test", role=UserRole.DEPARTMENT_HEAD.value),
            User(id=300, name="Head Arts", email="head.arts@school.test", role=UserRole.DEPARTMENT_HEAD.value),
            User(id=10, name="Teacher Ten", email="t10@school.test", role=UserRole.TEACHER.value, department_id=1),
            User(id=11, name="Teacher Eleven", email="t11@school.test", role=UserRole.TEACHER.value, department_id=1),
            User(id=20, name="Teacher Twenty", email="t20@school.test", role=UserRole.TEACHER.value, department_id=2),
            User(id=21, name="Teacher Twenty-One", email="t21@school.test", role=UserRole.TEACHER.value, department_id=2),
        ]
    )
    db_session.add_all(
        [
            SchoolClass(id=5, name="5A"),
            SchoolClass(id=7, name="7A"),
            SchoolClass(id=9, name="9A"),
            Subject(id=1, name="Algebra", department_id=1),
            Subject(id=2, name="Physics", department_id=2),
            TimeSlot(id=3, day_of_week=1, period_number=3, start_time=time(10, 0), end_time=time(10, 45)),
            TimeSlot(id=4, day_of_week=1, period_number=4, start_time=time(11, 0), end_time=time(11, 45)),
        ]
    )
    await db_session.flush()
    science.head_user_id = 200
    math.head_user_id = 100

    db_session.add_all(
        [
            ScheduleEntry(id=1, class_id=5, subject_id=1, teacher_user_id=10, time_slot_id=3, academic_year="2024"),
            ScheduleEntry(id=2, class_id=7, subject_id=2, teacher_user_id=20, time_slot_id=3, academic_year="2024"),
            ScheduleEntry(id=3, class_id=9, subject_id=1, teacher_user_id=11, time_slot_id=3, academic_year="2024"),
            ScheduleEntry(id=4, class_id=5, subject_id=1, teacher_user_id=11, time_slot_id=4, academic_year="2024"),
        ]
    )
    await db_session.commit()

    return SimpleNamespace(
        admin=1,
        assistant=2,
        supervisor=3,
        parent=4,
        head1=100,
        head2=200,
        head_no_dept=300,
        t10=10,
        t11=11,
        t20=20,
        t21=21,
        entry_a=1,
        entry_b=2,
        entry_c=3,
        entry_d=4,
        slot3=3,
        slot4=4,
    )
