"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own in-memory SQLite database (aiosqlite), so tests are
isolated without a running Postgres. Sessions are built with the application's
session factory, which means change events are dispatched on commit exactly as
in production.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ["REDIS_ENABLED"] = "false"

from datetime import datetime
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db, make_sessionmaker
from app.core.security import Actor, create_access_token
from app.infrastructure.sql_store import SqlAlchemyStore
from app.models import Department, Equipment, Room, StudyProgram, User
from app.services.notification_service import change_feed

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite/aiosqlite transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN itself
    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    async with make_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> SqlAlchemyStore:
    return SqlAlchemyStore(db_session)


@pytest.fixture(autouse=True)
def clean_change_feed():
    yield
    change_feed.clear()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests share the test session, committing like get_db does."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(db_session: AsyncSession, record):
    db_session.add(record)
    await db_session.flush()
    await db_session.refresh(record)
    return record


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """
    A department with one study program, one user per role, two rooms and a
    projector. Returned as plain ids so tests never touch expired ORM state.
    """
    dept = await _add(db_session, Department(name="Informatics", code="IF"))
    other_dept = await _add(db_session, Department(name="Physics", code="PH"))
    program = await _add(db_session, StudyProgram(name="Computer Science", code="CS", department_id=dept.id))

    def user(email, name, number, role, **extra):
        return User(email=email, full_name=name, identity_number=number, role=role, **extra)

    student = await _add(db_session, user("student@campus.test", "Sari Student", "S001", "student",
                                          department_id=dept.id, study_program_id=program.id))
    other_student = await _add(db_session, user("other@campus.test", "Omar Other", "S002", "student",
                                                department_id=dept.id, study_program_id=program.id))
    lecturer = await _add(db_session, user("lecturer@campus.test", "Dr. Lina Lecturer", "L001", "lecturer",
                                           department_id=dept.id, study_program_id=program.id))
    inspector = await _add(db_session, user("inspector@campus.test", "Dr. Iwan Inspector", "L002", "lecturer",
                                            department_id=dept.id, study_program_id=program.id))
    dept_admin = await _add(db_session, user("dept@campus.test", "Dina Admin", "A001", "department_admin",
                                             department_id=dept.id))
    super_admin = await _add(db_session, user("root@campus.test", "Rudi Root", "A000", "super_admin"))

    room_a = await _add(db_session, Room(name="Lab A", code="LAB-A", capacity=40, department_id=dept.id))
    room_b = await _add(db_session, Room(name="Hall B", code="HALL-B", capacity=120, department_id=dept.id))
    foreign_room = await _add(db_session, Room(name="Physics Lab", code="PH-1", capacity=30,
                                               department_id=other_dept.id))
    projector = await _add(db_session, Equipment(name="Projector", code="PRJ-1", category="av",
                                                 department_id=dept.id))
    await db_session.commit()

    return SimpleNamespace(
        department_id=dept.id,
        other_department_id=other_dept.id,
        program_id=program.id,
        student=Actor(id=student.id, role="student", department_id=dept.id),
        other_student=Actor(id=other_student.id, role="student", department_id=dept.id),
        lecturer=Actor(id=lecturer.id, role="lecturer", department_id=dept.id),
        inspector_id=inspector.id,
        dept_admin=Actor(id=dept_admin.id, role="department_admin", department_id=dept.id),
        super_admin=Actor(id=super_admin.id, role="super_admin"),
        room_a=room_a.id,
        room_b=room_b.id,
        foreign_room=foreign_room.id,
        projector=projector.id,
    )


def headers_for(actor: Actor) -> dict:
    """Authorization headers with a Bearer token for `actor`."""
    claims = {"sub": str(actor.id), "role": actor.role}
    if actor.department_id is not None:
        claims["department_id"] = actor.department_id
    return {"Authorization": f"Bearer {create_access_token(data=claims)}"}


@pytest.fixture
def student_headers(seed) -> dict:
    return headers_for(seed.student)


@pytest.fixture
def admin_headers(seed) -> dict:
    return headers_for(seed.dept_admin)


@pytest.fixture
def super_admin_headers(seed) -> dict:
    return headers_for(seed.super_admin)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """A naive timestamp in January 2030; SQLite hands back naive datetimes."""
    return datetime(2030, 1, day, hour, minute)
