import os
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Settings are read at import time, so the environment has to be in
# place BEFORE portal.main is imported.
# ------------------------------------------------------------------
_TMP = Path(tempfile.mkdtemp(prefix="portal-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'portal.db'}"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["UPLOAD_DIR"] = str(_TMP / "uploads")
os.environ["STORAGE_BACKEND"] = "local"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["ENV"] = "test"

from portal.main import app  # noqa: E402
from portal.api.deps import get_db_session  # noqa: E402
from portal.core.security import create_access_token  # noqa: E402
import portal.models.activity  # noqa: E402,F401
import portal.models.card  # noqa: E402,F401
import portal.models.submission  # noqa: E402,F401
from portal.models.department import Department  # noqa: E402
from portal.models.user import UserType  # noqa: E402
from portal.services.auth_service import create_user  # noqa: E402

fake = Faker()

PASSWORD = "Secret123!"


# ------------------------------------------------------------------
# DATABASE (fresh SQLite file per test)
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


# ------------------------------------------------------------------
# DATA
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def cs_dept(session):
    dept = Department(name="Computer Science", code="CS", description="CS department")
    session.add(dept)
    await session.commit()
    await session.refresh(dept)
    return dept


@pytest_asyncio.fixture
async def it_dept(session):
    dept = Department(name="Information Technology", code="IT")
    session.add(dept)
    await session.commit()
    await session.refresh(dept)
    return dept


@pytest_asyncio.fixture
async def admin_user(session):
    return await create_user(
        session,
        username="admin",
        email="admin@psu.edu",
        password=PASSWORD,
        user_type=UserType.ADMIN,
        first_name="Ada",
        last_name="Admin",
    )


@pytest_asyncio.fixture
async def head_user(session, cs_dept):
    return await create_user(
        session,
        username="head",
        email="head@psu.edu",
        password=PASSWORD,
        user_type=UserType.HEAD,
        first_name="Hank",
        last_name="Head",
        department_id=cs_dept.id,
    )


@pytest_asyncio.fixture
async def staff_user(session, cs_dept):
    return await create_user(
        session,
        username="staff",
        email="staff@psu.edu",
        password=PASSWORD,
        user_type=UserType.STAFF,
        first_name="Sam",
        last_name="Staff",
        department_id=cs_dept.id,
    )


@pytest_asyncio.fixture
async def it_staff_user(session, it_dept):
    return await create_user(
        session,
        username=fake.unique.user_name(),
        email=fake.unique.email(),
        password=PASSWORD,
        user_type=UserType.STAFF,
        first_name=fake.first_name(),
        last_name=fake.last_name(),
        department_id=it_dept.id,
    )


# ------------------------------------------------------------------
# AUTH HEADERS
# ------------------------------------------------------------------
def auth_headers(u) -> dict:
    token = create_access_token(
        subject=u.id,
        data={"user_type": u.user_type.value, "department_id": u.department_id},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def head_headers(head_user):
    return auth_headers(head_user)


@pytest.fixture
def staff_headers(staff_user):
    return auth_headers(staff_user)


@pytest.fixture
def it_staff_headers(it_staff_user):
    return auth_headers(it_staff_user)


# ------------------------------------------------------------------
# CARDS
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def cs_card(client, admin_headers, cs_dept):
    res = await client.post(
        "/cards",
        json={
            "title": "Course Outlines",
            "description": "Upload this semester's outlines",
            "departmentIds": [cs_dept.id],
            "allowedFileTypes": "pdf, docx",
        },
        headers=admin_headers,
    )
    assert res.status_code == 201, res.text
    return res.json()
