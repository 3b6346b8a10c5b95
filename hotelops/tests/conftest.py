"""
Test fixtures - in-memory SQLite database + authenticated HTTP client
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from hotelops.database import Base, get_db, enable_sqlite_foreign_keys
from hotelops.main import app
from hotelops.api.auth import get_password_hash, create_access_token
from hotelops.models.supervisor import Supervisor
from hotelops.models.room import Room


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: admin + supervisor 7 + 3 rooms"""
    admin = Supervisor(
        nombre="Admin",
        correo="admin@hotel.test",
        role="admin",
        hashed_password=get_password_hash("adminpass"),
    )
    supervisor = Supervisor(
        id=7,
        nombre="Laura Méndez",
        alias="laura",
        correo="laura@hotel.test",
        role="supervisor",
        hashed_password=get_password_hash("laurapass"),
    )
    r101 = Room(number=101, tower=1, floor=1)
    r102 = Room(number=102, tower=1, floor=1)
    r205 = Room(number=205, tower=2, floor=2)

    db_session.add_all([admin, supervisor, r101, r102, r205])
    await db_session.commit()
    for obj in (admin, supervisor, r101, r102, r205):
        await db_session.refresh(obj)

    return {
        "admin": admin,
        "admin_id": admin.id,
        "supervisor": supervisor,
        "supervisor_id": supervisor.id,
        "r101": r101,
        "r102": r102,
        "r205": r205,
    }


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """Authenticated (admin) httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    token = create_access_token(data={"sub": seed_data["admin"].correo})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def supervisor_client(db_session, seed_data):
    """Authenticated as the non-admin supervisor 7"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    token = create_access_token(data={"sub": seed_data["supervisor"].correo})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session):
    """Unauthenticated httpx AsyncClient"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
