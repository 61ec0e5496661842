import uuid
from datetime import datetime, timedelta, timezone
import pytest
from httpx import AsyncClient, ASGITransport
from carebook.core.base import utcnow
from carebook.core.config import Settings
from carebook.core.db import Database
from carebook.main import create_app
from carebook.modules.credits.repository import CreditLedger
from carebook.modules.identity.schemas import UserCreate
from carebook.modules.identity.service import IdentityService


@pytest.fixture
def settings(tmp_path) -> Settings:
    # file-backed so concurrent sessions hit real sqlite locking
    return Settings(
        DATABASE_DSN=f"sqlite+aiosqlite:///{tmp_path / 'carebook.db'}",
        DB_MANAGE="create_all",
        LOCK_TIMEOUT_SECONDS=10.0,
        RETRY_BACKOFF_SECONDS=0.001,
    )


@pytest.fixture
async def db(settings):
    database = Database(settings)
    await database.init_models()
    yield database
    await database.dispose()


@pytest.fixture
async def session(db):
    async with db.session() as s:
        yield s


@pytest.fixture
async def client(db):
    app = create_app(db=db)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db):
    async def _make(*roles: str, email: str | None = None):
        async with db.session() as s:
            return await IdentityService(s).register(UserCreate(
                email=email or f"{uuid.uuid4().hex[:12]}@example.com",
                first_name="Test",
                last_name="User",
                roles=list(roles),
            ))
    return _make


@pytest.fixture
def make_credit(db):
    async def _make(owner_id: uuid.UUID, *, days: int = 30, type: str = "consult"):
        async with db.session() as s:
            credit = await CreditLedger(s).add(owner_id, type, utcnow() + timedelta(days=days))
            await s.commit()
            return credit
    return _make


def future(days: int = 7) -> datetime:
    return utcnow() + timedelta(days=days)


def at(year: int, month: int, day: int, hour: int = 9) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)
