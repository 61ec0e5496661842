import logging
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from fastapi import Request
from .config import Settings, settings as default_settings
from .base import Base

log = logging.getLogger(__name__)

class Database:
    """Engine + session factory for one process.

    Built once at startup and handed to every component; `dispose()` drains
    the pool on shutdown.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings
        dsn = self.settings.DATABASE_DSN
        connect_args = {}
        if dsn.startswith("sqlite"):
            # sqlite busy timeout doubles as the lock wait bound
            connect_args["timeout"] = self.settings.LOCK_TIMEOUT_SECONDS
        self.engine: AsyncEngine = create_async_engine(dsn, pool_pre_ping=True, connect_args=connect_args)
        self.SessionLocal = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    @property
    def supports_row_locks(self) -> bool:
        return self.engine.dialect.name == "postgresql"

    async def init_models(self):
        ## In dev-only "create_all" mode build the schema here; otherwise, migrations own it.
        if self.settings.DB_MANAGE.lower() == "create_all":
            # register tables on Base.metadata
            from carebook.modules.identity import models as _identity  # noqa: F401
            from carebook.modules.credits import models as _credits  # noqa: F401
            from carebook.modules.bookings import models as _bookings  # noqa: F401
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            log.info("Schema ensured via create_all")

    async def dispose(self):
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.SessionLocal()

async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.db.session() as session:
        yield session

def get_database(request: Request) -> Database:
    return request.app.state.db
