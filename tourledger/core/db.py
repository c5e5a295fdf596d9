import logging
import re
from collections.abc import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tourledger.core.config import get_settings
from tourledger.models.base import Base

logger = logging.getLogger(__name__)

settings = get_settings()


def get_async_database_url(url: str) -> str:
    """Convert database URL to async-compatible format using psycopg driver."""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)

    if "channel_binding=" in url:
        url = re.sub(r'[&?]channel_binding=[^&]*', '', url)
        url = url.replace('?&', '?').rstrip('?')

    return url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    database_url = get_async_database_url(url)
    if database_url.startswith("sqlite"):
        options = {"poolclass": StaticPool} if ":memory:" in database_url else {}
        engine = create_async_engine(database_url, future=True, echo=echo, **options)

        # SQLite only honours ON DELETE CASCADE with foreign keys switched on
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):  # pragma: no cover - driver hook
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        future=True,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,   # Recycle connections after 1 hour
        pool_timeout=10,     # Wait up to 10 seconds for a connection from pool
        max_overflow=10,     # Allow extra connections beyond pool_size
        connect_args={"connect_timeout": 10},
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False)


engine: AsyncEngine = build_engine(settings.database_url, echo=settings.debug)
AsyncSessionFactory = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionFactory() as session:
        yield session


async def init_database(bind: AsyncEngine | None = None) -> None:
    """Create all tables. In production use Alembic migrations instead."""
    import tourledger.models  # noqa: F401 ensure models are registered

    target = bind or engine
    logger.info("[DB] Initializing database tables...")
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DB] Database tables initialized successfully")


async def check_database_connection() -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.fetchone()
        return True
    except Exception as e:
        logger.error(f"[DB] Database connection test failed: {e}")
        return False
