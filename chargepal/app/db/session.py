"""
Database session configuration.

The local ledger is a single JSON snapshot row, so a SQLite file (through
``aiosqlite``) is enough; any async SQLAlchemy URL works.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from chargepal.app.core.config import settings


def _connect_args(url: str) -> dict:
    # FastAPI may hand the session to a different thread than the one that opened it
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

Base = declarative_base()


async def init_db(bind: AsyncEngine = None) -> None:
    """Create missing tables. Models must be imported before this runs."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """FastAPI dependency: one session per request."""
    async with SessionLocal() as session:
        yield session
