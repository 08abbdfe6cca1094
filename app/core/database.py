# app/core/database.py
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, **kwargs):
    """Build an async engine for the given URL."""
    kwargs.setdefault("echo", settings.DATABASE_ECHO)
    async_engine = create_async_engine(url, future=True, **kwargs)
    # SQLite only honours ON DELETE CASCADE / RESTRICT with this pragma
    if async_engine.dialect.name == "sqlite":
        event.listen(async_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


def make_sessionmaker(bind):
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


# 1. Create the Async Engine
engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)

# 2. Create the Session Factory
SessionLocal = make_sessionmaker(engine)

# 3. Base Class for Models
Base = declarative_base()

# 4. Dependency for API Routes
async def get_db():
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

# 5. Table Initialization
async def init_models(bind=None):
    """
    Creates tables in the database if they don't exist.
    """
    async with (bind or engine).begin() as conn:
        # Import the models so they register on Base.metadata
        from app.models.vessel import Vessel
        from app.models.cargo_parcel import CargoParcel
        from app.models.voyage_allocation import VoyageAllocation

        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Cargo tracker tables created")
