from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging
import uuid

from sqlalchemy import Column, Uuid
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings
from app.core.exceptions import TransientStoreError
from app.core.types import UTCDateTime, utcnow

logger = logging.getLogger(__name__)


class ModelBase:
    """Columns shared by every table"""

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


Base = declarative_base(cls=ModelBase)


def create_engine_for(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,  # Number of persistent connections
        max_overflow=10,  # Maximum overflow connections
        pool_timeout=30,  # Timeout for getting connection
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using
    )


engine = create_engine_for(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped database session"""
    async with AsyncSessionLocal() as db:
        yield db


async def init_db() -> None:
    """Create tables when no migration tooling is in place"""
    import app.models  # noqa: F401  registers mappers on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block as one all-or-nothing transaction.

    Commits when the block exits cleanly and rolls back on any exception.
    Connection-level failures are re-raised as TransientStoreError so callers
    can tell them apart from business rule violations.
    """
    try:
        yield db
        await db.commit()
    except (OperationalError, DBAPIError) as e:
        await db.rollback()
        if getattr(e, "connection_invalidated", False) or isinstance(e, OperationalError):
            logger.error(f"Transient database failure: {e}")
            raise TransientStoreError("Database temporarily unavailable, please retry") from e
        raise
    except Exception:
        await db.rollback()
        raise
