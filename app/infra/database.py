"""
PostgreSQL access.

Async SQLAlchemy 2.0 engine plus the unit-of-work context the entity
store opens for every operation. Appointment writes run under
SELECT ... FOR UPDATE on the employee row, so connections are pooled and
pre-pinged rather than opened per call.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.models.database import Base, Business

logger = logging.getLogger(__name__)


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.database_pool_size,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    One transaction: commit when the block exits cleanly, roll back on error.

    Usage:
        async with get_db_context() as db:
            db.add(appointment)

    Yields:
        AsyncSession: Database session
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """
    Create missing tables and the default business row.

    Development only; production schemas are managed with migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await ensure_default_business()


async def ensure_default_business() -> bool:
    """
    Insert the business every conversation is booked against, if absent.

    Returns:
        True if the row was created
    """
    business_id = uuid.UUID(settings.default_business_id)

    async with get_db_context() as db:
        existing = await db.scalar(select(Business.id).where(Business.id == business_id))
        if existing:
            return False

        phone = settings.twilio_whatsapp_from.removeprefix("whatsapp:")
        db.add(
            Business(
                id=business_id,
                name=settings.app_name,
                phone=phone,
                whatsapp_phone_number=phone,
                whatsapp_enabled=True,
            )
        )

    logger.info(f"Created default business {business_id}")
    return True


async def close_db() -> None:
    """Dispose of the connection pool on shutdown."""
    await engine.dispose()


async def check_db_health() -> bool:
    """
    Run SELECT 1 for the readiness probe.

    Returns:
        bool: True if database is accessible, False otherwise
    """
    try:
        async with get_db_context() as db:
            await db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
