"""
Beyond Trips Backend — Database Engine and Sessions
===================================================

One async engine per process and a session factory bound to it. Request
handlers get their session through `get_db_session`, which wraps the
transaction: commit when the handler returns, roll back when it raises.

Driver errors that escape a handler (lost connection, deadlock, a constraint
no service anticipated) surface as `DatabaseError`, so clients get a generic
500 and the original exception stays in the server log.

Pool sizing (`db_pool_size`, `db_max_overflow`, `db_pool_pre_ping`) only
applies to server databases; SQLite keeps the dialect's default pool.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from sqlalchemy import DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from beyondtrips.config import settings
from beyondtrips.exceptions import DatabaseError


def utcnow() -> datetime:
    """Timezone-aware current time; all stored timestamps are UTC."""
    return datetime.now(timezone.utc)


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options())

# Loaded attributes survive commit; routes serialize rows after committing
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared with Alembic; adds UTC audit timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


@asynccontextmanager
async def session_scope(factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """
    Yield one session from `factory` as a unit of work.

    Application exceptions propagate untouched after the rollback;
    SQLAlchemy ones are re-raised as DatabaseError.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError(
                context={"error": type(e).__name__, "detail": str(e)}
            ) from e
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Per-request session dependency.

        @router.get("/api/driver/btl-coins")
        async def btl_coins(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with session_scope(async_session_factory) as session:
        yield session


async def dispose_engine() -> None:
    await engine.dispose()
