"""Database Session Manager: one async engine per process, scoped sessions for requests and jobs.

Invariants:
    - SQLAlchemy failures are rolled back explicitly; close() discards any other pending work
    - SQLAlchemy exceptions surface as DatabaseError; anything else passes through unchanged
    - session() is the unit of work for API requests (get_db) and worker jobs (session scope)
    - Pool sizing applies to server databases only; SQLite uses its default pool

Design Decisions:
    - db_manager is module state set by init_db(): the lifespan and run_worker own its
      lifecycle, importing this module opens no connection
    - expire_on_commit=False: worker code reads job rows after commit without a reload
    - Error translation table ordered most-specific first (IntegrityError < DBAPIError)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from jewelpreview.core.errors import DatabaseError

logger = logging.getLogger(__name__)

_TRANSLATIONS: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Database unreachable or operation aborted", "execute"),
    (DBAPIError, "Database driver rejected the statement", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def _translate(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _TRANSLATIONS:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Engine + session factory for the preview pipeline."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        options: dict = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            options.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **options)
        self._factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        db = self._factory()
        try:
            yield db
        except SQLAlchemyError as e:
            await db.rollback()
            error = _translate(e)
            logger.error(
                f"{type(e).__name__} during {error.operation}: {e}",
                extra={"error_code": error.code},
            )
            raise error from e
        finally:
            await db.close()

    async def health_check(self) -> bool:
        """SELECT 1 through a pooled connection; False on any failure."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    if db_manager is None:
        raise RuntimeError("init_db() has not been called")
    async with db_manager.session() as db:
        yield db
