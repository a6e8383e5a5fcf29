"""
Recipe Share Backend — Database Session Management
=====================================================

What:  Async SQLAlchemy engine, session factory, the UnitOfWork used by every
       multi-step write, and the FastAPI dependencies that hand them out.
Why:   Sign-up, recipe create/update/delete and the save toggle each perform
       several dependent writes. They must land together or not at all, so
       all of them go through one transactional helper instead of managing
       sessions by hand.
How:   `UnitOfWork.run(body)` opens a session, begins a transaction, runs the
       async `body(session)`, commits, and closes the session no matter what.
       Read-only routes use the simpler per-request `get_db_session`.
Who:   Services receive a UnitOfWork (writes) or an AsyncSession (reads)
       through FastAPI's dependency injection.

Connection Pooling Strategy:
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
    SQLite URLs (used by the test-suite) skip the pool options entirely.
"""

import logging
import re
from typing import AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from recipeshare.config import settings
from recipeshare.exceptions import CommitFailure, DuplicateKeyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ── Engine Configuration ──────────────────────────────────────────────────
def _engine_options(url: str) -> dict:
    options = {"echo": settings.log_level == "DEBUG"}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# expire_on_commit=False: results returned from a UnitOfWork body stay
# readable after the commit, outside the session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic and the test-suite use to
    create the schema.
    """
    pass


# ── Constraint Error Translation ──────────────────────────────────────────
# PostgreSQL: 'DETAIL:  Key (email)=(a@b.c) already exists.'
_PG_KEY_PATTERN = re.compile(r"Key \(([^)]+)\)=")
# SQLite: 'UNIQUE constraint failed: users.email'
_SQLITE_KEY_PATTERN = re.compile(r"UNIQUE constraint failed: ([\w., ]+)")


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    """
    Extracts the column name(s) behind a unique violation.

    Returns None when the driver message carries no recognizable key.
    """
    text = str(exc.orig) if exc.orig is not None else str(exc)
    match = _PG_KEY_PATTERN.search(text)
    if match:
        return match.group(1)
    match = _SQLITE_KEY_PATTERN.search(text)
    if match:
        columns = [part.strip().rsplit(".", 1)[-1] for part in match.group(1).split(",")]
        return ", ".join(columns)
    return None


async def flush_changes(session: AsyncSession) -> None:
    """
    Flushes pending writes, surfacing unique violations as DuplicateKeyError.

    Call this inside a UnitOfWork body when a later step depends on the rows
    just added (e.g. re-reading an inserted recipe with its creator).
    """
    try:
        await session.flush()
    except IntegrityError as exc:
        raise DuplicateKeyError(field=duplicate_field(exc)) from exc


# ── Unit of Work ──────────────────────────────────────────────────────────
class UnitOfWork:
    """
    Runs an async body inside one database transaction.

    Guarantees:
        - body(session) sees a session with an open transaction
        - success: commit, then return body's result
        - body raises: roll back (only if still in a transaction) and re-raise
          the original exception; a failing rollback is logged, not raised
        - commit raises: IntegrityError → DuplicateKeyError, any other
          database error → CommitFailure; never retried
        - the session is closed on every path

    Example:
        async def body(session):
            session.add(Recipe(...))
            await flush_changes(session)
            return recipe

        recipe = await uow.run(body)
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or async_session_factory

    async def run(self, body: Callable[[AsyncSession], Awaitable[T]]) -> T:
        session = self._session_factory()
        try:
            await session.begin()
            try:
                result = await body(session)
            except Exception:
                await self._abort(session)
                raise

            try:
                await session.commit()
            except IntegrityError as exc:
                await self._abort(session)
                field = duplicate_field(exc)
                logger.warning("Commit rejected by unique constraint on %s", field)
                raise DuplicateKeyError(field=field) from exc
            except SQLAlchemyError as exc:
                await self._abort(session)
                logger.error("Transaction commit failed: %s", exc, exc_info=True)
                raise CommitFailure(context={"error_type": type(exc).__name__}) from exc

            return result
        finally:
            await session.close()

    @staticmethod
    async def _abort(session: AsyncSession) -> None:
        if not session.in_transaction():
            return
        try:
            await session.rollback()
        except Exception:
            # The caller re-raises the error that caused the abort.
            logger.error("Rollback failed", exc_info=True)


unit_of_work = UnitOfWork()


# ── Dependencies ──────────────────────────────────────────────────────────
def get_unit_of_work() -> UnitOfWork:
    """FastAPI dependency providing the transactional helper for write routes."""
    return unit_of_work


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction
        5. Always: closes the session (returns connection to pool)

    Used by read paths; multi-step writes go through UnitOfWork instead.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections. Called from the lifespan on shutdown."""
    await engine.dispose()
