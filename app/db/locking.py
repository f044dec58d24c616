"""
Row locking for read-then-write scheduling transactions.

Writes that check an invariant and then insert (teacher clash, cell occupancy,
single active version) first take `SELECT ... FOR UPDATE` locks on the rows every
competing writer must also lock, always in ascending id order so two writers
cannot deadlock on each other. SQLite has no row locks and ignores FOR UPDATE;
there every transaction starts with BEGIN IMMEDIATE (see
`app.db.session.use_immediate_transactions`), which serializes whole transactions.
"""
import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import TransactionConflict

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure, query_canceled (statement timeout)
RETRYABLE_SQLSTATES = {"55P03", "40P01", "40001", "57014"}


def _is_postgres(db: AsyncSession) -> bool:
    return db.get_bind().dialect.name == "postgresql"


async def set_lock_timeout(db: AsyncSession) -> None:
    """Bound lock waits for the rest of the current transaction."""
    if _is_postgres(db):
        timeout_ms = int(settings.lock_timeout_seconds * 1000)
        await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


async def lock_rows(db: AsyncSession, model, ids: Iterable[UUID]) -> None:
    """Lock rows of `model` by primary key, in id order."""
    ordered = sorted(set(ids), key=str)
    if not ordered:
        return
    await set_lock_timeout(db)
    try:
        await db.execute(
            select(model.id).where(model.id.in_(ordered)).order_by(model.id).with_for_update()
        )
    except DBAPIError as e:
        await db.rollback()
        if not is_retryable(e):
            raise
        logger.warning("Could not lock %s rows: %s", model.__tablename__, e.__class__.__name__)
        raise TransactionConflict(f"Timed out waiting for {model.__tablename__} lock; please retry") from e


def is_retryable(exc: DBAPIError) -> bool:
    """True when the driver error means "lost a race", not "bad request"."""
    if isinstance(exc, IntegrityError):
        return True
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


async def commit_or_conflict(db: AsyncSession, operation: str) -> None:
    """Commit; a late constraint violation or lock failure becomes TransactionConflict."""
    try:
        await db.commit()
    except DBAPIError as e:
        await db.rollback()
        if not is_retryable(e):
            raise
        logger.warning("Transaction conflict during %s: %s", operation, e.__class__.__name__)
        raise TransactionConflict(f"Concurrent modification during {operation}; please retry") from e
