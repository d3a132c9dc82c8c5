"""Storage primitives for usage aggregates.

All aggregate writes go through ``upsert_max``: insert the row, or on a key
conflict keep the larger of the stored and the candidate count. The merge
happens inside the database statement, so concurrent and repeated deliveries
of the same report converge without any application-level locking.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, TypeVar

from sqlalchemy import delete, func
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from releasewatch.exceptions import PersistenceError
from releasewatch.utils.security import sanitize_log_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class MergeResult:
    """Outcome of merging part of a report.

    Results add up; the sum is ok only if every part was ok.
    """

    merged: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def __add__(self, other: "MergeResult") -> "MergeResult":
        return MergeResult(self.merged + other.merged, self.failed + other.failed)


def utc_day(now: datetime) -> date:
    """Truncate a timestamp to its UTC calendar day."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def _dialect_name(session: AsyncSession) -> str:
    return session.bind.dialect.name


async def _upsert(
    session: AsyncSession,
    model: Any,
    key: Mapping[str, Any],
    values: Mapping[str, Any],
    max_columns: tuple[str, ...] = (),
) -> None:
    """Insert a row or update it in place on a unique key conflict.

    Columns listed in ``max_columns`` keep the larger of the stored and the new
    value; every other column in ``values`` is overwritten.
    """
    table = model.__table__
    row = {**key, **values}
    dialect = _dialect_name(session)

    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(**row)
        new = stmt.inserted
        set_ = {
            column: func.greatest(table.c[column], new[column]) if column in max_columns else new[column]
            for column in values
        }
        stmt = stmt.on_duplicate_key_update(**set_)
    elif dialect in ("sqlite", "postgresql"):
        dialect_module = sqlite if dialect == "sqlite" else postgresql
        # SQLite spells GREATEST as the two-argument max()
        larger = func.max if dialect == "sqlite" else func.greatest
        stmt = dialect_module.insert(table).values(**row)
        new = stmt.excluded
        set_ = {
            column: larger(table.c[column], new[column]) if column in max_columns else new[column]
            for column in values
        }
        stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=set_)
    else:
        raise PersistenceError(
            f"Unsupported database dialect: {dialect}", context={"table": table.name}
        )

    await session.execute(stmt)


async def upsert_max(
    session: AsyncSession,
    model: Any,
    key: Mapping[str, Any],
    count: int,
    overwrite: Optional[Mapping[str, Any]] = None,
) -> None:
    """Insert or merge an aggregate row, never lowering its max_count.

    Args:
        session: Session inside an open transaction
        model: Mapped class with a max_count column and a unique constraint on ``key``
        key: Column values identifying the row
        count: Candidate count
        overwrite: Columns set to the given values whether the row is new or not
    """
    values = {**(overwrite or {}), "max_count": count}
    await _upsert(session, model, key, values, max_columns=("max_count",))


async def upsert_replace(
    session: AsyncSession, model: Any, key: Mapping[str, Any], values: Mapping[str, Any]
) -> None:
    """Insert a row or overwrite its non-key columns."""
    await _upsert(session, model, key, values)


async def insert_ignore(session: AsyncSession, model: Any, values: Mapping[str, Any]) -> None:
    """Insert a row unless one with the same unique key already exists."""
    table = model.__table__
    dialect = _dialect_name(session)

    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(**values).prefix_with("IGNORE")
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values).on_conflict_do_nothing()
    elif dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values).on_conflict_do_nothing()
    else:
        raise PersistenceError(
            f"Unsupported database dialect: {dialect}", context={"table": table.name}
        )

    await session.execute(stmt)


async def delete_many(session: AsyncSession, model: Any, *criteria: Any) -> int:
    """Delete rows matching all criteria, returning the number removed."""
    result = await session.execute(delete(model).where(*criteria))
    return result.rowcount or 0


@asynccontextmanager
async def record_scope(session: AsyncSession) -> AsyncIterator[None]:
    """Isolate one record's writes inside a batch transaction.

    PostgreSQL and MySQL abort the whole transaction on a failed statement, so
    each record gets a savepoint there. SQLite only rolls back the failing
    statement, so records run directly in the batch transaction.
    """
    if _dialect_name(session) == "sqlite":
        yield
    else:
        async with session.begin_nested():
            yield


class UsageStore:
    """Runs short transactional batches against the usage tables."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self.session_factory = session_factory

    async def run_batch(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        timeout: float,
        name: str = "batch",
    ) -> T:
        """Run ``work`` in one transaction, committed on success.

        Args:
            work: Coroutine function receiving the session
            timeout: Upper bound in seconds for the whole batch
            name: Label for logs and errors

        Raises:
            PersistenceError: If the batch exceeds its timeout; the transaction is rolled back
        """

        async def _run() -> T:
            async with self.session_factory() as session:
                async with session.begin():
                    return await work(session)

        try:
            return await asyncio.wait_for(_run(), timeout=timeout)
        except asyncio.TimeoutError as e:
            label = sanitize_log_message(name)
            logger.warning(f"Usage {label} exceeded {timeout:g}s and was rolled back")
            raise PersistenceError(
                f"Usage {label} timed out after {timeout:g}s",
                context={"batch": label, "timeout": timeout},
            ) from e

    async def run(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` in its own committed transaction, outside any batch."""
        async with self.session_factory() as session:
            async with session.begin():
                return await work(session)
