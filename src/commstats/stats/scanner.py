"""Paginated full-table scanner for community_users.

This is the only place that reads the whole dataset. Batches are fetched
sequentially with OFFSET/LIMIT ordered by primary key; the scan stops as soon
as a batch comes back shorter than the batch size (or empty).

Everything that needs every row (the stats cycle, the badge leaderboard)
consumes :func:`scan_table` instead of paginating on its own.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import Select, Text, cast, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.db.models import CommunityUser

FilterOp = Literal["eq", "not_null", "contains", "gt"]

PageFetcher = Callable[[int, int], Awaitable[Sequence[Mapping[str, Any]]]]


class ScanError(Exception):
    """A batch fetch failed or timed out; the scan is aborted."""

    def __init__(self, offset: int, cause: BaseException) -> None:
        self.offset = offset
        self.cause = cause
        super().__init__(f"Batch fetch at offset {offset} failed: {cause!r}")


@dataclass(frozen=True)
class RowFilter:
    """Filter predicate over a community_users column."""

    column: str
    op: FilterOp
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> RowFilter:
        return cls(column, "eq", value)

    @classmethod
    def not_null(cls, column: str) -> RowFilter:
        return cls(column, "not_null")

    @classmethod
    def contains(cls, column: str, tag: str) -> RowFilter:
        return cls(column, "contains", tag)

    @classmethod
    def gt(cls, column: str, value: Any) -> RowFilter:
        return cls(column, "gt", value)


# Population used by every per-user comparison: real members only.
HUMANS_ONLY: tuple[RowFilter, ...] = (RowFilter.eq("is_bot", False),)


def _column(name: str) -> Any:
    try:
        return CommunityUser.__table__.c[name]
    except KeyError:
        msg = f"Unknown column: {name}"
        raise ValueError(msg) from None


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_filters(
    query: Select,  # type: ignore[type-arg]
    filters: Iterable[RowFilter],
    dialect: str | None = None,
) -> Select:  # type: ignore[type-arg]
    """Apply filter predicates to a select over community_users.

    ``dialect`` picks the role-containment form: JSONB ``@>`` on PostgreSQL,
    a LIKE over the serialized array elsewhere.
    """
    for f in filters:
        col = _column(f.column)
        if f.op == "eq":
            query = query.where(col.is_(f.value) if isinstance(f.value, bool) else col == f.value)
        elif f.op == "not_null":
            query = query.where(col.isnot(None))
        elif f.op == "gt":
            query = query.where(col > f.value)
        elif f.op == "contains":
            if dialect == "postgresql":
                query = query.where(type_coerce(col, JSONB).contains([f.value]))
                continue
            # Same encoding SQLAlchemy uses when writing the JSON column.
            pattern = f"%{_like_escape(json.dumps(f.value))}%"
            query = query.where(col.isnot(None), cast(col, Text).like(pattern, escape="\\"))
        else:
            msg = f"Unknown filter op: {f.op}"
            raise ValueError(msg)
    return query


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


def table_fetcher(
    session: AsyncSession,
    columns: Sequence[str],
    filters: Sequence[RowFilter] = (),
) -> PageFetcher:
    """Build a page fetcher projecting ``columns`` from community_users."""
    projection = [_column(name) for name in columns]
    base = apply_filters(select(*projection), filters, dialect_name(session)).order_by(CommunityUser.id)

    async def fetch(offset: int, limit: int) -> list[dict[str, Any]]:
        result = await session.execute(base.offset(offset).limit(limit))
        return [dict(row) for row in result.mappings()]

    return fetch


async def iter_batches(
    fetch_page: PageFetcher,
    batch_size: int,
    *,
    timeout: float | None = None,
) -> AsyncIterator[list[Mapping[str, Any]]]:
    """Yield batches from offset 0 until a short or empty batch.

    Raises:
        ScanError: on the first failing (or timed out) fetch.
    """
    if batch_size <= 0:
        msg = "batch_size must be positive"
        raise ValueError(msg)

    offset = 0
    while True:
        try:
            if timeout:
                batch = await asyncio.wait_for(fetch_page(offset, batch_size), timeout)
            else:
                batch = await fetch_page(offset, batch_size)
        except Exception as exc:
            raise ScanError(offset, exc) from exc

        if not batch:
            return
        yield list(batch)
        if len(batch) < batch_size:
            return
        offset += batch_size


async def scan_table(
    session: AsyncSession,
    columns: Sequence[str],
    *,
    batch_size: int = 1000,
    filters: Sequence[RowFilter] = (),
    timeout: float | None = None,
) -> AsyncIterator[list[Mapping[str, Any]]]:
    """Scan community_users in batches of ``batch_size`` rows."""
    async for batch in iter_batches(
        table_fetcher(session, columns, filters),
        batch_size,
        timeout=timeout,
    ):
        yield batch
