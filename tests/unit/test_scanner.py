"""Batch iteration tests against a fake page fetcher."""

from __future__ import annotations

import asyncio

import pytest

from commstats.stats.scanner import RowFilter, ScanError, apply_filters, iter_batches

pytestmark = pytest.mark.asyncio


class FakeTable:
    """Serves OFFSET/LIMIT pages from a list and records every call."""

    def __init__(self, size: int, fail_at: int | None = None, delay: float = 0.0) -> None:
        self.rows = [{"id": i} for i in range(1, size + 1)]
        self.calls: list[tuple[int, int]] = []
        self.fail_at = fail_at
        self.delay = delay

    async def fetch(self, offset: int, limit: int) -> list[dict]:
        self.calls.append((offset, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_at is not None and offset >= self.fail_at:
            raise ConnectionError("row store unavailable")
        return self.rows[offset:offset + limit]


async def _collect(table: FakeTable, batch_size: int, **kwargs) -> list[list[dict]]:
    return [batch async for batch in iter_batches(table.fetch, batch_size, **kwargs)]


class TestIterBatches:
    """Offset paging, termination and failure handling."""

    async def test_short_last_batch_stops(self) -> None:
        table = FakeTable(2500)
        batches = await _collect(table, 1000)
        assert [len(b) for b in batches] == [1000, 1000, 500]
        assert table.calls == [(0, 1000), (1000, 1000), (2000, 1000)]

    async def test_exact_multiple_needs_empty_fetch(self) -> None:
        table = FakeTable(2000)
        batches = await _collect(table, 1000)
        assert [len(b) for b in batches] == [1000, 1000]
        assert len(table.calls) == 3

    async def test_empty_table(self) -> None:
        table = FakeTable(0)
        assert await _collect(table, 1000) == []
        assert table.calls == [(0, 1000)]

    async def test_every_row_once_in_order(self) -> None:
        table = FakeTable(7)
        batches = await _collect(table, 3)
        assert [row["id"] for b in batches for row in b] == list(range(1, 8))

    async def test_fetch_error_aborts(self) -> None:
        table = FakeTable(2500, fail_at=1000)
        seen = []
        with pytest.raises(ScanError) as exc_info:
            async for batch in iter_batches(table.fetch, 1000):
                seen.append(batch)
        assert len(seen) == 1
        assert exc_info.value.offset == 1000
        assert isinstance(exc_info.value.cause, ConnectionError)

    async def test_timeout_aborts(self) -> None:
        table = FakeTable(10, delay=0.5)
        with pytest.raises(ScanError) as exc_info:
            await _collect(table, 5, timeout=0.01)
        assert exc_info.value.offset == 0

    async def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError):
            await _collect(FakeTable(1), 0)


class TestFilters:
    """Filter translation into SQL."""

    async def test_unknown_column(self) -> None:
        from sqlalchemy import select

        from commstats.db.models import CommunityUser

        with pytest.raises(ValueError):
            apply_filters(select(CommunityUser.id), [RowFilter.eq("no_such_column", 1)])

    async def test_role_contains_uses_jsonb_on_postgres(self) -> None:
        from sqlalchemy import select
        from sqlalchemy.dialects import postgresql

        from commstats.db.models import CommunityUser

        query = apply_filters(
            select(CommunityUser.id),
            [RowFilter.contains("roles", "Modérateur")],
            dialect="postgresql",
        )
        sql = str(query.compile(dialect=postgresql.dialect()))
        assert "@>" in sql
        assert "LIKE" not in sql.upper()

    async def test_role_contains_uses_like_elsewhere(self) -> None:
        from sqlalchemy import select
        from sqlalchemy.dialects import sqlite

        from commstats.db.models import CommunityUser

        query = apply_filters(select(CommunityUser.id), [RowFilter.contains("roles", "Verified")])
        sql = str(query.compile(dialect=sqlite.dialect()))
        assert "LIKE" in sql.upper()
