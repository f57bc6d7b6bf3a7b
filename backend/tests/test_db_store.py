"""
Jotter Backend — SQL Store Tests (SQLite + aiosqlite)
=====================================================

What we test:
    ✅ ON CONFLICT insert returns the owner of a taken key
    ✅ concurrent inserts of one key leave exactly one row
    ✅ list order and limit, delete, count_stale, update_norm conflicts
    ✅ ping and unreachable-database startup failure
    ❌ PostgreSQL-specific behaviour (same statement, different dialect)
"""

import asyncio

import pytest
from sqlalchemy import func, select

from app.config import Settings
from app.exceptions import StorageError
from app.models.entry import Entry
from app.schemas.entry import EntryRecord
from app.services.db_store import SqlEntryStore


def make_entry(entry_id: str, norm: str, created_at: int, version: str = "fold/1") -> EntryRecord:
    return EntryRecord(id=entry_id, text=norm.upper(), norm=norm, norm_version=version, created_at=created_at)


async def row_count(store: SqlEntryStore) -> int:
    async with store._sessions() as session:
        result = await session.execute(select(func.count()).select_from(Entry))
        return result.scalar()


class TestSqlInsert:

    @pytest.mark.asyncio
    async def test_insert_and_find(self, sql_store):
        entry = make_entry("1_a", "hello", 1)

        stored, inserted = await sql_store.insert_if_absent(entry)

        assert inserted is True
        assert stored == entry
        assert await sql_store.find_by_norm("hello") == entry

    @pytest.mark.asyncio
    async def test_conflict_returns_existing_row(self, sql_store):
        await sql_store.insert_if_absent(make_entry("1_a", "hello", 1))

        stored, inserted = await sql_store.insert_if_absent(make_entry("2_b", "hello", 2))

        assert inserted is False
        assert stored.id == "1_a"
        assert await row_count(sql_store) == 1

    @pytest.mark.asyncio
    async def test_concurrent_inserts_leave_one_row(self, sql_store):
        candidates = [make_entry(f"{i}_x", "same", i) for i in range(8)]

        results = await asyncio.gather(*(sql_store.insert_if_absent(c) for c in candidates))

        assert sum(1 for _, inserted in results if inserted) == 1
        assert len({stored.id for stored, _ in results}) == 1
        assert await row_count(sql_store) == 1


class TestSqlQueries:

    @pytest.mark.asyncio
    async def test_list_latest(self, sql_store):
        for i, ts in enumerate([30, 10, 50, 20, 40]):
            await sql_store.insert_if_absent(make_entry(f"id{i}", f"k{i}", ts))

        latest = await sql_store.list_latest(3)

        assert [e.created_at for e in latest] == [50, 40, 30]

    @pytest.mark.asyncio
    async def test_delete(self, sql_store):
        await sql_store.insert_if_absent(make_entry("a", "one", 1))

        assert await sql_store.delete("a") is True
        assert await sql_store.delete("a") is False
        assert await sql_store.list_latest(10) == []

    @pytest.mark.asyncio
    async def test_count_stale_and_update_norm(self, sql_store):
        await sql_store.insert_if_absent(make_entry("a", "card 7", 1))
        await sql_store.insert_if_absent(make_entry("b", "9", 2, version="card/1"))

        assert await sql_store.count_stale("card/1") == 1
        assert await sql_store.update_norm("a", "7", "card/1") is True
        assert await sql_store.count_stale("card/1") == 0
        assert (await sql_store.find_by_norm("7")).id == "a"

    @pytest.mark.asyncio
    async def test_update_norm_conflict_keeps_row(self, sql_store):
        await sql_store.insert_if_absent(make_entry("a", "7", 1, version="card/1"))
        await sql_store.insert_if_absent(make_entry("b", "card 7", 2))

        assert await sql_store.update_norm("b", "7", "card/1") is False
        assert (await sql_store.find_by_norm("card 7")).id == "b"

    @pytest.mark.asyncio
    async def test_all_entries_oldest_first(self, sql_store):
        await sql_store.insert_if_absent(make_entry("late", "b", 20))
        await sql_store.insert_if_absent(make_entry("early", "a", 10))

        assert [e.id for e in await sql_store.all_entries()] == ["early", "late"]


class TestSqlConnection:

    @pytest.mark.asyncio
    async def test_ping(self, sql_store):
        assert await sql_store.ping() is True

    @pytest.mark.asyncio
    async def test_connect_failure_raises_storage_error(self, tmp_path):
        settings = Settings(
            storage_backend="database",
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'x.db'}",
        )
        store = SqlEntryStore(settings)

        with pytest.raises(StorageError):
            await store.connect()
        await store.close()
