"""
Jotter Backend — Entry Service Unit Tests
=========================================

What:  EntryService business rules against a mocked store, plus the backfill
       against a real JSON Lines store.

What we test:
    ✅ validation: blank text, blank key, blank id
    ✅ lookup hit returns the existing entry without inserting
    ✅ lost insert race returns the winner flagged as existing
    ✅ unexpected store failures become StorageError; app errors pass through
    ✅ delete not-found, health flags, list limit cap
    ✅ backfill: updates stale keys, reports conflicts, dry run writes nothing
"""

from unittest.mock import ANY

import pytest

from app.exceptions import NotFoundError, StorageError, ValidationError
from app.schemas.entry import EntryRecord
from app.services.entry_service import EntryService, generate_entry_id
from app.services.normalization import CardNumberPolicy, FoldPolicy


def record(entry_id="1_a", text="Hello World", norm="hello world", created_at=1) -> EntryRecord:
    return EntryRecord(id=entry_id, text=text, norm=norm, norm_version="fold/1", created_at=created_at)


class TestCreateEntry:

    @pytest.fixture(autouse=True)
    def _service(self, mock_store):
        self.store = mock_store
        self.service = EntryService(store=mock_store, policy=FoldPolicy())

    @pytest.mark.asyncio
    async def test_new_entry_is_trimmed_and_inserted(self):
        self.store.insert_if_absent.side_effect = lambda entry: (entry, True)

        entry, exists = await self.service.create_entry("  Hello   World  ")

        assert exists is False
        assert entry.text == "Hello   World"
        assert entry.norm == "hello world"
        assert entry.norm_version == "fold/1"
        assert entry.id.startswith(f"{entry.created_at}_")
        self.store.find_by_norm.assert_awaited_once_with("hello world")

    @pytest.mark.asyncio
    async def test_existing_key_short_circuits(self):
        existing = record()
        self.store.find_by_norm.return_value = existing

        entry, exists = await self.service.create_entry("hello world")

        assert exists is True
        assert entry is existing
        self.store.insert_if_absent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_race_returns_winner(self):
        winner = record(entry_id="9_w")
        self.store.insert_if_absent.return_value = (winner, False)

        entry, exists = await self.service.create_entry("Hello World")

        assert exists is True
        assert entry.id == "9_w"
        self.store.insert_if_absent.assert_awaited_once_with(ANY)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t", None])
    async def test_blank_text_rejected(self, text):
        with pytest.raises(ValidationError, match="Text is required"):
            await self.service.create_entry(text)
        self.store.find_by_norm.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_store_error_is_wrapped(self):
        self.store.find_by_norm.side_effect = RuntimeError("connection reset")

        with pytest.raises(StorageError) as exc_info:
            await self.service.create_entry("anything")
        assert exc_info.value.context["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_storage_error_passes_through(self):
        original = StorageError(context={"path": "/data/entries.jsonl"})
        self.store.insert_if_absent.side_effect = original

        with pytest.raises(StorageError) as exc_info:
            await self.service.create_entry("anything")
        assert exc_info.value is original


class TestListDeleteHealth:

    @pytest.mark.asyncio
    async def test_list_limit_is_capped_at_500(self, mock_store):
        service = EntryService(store=mock_store, policy=FoldPolicy(), list_limit=10_000)

        await service.list_entries()

        mock_store.list_latest.assert_awaited_once_with(500)

    @pytest.mark.asyncio
    async def test_delete_unknown_id(self, mock_store):
        mock_store.delete.return_value = False
        service = EntryService(store=mock_store, policy=FoldPolicy())

        with pytest.raises(NotFoundError):
            await service.delete_entry("missing")

    @pytest.mark.asyncio
    async def test_delete_blank_id(self, mock_store):
        service = EntryService(store=mock_store, policy=FoldPolicy())

        with pytest.raises(ValidationError, match="Missing id"):
            await service.delete_entry("  ")
        mock_store.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_health_without_connection_flag(self, mock_store):
        service = EntryService(store=mock_store, policy=FoldPolicy())

        assert await service.health() == (True, None)

    @pytest.mark.asyncio
    async def test_health_reports_database(self, mock_store):
        mock_store.reports_connection = True
        mock_store.ping.return_value = False
        service = EntryService(store=mock_store, policy=FoldPolicy())

        assert await service.health() == (True, False)


def test_generate_entry_id_is_unique():
    ids = {generate_entry_id(1700000000000) for _ in range(200)}
    assert len(ids) == 200
    assert all(i.startswith("1700000000000_") for i in ids)


class TestBackfill:

    @pytest.mark.asyncio
    async def test_backfill_recomputes_stale_keys(self, file_store):
        fold_service = EntryService(store=file_store, policy=FoldPolicy())
        await fold_service.create_entry("Card 12 blue")
        await fold_service.create_entry("shopping list")

        card_service = EntryService(store=file_store, policy=CardNumberPolicy())
        assert await card_service.count_stale() == 2

        report = await card_service.backfill_norms()

        assert report.updated == 2
        assert report.conflicts == []
        assert await card_service.count_stale() == 0
        entry, exists = await card_service.create_entry("card: 12 red")
        assert exists is True
        assert entry.text == "Card 12 blue"

    @pytest.mark.asyncio
    async def test_backfill_reports_collisions(self, file_store):
        fold_service = EntryService(store=file_store, policy=FoldPolicy())
        first, _ = await fold_service.create_entry("card 5 first")
        second, _ = await fold_service.create_entry("card 5 second")

        report = await EntryService(store=file_store, policy=CardNumberPolicy()).backfill_norms()

        # Oldest keeps the key; ties keep file order
        assert report.updated == 1
        assert report.conflicts == [second.id]
        assert (await file_store.find_by_norm("5")).id == first.id

    @pytest.mark.asyncio
    async def test_dry_run_matches_real_run_when_newer_entry_owns_key(self, file_store):
        await file_store.insert_if_absent(
            EntryRecord(id="1_old", text="card 5 old", norm="card 5 old", norm_version="fold/1", created_at=1)
        )
        await file_store.insert_if_absent(
            EntryRecord(id="2_new", text="card 5 new", norm="5", norm_version="card/1", created_at=2)
        )
        service = EntryService(store=file_store, policy=CardNumberPolicy())

        preview = await service.backfill_norms(dry_run=True)
        report = await service.backfill_norms()

        assert (preview.updated, preview.conflicts) == (0, ["1_old"])
        assert (report.updated, report.conflicts) == (0, ["1_old"])
        assert report.unchanged == 1

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, file_store):
        await EntryService(store=file_store, policy=FoldPolicy()).create_entry("card 3")
        before = file_store.path.read_text(encoding="utf-8")

        report = await EntryService(store=file_store, policy=CardNumberPolicy()).backfill_norms(dry_run=True)

        assert report.updated == 1
        assert file_store.path.read_text(encoding="utf-8") == before
