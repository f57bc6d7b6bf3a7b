"""
Jotter Backend — JSON Lines Entry Store
=======================================

What:  Flat-file persistence: one JSON object per line in `entries.jsonl`.
How:   Appends for inserts; list/delete read the whole file, filter in memory,
       and deletes rewrite it through a temp file + atomic rename.
When:  STORAGE_BACKEND=file (the default; no infrastructure needed).

Concurrency:
    Every read-modify-write cycle runs under one asyncio.Lock, so within a
    single process two requests cannot interleave a lookup and an append.
    Several processes sharing one file are NOT coordinated; the last rewrite
    wins. Run the database backend for multi-worker deployments.

File format (one line per entry):
    {"id":"1718000000000_9f2c1a","text":"Hello","norm":"hello","normVersion":"fold/1","createdAt":1718000000000}

    Lines written before deduplication existed have no `norm`; they are
    listed normally and picked up by the backfill command. Lines that are
    not valid JSON are skipped with a warning.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
import aiofiles.os
from pydantic import ValidationError as SchemaError

from app.exceptions import StorageError
from app.schemas.entry import EntryRecord
from app.services.store_base import EntryStore

logger = logging.getLogger(__name__)


def _serialize(entry: EntryRecord) -> str:
    return entry.model_dump_json(by_alias=True, exclude_none=True)


class FileEntryStore(EntryStore):
    """Entry store backed by a single JSON Lines file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Opening in append mode proves the file is writable without touching content
            async with aiofiles.open(self.path, "a", encoding="utf-8"):
                pass
        except OSError as e:
            raise StorageError(
                message=f"Entries file is not writable: {self.path}",
                context={"path": str(self.path), "os_error": str(e)},
            ) from e
        logger.info("FileEntryStore using %s", self.path.resolve())

    # ── Raw file access (callers hold the lock) ───────────────────────────

    async def _read_all(self) -> List[EntryRecord]:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Failed to read %s: %s", self.path, str(e))
            raise StorageError(context={"path": str(self.path), "os_error": str(e)}) from e

        entries = []
        for lineno, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                entries.append(EntryRecord.model_validate_json(line))
            except SchemaError:
                logger.warning("Skipping malformed line %d in %s", lineno, self.path.name)
        return entries

    async def _write_all(self, entries: List[EntryRecord]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        content = "".join(_serialize(e) + "\n" for e in entries)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to rewrite %s: %s", self.path, str(e))
            raise StorageError(context={"path": str(self.path), "os_error": str(e)}) from e

    async def _append(self, entry: EntryRecord) -> None:
        try:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(_serialize(entry) + "\n")
        except OSError as e:
            logger.error("Failed to append to %s: %s", self.path, str(e))
            raise StorageError(context={"path": str(self.path), "os_error": str(e)}) from e

    @staticmethod
    def _match_norm(entries: List[EntryRecord], norm: str) -> Optional[EntryRecord]:
        for entry in entries:
            if entry.norm == norm:
                return entry
        return None

    # ── EntryStore ────────────────────────────────────────────────────────

    async def find_by_norm(self, norm: str) -> Optional[EntryRecord]:
        async with self._lock:
            return self._match_norm(await self._read_all(), norm)

    async def insert_if_absent(self, entry: EntryRecord) -> Tuple[EntryRecord, bool]:
        async with self._lock:
            existing = self._match_norm(await self._read_all(), entry.norm)
            if existing is not None:
                return existing, False
            await self._append(entry)
            return entry, True

    async def list_latest(self, limit: int) -> List[EntryRecord]:
        async with self._lock:
            entries = await self._read_all()
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    async def delete(self, entry_id: str) -> bool:
        async with self._lock:
            entries = await self._read_all()
            remaining = [e for e in entries if e.id != entry_id]
            if len(remaining) == len(entries):
                return False
            await self._write_all(remaining)
            return True

    async def all_entries(self) -> List[EntryRecord]:
        async with self._lock:
            entries = await self._read_all()
        entries.sort(key=lambda e: e.created_at)
        return entries

    async def count_stale(self, version: str) -> int:
        async with self._lock:
            entries = await self._read_all()
        return sum(1 for e in entries if e.norm_version != version)

    async def update_norm(self, entry_id: str, norm: str, version: str) -> bool:
        async with self._lock:
            entries = await self._read_all()
            if any(e.norm == norm and e.id != entry_id for e in entries):
                return False
            updated = []
            found = False
            for e in entries:
                if e.id == entry_id:
                    e = e.model_copy(update={"norm": norm, "norm_version": version})
                    found = True
                updated.append(e)
            if found:
                await self._write_all(updated)
            return found
