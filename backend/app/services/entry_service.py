"""
Jotter Backend — Entry Service (Business Logic)
===============================================

What:  Validation, deduplication and the idempotent create protocol.
Who:   Called by route handlers and by the backfill command.
How:   Composes one EntryStore with one NormalizationPolicy, both passed in
       at construction. No HTTP types appear here.

Create Flow (POST /api/entries):
    ┌──────────┐   ┌───────────┐   ┌──────────────┐   ┌────────────────────┐
    │  trim +  │──▶│  norm =   │──▶│ find_by_norm │──▶│ insert_if_absent   │
    │ validate │   │ policy(t) │   │  (fast path) │   │ (atomic on norm)   │
    └──────────┘   └───────────┘   └──────────────┘   └────────────────────┘
                                          │ hit                 │ lost race
                                          ▼                     ▼
                                   (existing, True)      (winner, True)

Error Handling Strategy:
    JotterError subclasses propagate untouched. Anything else coming out of
    a store is logged and wrapped in StorageError so the client only sees a
    generic 500.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from app.exceptions import JotterError, NotFoundError, StorageError, ValidationError
from app.schemas.entry import EntryRecord
from app.services.normalization import NormalizationPolicy
from app.services.store_base import EntryStore

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 500


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_entry_id(created_at: int) -> str:
    """Timestamp plus random suffix, e.g. "1718000000000_3f9a1c0b2d4e"."""
    return f"{created_at}_{secrets.token_hex(6)}"


@dataclass
class BackfillReport:
    """Outcome of recomputing stored keys under the active policy."""

    version: str
    updated: int = 0
    unchanged: int = 0
    conflicts: List[str] = field(default_factory=list)


class EntryService:
    """
    Responsibilities:
        - create_entry(): idempotent lookup-or-create by normalization key
        - list_entries(): latest entries, newest first
        - delete_entry(): delete by id with not-found signalling
        - health(): reachability of the store
        - backfill_norms(): maintenance after a policy change
    """

    def __init__(self, store: EntryStore, policy: NormalizationPolicy, list_limit: int = MAX_LIST_LIMIT):
        self.store = store
        self.policy = policy
        self.list_limit = min(list_limit, MAX_LIST_LIMIT)

    async def create_entry(self, raw_text: Optional[str]) -> Tuple[EntryRecord, bool]:
        """
        Store `raw_text` unless an entry with the same key exists.

        Returns:
            (entry, exists). `exists` is True when no new entry was created.

        Raises:
            ValidationError: text is empty after trimming or yields an empty key
            StorageError: persistence failed
        """
        text = (raw_text or "").strip()
        if not text:
            raise ValidationError(message="Text is required", field="text")

        norm = self.policy.key(text)
        if not norm:
            raise ValidationError(
                message="Text does not produce a usable key",
                field="text",
                context={"policy": self.policy.version},
            )

        try:
            existing = await self.store.find_by_norm(norm)
            if existing is not None:
                logger.info("Duplicate submission matched entry %s", existing.id)
                return existing, True

            created_at = now_ms()
            candidate = EntryRecord(
                id=generate_entry_id(created_at),
                text=text,
                norm=norm,
                norm_version=self.policy.version,
                created_at=created_at,
            )
            stored, inserted = await self.store.insert_if_absent(candidate)
        except JotterError:
            raise
        except Exception as e:
            raise self._wrap("create_entry", e) from e

        if inserted:
            logger.info("Entry %s created", stored.id)
        else:
            logger.info("Concurrent duplicate resolved to entry %s", stored.id)
        return stored, not inserted

    async def list_entries(self) -> List[EntryRecord]:
        try:
            return await self.store.list_latest(self.list_limit)
        except JotterError:
            raise
        except Exception as e:
            raise self._wrap("list_entries", e) from e

    async def delete_entry(self, entry_id: Optional[str]) -> None:
        """
        Raises:
            ValidationError: blank id
            NotFoundError: no entry has this id
            StorageError: persistence failed
        """
        entry_id = (entry_id or "").strip()
        if not entry_id:
            raise ValidationError(message="Missing id", field="id")

        try:
            deleted = await self.store.delete(entry_id)
        except JotterError:
            raise
        except Exception as e:
            raise self._wrap("delete_entry", e) from e

        if not deleted:
            raise NotFoundError(resource="entry", resource_id=entry_id)
        logger.info("Entry %s deleted", entry_id)

    async def health(self) -> Tuple[bool, Optional[bool]]:
        """Returns (ok, db). `db` is None for stores without a connection."""
        if not self.store.reports_connection:
            return True, None
        return True, await self.store.ping()

    async def count_stale(self) -> int:
        return await self.store.count_stale(self.policy.version)

    async def backfill_norms(self, dry_run: bool = False) -> BackfillReport:
        """
        Recompute keys of entries produced by another policy version.

        Oldest entries are processed first so that, when two old entries now
        share a key, the earlier one keeps it and the later one is reported
        as a conflict.
        """
        report = BackfillReport(version=self.policy.version)
        entries = await self.store.all_entries()

        # Keys already held under the active policy, newer entries included
        claimed = {}
        for entry in entries:
            if self._is_current(entry):
                claimed.setdefault(entry.norm, entry.id)

        for entry in entries:
            if self._is_current(entry):
                report.unchanged += 1
                continue

            norm = self.policy.key(entry.text)
            owner = claimed.get(norm)
            if not norm or (owner is not None and owner != entry.id):
                report.conflicts.append(entry.id)
                continue

            if dry_run:
                ok = True
            else:
                ok = await self.store.update_norm(entry.id, norm, self.policy.version)
            if ok:
                claimed[norm] = entry.id
                report.updated += 1
            else:
                report.conflicts.append(entry.id)

        logger.info(
            "Backfill to %s: %d updated, %d unchanged, %d conflicts",
            report.version, report.updated, report.unchanged, len(report.conflicts),
        )
        return report

    def _is_current(self, entry: EntryRecord) -> bool:
        return entry.norm_version == self.policy.version and bool(entry.norm)

    @staticmethod
    def _wrap(operation: str, error: Exception) -> StorageError:
        logger.error("Unexpected error in %s: %s", operation, str(error), exc_info=True)
        return StorageError(context={"operation": operation, "error_type": type(error).__name__})
