"""
Jotter Backend — Abstract Entry Store Interface
===============================================

What:  The persistence contract both backends implement.
Why:   EntryService holds the dedup protocol once; stores only answer
       "is this key taken" and "insert unless taken".
Who:   FileEntryStore (JSON Lines) and SqlEntryStore (SQLAlchemy).

Contract:
    - insert_if_absent() is the single write primitive for new entries and
      must be atomic with respect to `norm` within the store's guarantees
    - store-specific failures are raised as StorageError
    - missing entries are reported by return value (None / False), never by
      NotFoundError; mapping to HTTP errors is the service's job
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from app.schemas.entry import EntryRecord


class EntryStore(ABC):
    """Persistence backend for entries."""

    #: Health responses include a `db` flag only for stores that set this
    reports_connection: bool = False

    async def connect(self) -> None:
        """Open resources and verify the store is usable. Called once at startup."""

    async def close(self) -> None:
        """Release resources. Called once at shutdown."""

    async def ping(self) -> bool:
        """Whether the underlying connection is currently established."""
        return True

    @abstractmethod
    async def find_by_norm(self, norm: str) -> Optional[EntryRecord]:
        """Return the entry whose key is `norm`, if any."""

    @abstractmethod
    async def insert_if_absent(self, entry: EntryRecord) -> Tuple[EntryRecord, bool]:
        """
        Store `entry` unless its key is already taken.

        Returns:
            (stored_entry, inserted). When `inserted` is False the returned
            entry is the one that already owned the key.
        """

    @abstractmethod
    async def list_latest(self, limit: int) -> List[EntryRecord]:
        """Up to `limit` entries, newest `created_at` first."""

    @abstractmethod
    async def delete(self, entry_id: str) -> bool:
        """Remove the entry with `entry_id`. Returns False when nothing matched."""

    # ── Maintenance (backfill) ────────────────────────────────────────────

    @abstractmethod
    async def all_entries(self) -> List[EntryRecord]:
        """Every entry, oldest first."""

    @abstractmethod
    async def count_stale(self, version: str) -> int:
        """Number of entries whose key was not produced by `version`."""

    @abstractmethod
    async def update_norm(self, entry_id: str, norm: str, version: str) -> bool:
        """
        Replace the key of one entry.

        Returns False when another entry already owns `norm` (the entry is
        left unchanged) or when `entry_id` does not exist.
        """
