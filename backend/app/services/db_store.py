"""
Jotter Backend — SQL Entry Store
================================

What:  Database persistence for entries via async SQLAlchemy.
When:  STORAGE_BACKEND=database (PostgreSQL + asyncpg in production,
       SQLite + aiosqlite in tests).

Insert-if-absent:
    PostgreSQL and SQLite get a native atomic primitive:

        INSERT INTO entries (...) VALUES (...) ON CONFLICT (norm) DO NOTHING

    rowcount == 0 means another transaction owns the key; the winner is then
    read back. Other dialects fall back to a plain INSERT and treat an
    IntegrityError on the unique index the same way.

Sessions:
    Every operation opens its own short transaction. A duplicate create
    therefore sees the committed winner in its re-query.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.config import Settings
from app.database import Base, build_engine, build_session_factory
from app.exceptions import StorageError
from app.models.entry import Entry
from app.schemas.entry import EntryRecord
from app.services.store_base import EntryStore

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_record(row: Entry) -> EntryRecord:
    return EntryRecord(
        id=row.id,
        text=row.text,
        norm=row.norm,
        norm_version=row.norm_version,
        created_at=row.created_at,
    )


class SqlEntryStore(EntryStore):
    """Entry store backed by the `entries` table."""

    reports_connection = True

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = build_engine(settings)
        self._sessions = build_session_factory(self.engine)

    async def connect(self) -> None:
        """
        Verify the connection and optionally create the schema.

        Raises:
            StorageError: the database cannot be reached
        """
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if self.settings.db_auto_create:
                    await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.error("Database connection failed: %s", str(e))
            raise StorageError(
                message="Could not connect to the database.",
                context={"error_type": type(e).__name__},
            ) from e
        logger.info("SqlEntryStore connected (dialect=%s)", self.engine.dialect.name)

    async def close(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    # ── EntryStore ────────────────────────────────────────────────────────

    async def find_by_norm(self, norm: str) -> Optional[EntryRecord]:
        try:
            async with self._sessions() as session:
                result = await session.execute(select(Entry).where(Entry.norm == norm))
                row = result.scalar_one_or_none()
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise self._wrap("find_by_norm", e) from e

    async def insert_if_absent(self, entry: EntryRecord) -> Tuple[EntryRecord, bool]:
        values = {
            "id": entry.id,
            "text": entry.text,
            "norm": entry.norm,
            "norm_version": entry.norm_version,
            "created_at": entry.created_at,
        }
        insert_fn = _UPSERT_DIALECTS.get(self.engine.dialect.name)

        try:
            async with self._sessions() as session:
                if insert_fn is not None:
                    stmt = insert_fn(Entry).values(**values).on_conflict_do_nothing(
                        index_elements=[Entry.norm]
                    )
                    result = await session.execute(stmt)
                    await session.commit()
                    inserted = result.rowcount == 1
                else:
                    session.add(Entry(**values))
                    try:
                        await session.commit()
                        inserted = True
                    except IntegrityError:
                        await session.rollback()
                        inserted = False
        except SQLAlchemyError as e:
            raise self._wrap("insert_if_absent", e) from e

        if inserted:
            return entry, True

        logger.info("Key already taken during insert; returning existing entry")
        winner = await self.find_by_norm(entry.norm)
        if winner is None:
            # The winner was deleted between the conflict and the re-query
            raise StorageError(
                message="Could not store the entry. Please try again.",
                context={"reason": "conflicting entry vanished", "entry_id": entry.id},
            )
        return winner, False

    async def list_latest(self, limit: int) -> List[EntryRecord]:
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(Entry).order_by(Entry.created_at.desc(), Entry.id.desc()).limit(limit)
                )
                return [_to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._wrap("list_latest", e) from e

    async def delete(self, entry_id: str) -> bool:
        try:
            async with self._sessions() as session:
                result = await session.execute(delete(Entry).where(Entry.id == entry_id))
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise self._wrap("delete", e) from e

    async def all_entries(self) -> List[EntryRecord]:
        try:
            async with self._sessions() as session:
                result = await session.execute(select(Entry).order_by(Entry.created_at.asc()))
                return [_to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._wrap("all_entries", e) from e

    async def count_stale(self, version: str) -> int:
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(func.count()).select_from(Entry).where(Entry.norm_version != version)
                )
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise self._wrap("count_stale", e) from e

    async def update_norm(self, entry_id: str, norm: str, version: str) -> bool:
        try:
            async with self._sessions() as session:
                try:
                    result = await session.execute(
                        update(Entry)
                        .where(Entry.id == entry_id)
                        .values(norm=norm, norm_version=version)
                    )
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return False
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise self._wrap("update_norm", e) from e

    @staticmethod
    def _wrap(operation: str, error: Exception) -> StorageError:
        logger.error("Database error in %s: %s", operation, str(error), exc_info=True)
        return StorageError(context={"operation": operation, "error_type": type(error).__name__})
