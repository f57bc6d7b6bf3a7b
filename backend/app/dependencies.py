"""
Jotter Backend — Component Wiring
=================================

What:  Builds the store / policy / service trio from Settings, and exposes
       them to route handlers as FastAPI dependencies.
Why:   create_app() builds these once and keeps them on `app.state`;
       handlers receive them through Depends() instead of module globals.
"""

from fastapi import Request

from app.config import Settings
from app.services.entry_service import EntryService
from app.services.normalization import build_policy
from app.services.store_base import EntryStore


def build_store(settings: Settings) -> EntryStore:
    if settings.storage_backend == "database":
        # Imported lazily so the file backend runs without a DB driver installed
        from app.services.db_store import SqlEntryStore
        return SqlEntryStore(settings)

    from app.services.file_store import FileEntryStore
    return FileEntryStore(settings.entries_path)


def build_entry_service(settings: Settings, store: EntryStore) -> EntryService:
    policy = build_policy(settings.norm_policy, settings.card_markers_list)
    return EntryService(store=store, policy=policy, list_limit=settings.list_limit)


def get_entry_service(request: Request) -> EntryService:
    return request.app.state.entry_service
