"""
Jotter Backend — Services Layer
===============================

Service Inventory:
    - NormalizationPolicy (normalization.py): text → dedup key, versioned
    - EntryStore (store_base.py): persistence interface
        - FileEntryStore (file_store.py): JSON Lines file
        - SqlEntryStore (db_store.py): SQL table with a unique key index
    - EntryService (entry_service.py): validation, idempotent create, list,
      delete, health, backfill
"""
