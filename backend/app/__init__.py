"""
Jotter Backend — Application Package
====================================

What: Short-text note service with duplicate detection.
Who:  Imported by uvicorn (`app.main:app`), Alembic, the backfill command and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (dedup, normalization)   │  ← Validation, idempotent insert
    ├─────────────────────────────────────┤
    │      Entry stores (file | SQL)      │  ← Persistence behind one interface
    └─────────────────────────────────────┘

    The store is chosen by configuration; routes and services never know which
    backend they are talking to.
"""

__version__ = "1.0.0"
