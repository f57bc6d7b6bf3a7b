"""
Jotter Backend — Pydantic Schemas
=================================

What:  The stored entry record and the API request/response contracts.
How:   `EntryRecord` is what stores exchange with the service layer; the API
       models choose which of its fields leave the process.

Wire naming:
    JSON uses camelCase (`createdAt`, `normVersion`) to stay compatible with
    the existing frontend and the JSON Lines files it already wrote. Python
    attributes stay snake_case via field aliases.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EntryRecord(BaseModel):
    """
    A stored entry, as persisted by either backend.

    `norm` and `norm_version` are None only for lines written before
    deduplication existed; the backfill command fills them in. Such lines may
    also lack `createdAt`, which then sorts as oldest.
    """

    model_config = ConfigDict(populate_by_name=True, from_attributes=True, frozen=True)

    id: str
    text: str
    norm: Optional[str] = None
    norm_version: Optional[str] = Field(default=None, alias="normVersion")
    created_at: int = Field(default=0, alias="createdAt", description="Milliseconds since epoch; 0 when unknown")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class EntryCreate(BaseModel):
    """Body of POST /api/entries. A missing `text` is treated as empty."""

    text: str = Field(default="", description="Entry text; trimmed before storing")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class EntryOut(BaseModel):
    """Public view of an entry. The dedup key stays server-side."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    text: str
    created_at: int = Field(serialization_alias="createdAt")

    @classmethod
    def from_record(cls, record: EntryRecord) -> "EntryOut":
        return cls(id=record.id, text=record.text, created_at=record.created_at)


class EntryListResponse(BaseModel):
    items: List[EntryOut] = Field(description="Latest entries, newest first")


class CreateEntryResponse(BaseModel):
    exists: bool = Field(description="True when an entry with the same key was already stored")
    entry: EntryOut


class DeleteEntryResponse(BaseModel):
    ok: bool = True


class HealthResponse(BaseModel):
    """
    `db` is reported only by the database backend; the file backend omits it.
    """

    ok: bool
    db: Optional[bool] = None


class ErrorResponse(BaseModel):
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
