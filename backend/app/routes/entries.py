"""
Jotter Backend — Entry Route Handlers
=====================================

What:  List, create (deduplicated) and delete entries.
How:   Thin handlers; EntryService owns validation and dedup, global
       exception handlers in main.py own the error format.

Route Inventory:
    GET    /api/entries          latest entries, newest first
    POST   /api/entries          201 new entry | 200 existing duplicate
    DELETE /api/entries/{id}     200 | 404
"""

from fastapi import APIRouter, Depends, Response

from app.dependencies import get_entry_service
from app.schemas.entry import (
    CreateEntryResponse,
    DeleteEntryResponse,
    EntryCreate,
    EntryListResponse,
    EntryOut,
    ErrorResponse,
)
from app.services.entry_service import EntryService

router = APIRouter(prefix="/api", tags=["Entries"])


@router.get(
    "/entries",
    response_model=EntryListResponse,
    responses={500: {"description": "Storage error", "model": ErrorResponse}},
    summary="List the latest entries",
)
async def list_entries(service: EntryService = Depends(get_entry_service)) -> EntryListResponse:
    records = await service.list_entries()
    return EntryListResponse(items=[EntryOut.from_record(r) for r in records])


@router.post(
    "/entries",
    status_code=201,
    response_model=CreateEntryResponse,
    responses={
        200: {"description": "An entry with the same key already existed", "model": CreateEntryResponse},
        201: {"description": "Entry created", "model": CreateEntryResponse},
        400: {"description": "Empty text", "model": ErrorResponse},
        413: {"description": "Request body too large", "model": ErrorResponse},
    },
    summary="Create an entry unless a duplicate exists",
    description=(
        "Stores the trimmed text. When another entry has the same normalization "
        "key, nothing is stored and that entry is returned with `exists: true`."
    ),
)
async def create_entry(
    body: EntryCreate,
    response: Response,
    service: EntryService = Depends(get_entry_service),
) -> CreateEntryResponse:
    record, exists = await service.create_entry(body.text)
    if exists:
        response.status_code = 200
    return CreateEntryResponse(exists=exists, entry=EntryOut.from_record(record))


@router.delete(
    "/entries/{entry_id}",
    response_model=DeleteEntryResponse,
    responses={
        400: {"description": "Blank id", "model": ErrorResponse},
        404: {"description": "No entry with this id", "model": ErrorResponse},
    },
    summary="Delete an entry by id",
)
async def delete_entry(
    entry_id: str,
    service: EntryService = Depends(get_entry_service),
) -> DeleteEntryResponse:
    await service.delete_entry(entry_id)
    return DeleteEntryResponse(ok=True)
