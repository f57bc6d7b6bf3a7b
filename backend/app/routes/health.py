"""
Jotter Backend — Health Check Route
===================================

What:  GET /api/health for probes and the frontend's connectivity banner.
How:   `ok` is true whenever the process answers; the database backend also
       reports `db`, the result of a live SELECT 1. Never raises.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_entry_service
from app.schemas.entry import HealthResponse
from app.services.entry_service import EntryService

router = APIRouter(prefix="/api", tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_exclude_none=True,
    summary="Service health check",
)
async def health_check(service: EntryService = Depends(get_entry_service)) -> HealthResponse:
    ok, db = await service.health()
    return HealthResponse(ok=ok, db=db)
