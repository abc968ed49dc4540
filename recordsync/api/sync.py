"""Sync API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from recordsync.api.deps import get_owner_id, get_sync_service
from recordsync.schemas.sync import (
    BulkSyncRequest,
    BulkSyncResponse,
    ConflictResolutionRequest,
    ConflictStatistics,
    LastSyncResponse,
    MappingsResponse,
    ResolveConflictsRequest,
    ResolveConflictsResponse,
    SyncProgress,
    SyncResult,
    SyncSessionView,
)
from recordsync.services.errors import BatchSizeError
from recordsync.services.sync import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("/bulk", response_model=BulkSyncResponse)
async def bulk_sync(
    request: BulkSyncRequest,
    response: Response,
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """
    Apply a batch of offline operations.

    Returns 200 when everything applied, 409 when some operations conflict
    and none failed, 500 when any operation failed.
    """
    try:
        result = await service.process_bulk_sync(owner_id, request)
    except BatchSizeError as e:
        logger.warning(f"Rejected bulk sync for owner {owner_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    if result.errors:
        response.status_code = 500
    elif result.conflicts:
        response.status_code = 409
    return result


@router.get("/timestamp", response_model=LastSyncResponse)
async def last_sync_timestamp(
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """Latest server-side change for the owner."""
    return await service.get_last_sync_timestamp(owner_id)


@router.post("/resolve-conflicts", response_model=ResolveConflictsResponse)
async def resolve_conflicts(
    request: ResolveConflictsRequest,
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """Resolve reported conflicts with the automatic strategy rules."""
    resolved = await service.resolve_conflicts(owner_id, request.conflicts)
    return ResolveConflictsResponse(resolved_conflicts=resolved)


@router.post("/conflicts/resolve", response_model=SyncResult)
async def resolve_conflict(
    request: ConflictResolutionRequest,
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """Resolve the pending conflict for one local id with a chosen strategy."""
    result = await service.resolve_conflict(
        owner_id,
        request.local_id,
        request.strategy,
        request.resolved_data,
    )
    if result is None:
        raise HTTPException(status_code=404, detail=f"No pending conflict for {request.local_id}")
    return result


@router.get("/conflicts/statistics", response_model=ConflictStatistics)
async def conflict_statistics(
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    return await service.get_conflict_statistics(owner_id)


@router.get("/progress/{session_id}", response_model=SyncProgress)
async def sync_progress(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """Progress of a running or finished bulk sync."""
    progress = await service.get_sync_progress(owner_id, session_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Sync session not found")
    return progress


@router.get("/history", response_model=list[SyncSessionView])
async def sync_history(
    limit: int = Query(10, ge=1, le=100, description="Number of sessions to return"),
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """Recent bulk syncs, newest first."""
    return await service.get_sync_history(owner_id, limit)


@router.get("/mappings", response_model=MappingsResponse)
async def local_id_mappings(
    owner_id: str = Depends(get_owner_id),
    service: SyncService = Depends(get_sync_service),
):
    """All local id -> server id pairs the server knows for this owner."""
    return MappingsResponse(mappings=await service.get_local_id_mappings(owner_id))
