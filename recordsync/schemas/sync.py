"""Pydantic models for the bulk sync wire format."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

SyncAction = Literal["create", "update", "delete"]
SyncStatus = Literal["success", "conflict", "error"]
ResolutionStrategy = Literal["server_wins", "client_wins", "merge", "manual"]
SessionStatus = Literal["in_progress", "completed", "failed"]

MAX_SYNC_OPERATIONS = 1000


class SyncOperation(BaseModel):
    """One change captured on the device while offline."""
    action: SyncAction
    local_id: str = Field(min_length=1, max_length=255)
    server_id: str | None = None
    timestamp: datetime
    data: dict[str, Any] | None = None


class BulkSyncRequest(BaseModel):
    operations: list[SyncOperation] = Field(min_length=1, max_length=MAX_SYNC_OPERATIONS)
    last_sync_timestamp: datetime | None = None


class ConflictData(BaseModel):
    """Both sides of a conflicting record and the fields that disagree."""
    client_data: dict[str, Any] | None = None
    server_data: dict[str, Any]
    conflict_fields: list[str] = []


class SyncResult(BaseModel):
    """Outcome of processing one sync operation."""
    local_id: str
    server_id: str | None = None
    action: SyncAction
    status: SyncStatus
    error: str | None = None
    conflict_data: ConflictData | None = None


class BulkSyncResponse(BaseModel):
    success: bool
    results: list[SyncResult]
    conflicts: list[SyncResult]
    errors: list[SyncResult]
    sync_timestamp: datetime
    session_id: str | None = None
    error: str | None = None


class ResolveConflictsRequest(BaseModel):
    conflicts: list[SyncResult]


class ResolveConflictsResponse(BaseModel):
    resolved_conflicts: list[SyncResult]


class ConflictResolutionRequest(BaseModel):
    """Resolve one previously reported conflict by local id."""
    local_id: str = Field(min_length=1)
    strategy: ResolutionStrategy
    resolved_data: dict[str, Any] | None = None


class LastSyncResponse(BaseModel):
    last_sync_timestamp: datetime | None
    current_timestamp: datetime


class MappingsResponse(BaseModel):
    mappings: dict[str, str]


class SyncProgress(BaseModel):
    session_id: str
    processed: int
    total: int
    status: SessionStatus
    current_operation: str | None = None
    estimated_time_remaining: int | None = None


class SyncSessionView(BaseModel):
    id: str
    owner_id: str
    status: SessionStatus
    total_operations: int
    successful_operations: int
    failed_operations: int
    conflict_operations: int
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None

    class Config:
        from_attributes = True


class ConflictStatistics(BaseModel):
    total_conflicts: int
    resolved_conflicts: int
    pending_conflicts: int
    conflicts_by_field: dict[str, int]
