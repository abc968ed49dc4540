"""Sync orchestration - coordinates bulk operations, progress and conflicts."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from recordsync.core.config import Settings
from recordsync.schemas.sync import (
    BulkSyncRequest,
    BulkSyncResponse,
    ConflictStatistics,
    LastSyncResponse,
    ResolutionStrategy,
    SyncOperation,
    SyncProgress,
    SyncResult,
    SyncSessionView,
)
from recordsync.services.conflict_log import ConflictLog
from recordsync.services.conflicts import ConflictDetector
from recordsync.services.errors import BatchSizeError
from recordsync.services.local_ids import LocalIdMapper
from recordsync.services.operations import OperationProcessor
from recordsync.services.resolution import ConflictResolutionEngine, build_rules
from recordsync.services.store import RecordStore, SqlAlchemyRecordStore
from recordsync.services.tracking import SyncProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50
DEFAULT_MAX_OPERATIONS = 1000


class SyncService:
    """Orchestrates bulk sync for one owner at a time."""

    def __init__(
        self,
        store: RecordStore,
        processor: OperationProcessor,
        engine: ConflictResolutionEngine,
        tracker: SyncProgressTracker,
        conflict_log: ConflictLog,
        mapper: Optional[LocalIdMapper] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_operations: int = DEFAULT_MAX_OPERATIONS,
    ):
        self.store = store
        self.processor = processor
        self.engine = engine
        self.tracker = tracker
        self.conflict_log = conflict_log
        self.mapper = mapper or LocalIdMapper(store)
        self.chunk_size = chunk_size
        self.max_operations = max_operations

    @classmethod
    def from_session(cls, session: AsyncSession, settings: Settings) -> "SyncService":
        """Wire the default SQLAlchemy-backed components onto one session."""
        store = SqlAlchemyRecordStore(session)
        mapper = LocalIdMapper(store)
        rules = build_rules(timedelta(minutes=settings.business_client_lead_minutes))
        return cls(
            store=store,
            processor=OperationProcessor(store, mapper, ConflictDetector()),
            engine=ConflictResolutionEngine(store, rules=rules, notes_separator=settings.notes_merge_separator),
            tracker=SyncProgressTracker(session),
            conflict_log=ConflictLog(session),
            mapper=mapper,
            chunk_size=settings.sync_chunk_size,
            max_operations=settings.max_sync_operations,
        )

    def _chunks(self, operations: list[SyncOperation]) -> list[list[SyncOperation]]:
        return [
            operations[i:i + self.chunk_size]
            for i in range(0, len(operations), self.chunk_size)
        ]

    async def _process_one(self, owner_id: str, operation: SyncOperation) -> SyncResult:
        try:
            return await self.processor.process(owner_id, operation)
        except Exception as e:
            logger.error(f"Unexpected error processing {operation.action} {operation.local_id}: {e}")
            return SyncResult(
                local_id=operation.local_id,
                server_id=operation.server_id,
                action=operation.action,
                status="error",
                error=f"Unexpected error: {e}",
            )

    async def _log_conflict(self, owner_id: str, session_id: str, result: SyncResult) -> None:
        """Persist a conflict; the client still gets it in the response if this fails."""
        try:
            await self.conflict_log.record(owner_id, session_id, result)
        except Exception as e:
            logger.error(f"Failed to log conflict for {result.local_id} in {session_id}: {e}")

    async def _report_progress(self, session_id: str, processed: int, total: int, current_step: str) -> None:
        try:
            await self.tracker.update_progress(session_id, processed=processed, total=total, current_step=current_step)
        except Exception as e:
            logger.error(f"Failed to update progress for {session_id}: {e}")

    async def process_bulk_sync(self, owner_id: str, request: BulkSyncRequest) -> BulkSyncResponse:
        """
        Process a batch of offline operations in submission order.

        Raises:
            BatchSizeError: If the batch is empty or larger than allowed
        """
        operations = request.operations
        total = len(operations)
        if total == 0:
            raise BatchSizeError("No operations provided")
        if total > self.max_operations:
            raise BatchSizeError(f"Too many operations: {total} (maximum {self.max_operations})")

        session_id = await self.tracker.create_session(owner_id, total, request.last_sync_timestamp)
        logger.info(f"Starting bulk sync {session_id} for owner {owner_id}: {total} operations")

        results: list[SyncResult] = []
        chunks = self._chunks(operations)
        try:
            for index, chunk in enumerate(chunks, start=1):
                for operation in chunk:
                    result = await self._process_one(owner_id, operation)
                    if result.status == "conflict":
                        await self._log_conflict(owner_id, session_id, result)
                    results.append(result)

                await self._report_progress(
                    session_id,
                    processed=len(results),
                    total=total,
                    current_step=f"Processing chunk {index} of {len(chunks)}",
                )
        except Exception as e:
            logger.error(f"Bulk sync {session_id} aborted after {len(results)} operations: {e}")
            raise
        finally:
            conflicts = [r for r in results if r.status == "conflict"]
            errors = [r for r in results if r.status == "error"]
            successful = len(results) - len(conflicts) - len(errors)
            aborted = len(results) < total
            if aborted:
                error_message = "Sync aborted before all operations were processed"
            else:
                error_message = "Some operations failed" if errors else None

            await self.tracker.complete_session(
                session_id,
                successful=successful,
                failed=len(errors) + (total - len(results) if aborted else 0),
                conflicts=len(conflicts),
                error_message=error_message,
            )

        logger.info(
            f"Bulk sync {session_id} finished: {successful} succeeded, "
            f"{len(conflicts)} conflicts, {len(errors)} errors"
        )

        return BulkSyncResponse(
            success=not errors,
            results=results,
            conflicts=conflicts,
            errors=errors,
            sync_timestamp=datetime.now(timezone.utc),
            session_id=session_id,
            error=error_message,
        )

    async def get_last_sync_timestamp(self, owner_id: str) -> LastSyncResponse:
        """Latest server write for the owner, and the server's current time."""
        latest = await self.store.latest_update(owner_id)
        return LastSyncResponse(
            last_sync_timestamp=latest.replace(tzinfo=timezone.utc) if latest else None,
            current_timestamp=datetime.now(timezone.utc),
        )

    async def resolve_conflicts(self, owner_id: str, conflicts: list[SyncResult]) -> list[SyncResult]:
        """Resolve a list of conflicts with the rule table."""
        strategies = [self.engine.strategy_for(c) for c in conflicts]
        resolved = await self.engine.resolve_many(owner_id, conflicts)

        for result, strategy in zip(resolved, strategies):
            if result.status == "success":
                await self.conflict_log.mark_resolved_for(owner_id, result.local_id, strategy)

        logger.info(
            f"Resolved {sum(r.status == 'success' for r in resolved)} of "
            f"{len(conflicts)} conflicts for owner {owner_id}"
        )
        return resolved

    async def resolve_conflict(
        self,
        owner_id: str,
        local_id: str,
        strategy: ResolutionStrategy,
        resolved_data: Optional[dict[str, Any]] = None,
    ) -> Optional[SyncResult]:
        """
        Resolve the newest open conflict for a local id with an explicit strategy.

        Returns:
            The resolution result, or None if nothing is pending for local_id.
        """
        pending = await self.conflict_log.find_pending(owner_id, local_id)
        if pending is None:
            return None

        conflict_id, conflict = pending
        result = await self.engine.resolve(owner_id, conflict, strategy=strategy, resolved_data=resolved_data)

        if result.status == "success":
            await self.conflict_log.mark(conflict_id, "resolved", strategy)
        elif result.status == "conflict":
            await self.conflict_log.mark(conflict_id, "manual", strategy)

        return result

    async def get_sync_progress(self, owner_id: str, session_id: str) -> Optional[SyncProgress]:
        """Progress of one of the owner's sessions."""
        if await self.tracker.get_owner(session_id) != owner_id:
            return None
        return await self.tracker.get_progress(session_id)

    async def get_sync_history(self, owner_id: str, limit: int = 10) -> list[SyncSessionView]:
        return await self.tracker.get_history(owner_id, limit)

    async def get_local_id_mappings(self, owner_id: str) -> dict[str, str]:
        return await self.mapper.get_mappings(owner_id)

    async def get_conflict_statistics(self, owner_id: str) -> ConflictStatistics:
        return await self.conflict_log.statistics(owner_id)
