"""Applies a single sync operation against the record store."""

import logging
from typing import Optional

from recordsync.core.timestamps import to_naive_utc
from recordsync.schemas.records import RecordView
from recordsync.schemas.sync import ConflictData, SyncOperation, SyncResult
from recordsync.services.conflicts import ConflictDetector
from recordsync.services.errors import RecordNotFoundError, SyncError
from recordsync.services.local_ids import LocalIdMapper
from recordsync.services.store import RecordStore
from recordsync.services.validation import Validator, validate_create, validate_update

logger = logging.getLogger(__name__)


class OperationProcessor:
    """
    Runs one operation to a terminal status: success, conflict or error.

    Create on an existing local id is always a conflict, update is fenced by
    comparing the client's timestamp against the record's last server write,
    and delete is idempotent.
    """

    def __init__(
        self,
        store: RecordStore,
        mapper: LocalIdMapper,
        detector: ConflictDetector,
        create_validator: Validator = validate_create,
        update_validator: Validator = validate_update,
    ):
        self.store = store
        self.mapper = mapper
        self.detector = detector
        self.create_validator = create_validator
        self.update_validator = update_validator

    async def process(self, owner_id: str, operation: SyncOperation) -> SyncResult:
        """Process one operation. Domain errors become error results."""
        handlers = {
            "create": self._create,
            "update": self._update,
            "delete": self._delete,
        }
        handler = handlers.get(operation.action)
        if handler is None:
            raise ValueError(f"Unknown operation action: {operation.action}")

        try:
            return await handler(owner_id, operation)
        except SyncError as e:
            logger.warning(f"{operation.action} {operation.local_id} failed: {e}")
            return SyncResult(
                local_id=operation.local_id,
                server_id=e.server_id or operation.server_id,
                action=operation.action,
                status="error",
                error=str(e),
            )

    async def _resolve_target(self, owner_id: str, operation: SyncOperation) -> Optional[RecordView]:
        if operation.server_id:
            return await self.store.find_by_id(owner_id, operation.server_id)
        return await self.mapper.find_by_local_id(owner_id, operation.local_id)

    def _conflict(self, operation: SyncOperation, record: RecordView) -> SyncResult:
        server_data = record.model_dump(mode="json")
        conflict_fields = self.detector.diff(operation.data, server_data)
        logger.info(
            f"Conflict on {operation.action} {operation.local_id} "
            f"(record {record.id}): {conflict_fields}"
        )
        return SyncResult(
            local_id=operation.local_id,
            server_id=record.id,
            action=operation.action,
            status="conflict",
            conflict_data=ConflictData(
                client_data=operation.data,
                server_data=server_data,
                conflict_fields=conflict_fields,
            ),
        )

    async def _create(self, owner_id: str, operation: SyncOperation) -> SyncResult:
        if not operation.data:
            raise SyncError("No data provided for create operation")

        existing = await self.mapper.find_by_local_id(owner_id, operation.local_id)
        if existing:
            # The client thinks this record doesn't exist yet; never overwrite
            return self._conflict(operation, existing)

        values = self.create_validator(operation.data)
        record = await self.store.create(owner_id, values, local_id=operation.local_id)

        return SyncResult(
            local_id=operation.local_id,
            server_id=record.id,
            action="create",
            status="success",
        )

    async def _update(self, owner_id: str, operation: SyncOperation) -> SyncResult:
        if not operation.data:
            raise SyncError("No data provided for update operation")

        record = await self._resolve_target(owner_id, operation)
        if record is None:
            raise RecordNotFoundError("Record not found")

        # Server has a write the client hasn't seen
        if record.updated_at > to_naive_utc(operation.timestamp):
            return self._conflict(operation, record)

        values = self.update_validator(operation.data)
        updated = await self.store.update(owner_id, record.id, values)
        if updated is None:
            raise SyncError("Failed to update record", server_id=record.id)

        if operation.server_id and record.local_id is None:
            await self._adopt_local_id(owner_id, operation.local_id, record.id)

        return SyncResult(
            local_id=operation.local_id,
            server_id=updated.id,
            action="update",
            status="success",
        )

    async def _delete(self, owner_id: str, operation: SyncOperation) -> SyncResult:
        record = await self._resolve_target(owner_id, operation)
        if record is None:
            # Already deleted or never existed; deletion converges
            return SyncResult(
                local_id=operation.local_id,
                server_id=operation.server_id,
                action="delete",
                status="success",
            )

        await self.store.soft_delete(owner_id, record.id)

        return SyncResult(
            local_id=operation.local_id,
            server_id=record.id,
            action="delete",
            status="success",
        )

    async def _adopt_local_id(self, owner_id: str, local_id: str, server_id: str) -> None:
        """Remember the client's local id for a record first created elsewhere."""
        if await self.mapper.find_by_local_id(owner_id, local_id) is not None:
            return
        try:
            await self.mapper.record_mapping(owner_id, local_id, server_id)
        except SyncError as e:
            # The update itself already succeeded
            logger.warning(f"Could not map local id {local_id} to {server_id}: {e}")
