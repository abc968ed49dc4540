"""Local id <-> server id reconciliation."""

import logging
from typing import Optional

from recordsync.schemas.records import RecordView
from recordsync.services.errors import RecordNotFoundError
from recordsync.services.store import RecordStore

logger = logging.getLogger(__name__)


class LocalIdMapper:
    """Resolves client-assigned local ids to server records."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def find_by_local_id(self, owner_id: str, local_id: str) -> Optional[RecordView]:
        """Return the live record the owner created under this local id."""
        return await self.store.find_by_local_id(owner_id, local_id)

    async def record_mapping(self, owner_id: str, local_id: str, server_id: str) -> None:
        """Persist that ``local_id`` refers to the record ``server_id``."""
        mapped = await self.store.set_local_id(owner_id, server_id, local_id)
        if not mapped:
            raise RecordNotFoundError(f"Record {server_id} not found", server_id=server_id)
        logger.info(f"Mapped local id {local_id} -> {server_id} for owner {owner_id}")

    async def get_mappings(self, owner_id: str) -> dict[str, str]:
        """All of the owner's local id -> server id pairs."""
        return await self.store.local_id_mappings(owner_id)
