"""Persistence for conflicts reported during bulk sync."""

import logging
from collections import Counter
from typing import Optional

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from recordsync.core.timestamps import utc_now
from recordsync.models.sync_conflict import SyncConflict
from recordsync.schemas.sync import ConflictData, ConflictStatistics, SyncResult

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("pending", "manual")


def to_result(conflict: SyncConflict) -> SyncResult:
    """Rebuild the conflict result the client originally received."""
    return SyncResult(
        local_id=conflict.local_id,
        server_id=conflict.server_id,
        action=conflict.action,
        status="conflict",
        conflict_data=ConflictData(
            client_data=conflict.client_data,
            server_data=conflict.server_data or {},
            conflict_fields=conflict.conflict_fields or [],
        ),
    )


class ConflictLog:
    """Keeps reported conflicts so they can be resolved later by local id."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self, context: str) -> None:
        """Commit, rolling back so the shared session stays usable on failure."""
        try:
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Error while {context}: {e}")
            raise

    async def record(self, owner_id: str, session_id: Optional[str], result: SyncResult) -> int:
        """Persist a conflict result and return its id."""
        data = result.conflict_data
        conflict = SyncConflict(
            owner_id=owner_id,
            session_id=session_id,
            local_id=result.local_id,
            server_id=result.server_id,
            action=result.action,
            client_data=data.client_data if data else None,
            server_data=data.server_data if data else None,
            conflict_fields=data.conflict_fields if data else [],
            status="pending",
            created_at=utc_now(),
        )
        self.session.add(conflict)
        await self._commit(f"logging conflict for {result.local_id}")
        return conflict.id

    async def find_pending(self, owner_id: str, local_id: str) -> Optional[tuple[int, SyncResult]]:
        """Newest unresolved conflict for a local id, with its log id."""
        result = await self.session.execute(
            select(SyncConflict)
            .where(
                SyncConflict.owner_id == owner_id,
                SyncConflict.local_id == local_id,
                SyncConflict.status.in_(OPEN_STATUSES),
            )
            .order_by(desc(SyncConflict.created_at), desc(SyncConflict.id))
            .limit(1)
        )
        conflict = result.scalar_one_or_none()
        if conflict is None:
            return None
        return conflict.id, to_result(conflict)

    async def mark(self, conflict_id: int, status: str, strategy: Optional[str]) -> None:
        """Set the outcome of one logged conflict."""
        conflict = await self.session.get(SyncConflict, conflict_id)
        if conflict is None:
            logger.warning(f"Cannot mark unknown conflict {conflict_id}")
            return

        conflict.status = status
        conflict.strategy = strategy
        conflict.resolved_at = utc_now() if status == "resolved" else None
        await self._commit(f"marking conflict {conflict_id}")

    async def mark_resolved_for(self, owner_id: str, local_id: str, strategy: Optional[str]) -> int:
        """Close every open conflict for a local id. Returns how many were closed."""
        result = await self.session.execute(
            update(SyncConflict)
            .where(
                SyncConflict.owner_id == owner_id,
                SyncConflict.local_id == local_id,
                SyncConflict.status.in_(OPEN_STATUSES),
            )
            .values(status="resolved", strategy=strategy, resolved_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self._commit(f"resolving conflicts for {local_id}")
        return result.rowcount or 0

    async def statistics(self, owner_id: str) -> ConflictStatistics:
        """Conflict counts for an owner, broken down by conflicting field."""
        result = await self.session.execute(
            select(SyncConflict.status, SyncConflict.conflict_fields)
            .where(SyncConflict.owner_id == owner_id)
        )
        rows = result.all()

        by_field = Counter()
        resolved = 0
        for status, fields in rows:
            if status == "resolved":
                resolved += 1
            by_field.update(fields or [])

        return ConflictStatistics(
            total_conflicts=len(rows),
            resolved_conflicts=resolved,
            pending_conflicts=len(rows) - resolved,
            conflicts_by_field=dict(by_field),
        )
