"""Sync session lifecycle, progress and history."""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from recordsync.core.timestamps import to_naive_utc, utc_now
from recordsync.models.sync_session import SyncSession
from recordsync.schemas.sync import SyncProgress, SyncSessionView

logger = logging.getLogger(__name__)

# Rough per-operation cost used for the remaining-time estimate
AVG_MS_PER_OPERATION = 100


def estimate_seconds_remaining(processed: int, total: int) -> Optional[int]:
    """Estimate seconds left from the number of operations still pending."""
    if processed == 0 or total == 0:
        return None
    remaining = max(total - processed, 0)
    return round(remaining * AVG_MS_PER_OPERATION / 1000)


class SyncProgressTracker:
    """Persists sync sessions keyed by id; holds no state of its own."""

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

    async def create_session(
        self,
        owner_id: str,
        total_operations: int,
        last_sync_timestamp: Optional[datetime] = None,
    ) -> str:
        """Start tracking a bulk sync and return the new session id."""
        session_id = f"sync_{uuid.uuid4().hex}"
        self.session.add(SyncSession(
            id=session_id,
            owner_id=owner_id,
            status="in_progress",
            total_operations=total_operations,
            last_sync_timestamp=to_naive_utc(last_sync_timestamp) if last_sync_timestamp else None,
            started_at=utc_now(),
        ))
        await self._commit(f"creating sync session {session_id}")

        logger.info(f"Created sync session {session_id} for owner {owner_id} ({total_operations} operations)")
        return session_id

    async def update_progress(
        self,
        session_id: str,
        processed: int,
        total: int,
        current_step: Optional[str] = None,
    ) -> None:
        """Record how many operations have been processed so far."""
        sync_session = await self.session.get(SyncSession, session_id)
        if sync_session is None:
            logger.warning(f"Progress update for unknown sync session {session_id}")
            return

        sync_session.processed_operations = processed
        sync_session.total_operations = total
        if current_step:
            sync_session.current_step = current_step
        await self._commit(f"updating progress of {session_id}")

        logger.debug(f"Sync session {session_id}: {processed}/{total} ({current_step})")

    async def complete_session(
        self,
        session_id: str,
        successful: int,
        failed: int,
        conflicts: int,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Finalize a session with its achieved counts.

        Returns:
            False if the session was unknown or already finalized.
        """
        sync_session = await self.session.get(SyncSession, session_id)
        if sync_session is None:
            logger.warning(f"Cannot complete unknown sync session {session_id}")
            return False
        if sync_session.status != "in_progress":
            logger.warning(f"Sync session {session_id} already finalized as {sync_session.status}")
            return False

        sync_session.status = "failed" if failed > 0 else "completed"
        sync_session.successful_operations = successful
        sync_session.failed_operations = failed
        sync_session.conflict_operations = conflicts
        sync_session.error_message = error_message
        sync_session.completed_at = utc_now()
        await self._commit(f"completing sync session {session_id}")

        logger.info(
            f"Completed sync session {session_id} as {sync_session.status}: "
            f"{successful} succeeded, {failed} failed, {conflicts} conflicts"
        )
        return True

    async def get_progress(self, session_id: str) -> Optional[SyncProgress]:
        """Current progress of a session, or None if it doesn't exist."""
        sync_session = await self.session.get(SyncSession, session_id)
        if sync_session is None:
            return None

        return SyncProgress(
            session_id=sync_session.id,
            processed=sync_session.processed_operations,
            total=sync_session.total_operations,
            status=sync_session.status,
            current_operation=sync_session.current_step,
            estimated_time_remaining=(
                estimate_seconds_remaining(sync_session.processed_operations, sync_session.total_operations)
                if sync_session.status == "in_progress" else None
            ),
        )

    async def get_owner(self, session_id: str) -> Optional[str]:
        """Owner of a session, used to keep progress private per user."""
        sync_session = await self.session.get(SyncSession, session_id)
        return sync_session.owner_id if sync_session else None

    async def get_history(self, owner_id: str, limit: int = 10) -> list[SyncSessionView]:
        """Most recent sessions for an owner, newest first."""
        result = await self.session.execute(
            select(SyncSession)
            .where(SyncSession.owner_id == owner_id)
            .order_by(desc(SyncSession.started_at))
            .limit(limit)
        )
        return [SyncSessionView.model_validate(s) for s in result.scalars().all()]

    async def get_active_sessions(self, owner_id: str) -> list[SyncSessionView]:
        """Sessions for an owner that haven't been finalized."""
        result = await self.session.execute(
            select(SyncSession)
            .where(SyncSession.owner_id == owner_id, SyncSession.status == "in_progress")
            .order_by(desc(SyncSession.started_at))
        )
        return [SyncSessionView.model_validate(s) for s in result.scalars().all()]

    async def cleanup_old_sessions(self, older_than_days: int = 30) -> int:
        """Delete finalized sessions that started before the cutoff."""
        cutoff = utc_now() - timedelta(days=older_than_days)
        result = await self.session.execute(
            delete(SyncSession).where(
                SyncSession.started_at < cutoff,
                SyncSession.status != "in_progress",
            )
        )
        await self._commit("cleaning up old sync sessions")

        removed = result.rowcount or 0
        logger.info(f"Cleaned up {removed} sync sessions older than {older_than_days} days")
        return removed
