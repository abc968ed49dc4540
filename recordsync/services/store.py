"""Record store - the persistence boundary the sync core talks to."""

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recordsync.core.timestamps import utc_now
from recordsync.models.record import Record
from recordsync.schemas.records import RecordView
from recordsync.services.errors import ConstraintViolationError

logger = logging.getLogger(__name__)

# Columns an update may touch; identity and bookkeeping are managed here
UPDATABLE_FIELDS = (
    "name",
    "title",
    "company",
    "phone",
    "email",
    "website",
    "interests",
    "notes",
    "capture_method",
    "captured_at",
)


class RecordStore(Protocol):
    """Operations the sync core needs from record persistence."""

    async def create(self, owner_id: str, data: dict[str, Any], local_id: Optional[str] = None) -> RecordView: ...

    async def find_by_id(self, owner_id: str, record_id: str) -> Optional[RecordView]: ...

    async def find_by_local_id(self, owner_id: str, local_id: str) -> Optional[RecordView]: ...

    async def find_by_owner(self, owner_id: str, limit: Optional[int] = None, offset: int = 0) -> list[RecordView]: ...

    async def update(self, owner_id: str, record_id: str, changes: dict[str, Any]) -> Optional[RecordView]: ...

    async def soft_delete(self, owner_id: str, record_id: str) -> bool: ...

    async def set_local_id(self, owner_id: str, record_id: str, local_id: str) -> bool: ...

    async def latest_update(self, owner_id: str) -> Optional[datetime]: ...

    async def local_id_mappings(self, owner_id: str) -> dict[str, str]: ...


class SqlAlchemyRecordStore:
    """RecordStore backed by an async SQLAlchemy session.

    Every write commits on its own so one failed operation never takes
    earlier successful ones down with it. Reads return detached
    ``RecordView`` snapshots.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _live(self, owner_id: str):
        return select(Record).where(Record.owner_id == owner_id, Record.deleted_at.is_(None))

    async def _write(self, context: str, stmt=None):
        """Execute an optional statement and commit, rolling back on failure."""
        try:
            result = await self.session.execute(stmt) if stmt is not None else None
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.error(f"Constraint violation while {context}: {e.orig}")
            raise ConstraintViolationError(f"Constraint violation while {context}")
        except Exception:
            await self.session.rollback()
            raise
        return result

    async def create(self, owner_id: str, data: dict[str, Any], local_id: Optional[str] = None) -> RecordView:
        """Insert a new record and return its snapshot."""
        now = utc_now()
        values = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}
        record = Record(
            owner_id=owner_id,
            local_id=local_id,
            created_at=now,
            updated_at=now,
            sync_version=1,
            **values,
        )
        self.session.add(record)
        context = f"creating record with local id '{local_id}'" if local_id else "creating record"
        await self._write(context)

        logger.info(f"Created record {record.id} for owner {owner_id}")
        return RecordView.model_validate(record)

    async def find_by_id(self, owner_id: str, record_id: str) -> Optional[RecordView]:
        """Find a non-deleted record by server id."""
        result = await self.session.execute(
            self._live(owner_id)
            .where(Record.id == record_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        return RecordView.model_validate(record) if record else None

    async def find_by_local_id(self, owner_id: str, local_id: str) -> Optional[RecordView]:
        """Find a non-deleted record by the client's local id."""
        result = await self.session.execute(
            self._live(owner_id)
            .where(Record.local_id == local_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        return RecordView.model_validate(record) if record else None

    async def find_by_owner(self, owner_id: str, limit: Optional[int] = None, offset: int = 0) -> list[RecordView]:
        """List an owner's non-deleted records, most recently captured first."""
        query = self._live(owner_id).order_by(Record.captured_at.desc(), Record.created_at.desc())
        if limit is not None:
            query = query.limit(limit).offset(offset)
        result = await self.session.execute(query)
        return [RecordView.model_validate(r) for r in result.scalars().all()]

    async def update(self, owner_id: str, record_id: str, changes: dict[str, Any]) -> Optional[RecordView]:
        """
        Apply changes in a single UPDATE that also bumps sync_version.

        Returns:
            The updated snapshot, or None if no live record matched.
        """
        values = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if not values:
            return await self.find_by_id(owner_id, record_id)

        stmt = (
            update(Record)
            .where(
                Record.id == record_id,
                Record.owner_id == owner_id,
                Record.deleted_at.is_(None),
            )
            .values(
                **values,
                updated_at=utc_now(),
                sync_version=Record.sync_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._write(f"updating record {record_id}", stmt)

        if result.rowcount == 0:
            return None

        logger.info(f"Updated record {record_id} fields: {sorted(values)}")
        return await self.find_by_id(owner_id, record_id)

    async def soft_delete(self, owner_id: str, record_id: str) -> bool:
        """Mark a record deleted. Returns False if it was already gone."""
        now = utc_now()
        stmt = (
            update(Record)
            .where(
                Record.id == record_id,
                Record.owner_id == owner_id,
                Record.deleted_at.is_(None),
            )
            .values(deleted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._write(f"deleting record {record_id}", stmt)

        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Soft deleted record {record_id}")
        return deleted

    async def set_local_id(self, owner_id: str, record_id: str, local_id: str) -> bool:
        """Attach a client local id to an existing record."""
        stmt = (
            update(Record)
            .where(
                Record.id == record_id,
                Record.owner_id == owner_id,
                Record.deleted_at.is_(None),
            )
            .values(local_id=local_id)
            .execution_options(synchronize_session=False)
        )
        result = await self._write(f"mapping local id '{local_id}' to record {record_id}", stmt)
        return result.rowcount > 0

    async def latest_update(self, owner_id: str) -> Optional[datetime]:
        """Most recent updated_at across the owner's live records."""
        result = await self.session.execute(
            select(func.max(Record.updated_at)).where(
                Record.owner_id == owner_id,
                Record.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def local_id_mappings(self, owner_id: str) -> dict[str, str]:
        """Map local id -> server id for live records that carry a local id."""
        result = await self.session.execute(
            select(Record.local_id, Record.id).where(
                Record.owner_id == owner_id,
                Record.deleted_at.is_(None),
                Record.local_id.is_not(None),
            )
        )
        return {local_id: server_id for local_id, server_id in result.all()}
