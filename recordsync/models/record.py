"""Record model - the entity kept in sync between devices and the server."""

import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
    Index,
    text,
)

from recordsync.core.database import Base
from recordsync.core.timestamps import utc_now


def _new_record_id() -> str:
    return str(uuid.uuid4())


class Record(Base):
    """A captured visitor record owned by one user."""

    __tablename__ = "records"

    id = Column(String(36), primary_key=True, default=_new_record_id)
    owner_id = Column(String(255), nullable=False, index=True)
    local_id = Column(String(255), nullable=True, index=True)

    # Content
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=True)
    company = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    interests = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    capture_method = Column(String(20), nullable=False)  # "business_card" or "event_badge"

    # Bookkeeping
    captured_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    deleted_at = Column(DateTime, nullable=True)
    sync_version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        # One live record per (owner, local id); soft-deleted rows free the local id
        Index(
            "uix_records_owner_local_id",
            "owner_id",
            "local_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index("ix_records_owner_deleted", "owner_id", "deleted_at"),
    )
