"""Conflicts reported to clients during bulk sync."""

from sqlalchemy import Column, Integer, String, DateTime, JSON

from recordsync.core.database import Base
from recordsync.core.timestamps import utc_now


class SyncConflict(Base):
    """A conflict surfaced by a bulk sync, kept until it is resolved."""

    __tablename__ = "sync_conflicts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(255), nullable=False, index=True)
    session_id = Column(String(64), nullable=True)
    local_id = Column(String(255), nullable=False, index=True)
    server_id = Column(String(36), nullable=True)
    action = Column(String, nullable=False)
    client_data = Column(JSON, nullable=True)
    server_data = Column(JSON, nullable=True)
    conflict_fields = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="pending")  # "pending", "resolved", "manual"
    strategy = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    resolved_at = Column(DateTime, nullable=True)
