"""Sync session model for tracking bulk sync invocations."""

from sqlalchemy import Column, Integer, String, DateTime, Text

from recordsync.core.database import Base
from recordsync.core.timestamps import utc_now


class SyncSession(Base):
    """Progress and outcome of one bulk sync call."""

    __tablename__ = "sync_sessions"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(255), nullable=False, index=True)
    status = Column(String, nullable=False, default="in_progress")  # "in_progress", "completed", "failed"
    total_operations = Column(Integer, nullable=False, default=0)
    processed_operations = Column(Integer, nullable=False, default=0)
    successful_operations = Column(Integer, nullable=False, default=0)
    failed_operations = Column(Integer, nullable=False, default=0)
    conflict_operations = Column(Integer, nullable=False, default=0)
    current_step = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    last_sync_timestamp = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    completed_at = Column(DateTime, nullable=True)
