# Database models
from recordsync.models.record import Record
from recordsync.models.sync_session import SyncSession
from recordsync.models.sync_conflict import SyncConflict

__all__ = [
    "Record",
    "SyncSession",
    "SyncConflict",
]
