"""Shared request dependencies."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from recordsync.core.config import get_settings
from recordsync.core.database import get_db
from recordsync.services.sync import SyncService


async def get_owner_id(x_owner_id: str | None = Header(None)) -> str:
    """Owner of the request, supplied by the authenticating proxy."""
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()


async def get_sync_service(db: AsyncSession = Depends(get_db)) -> SyncService:
    """Request-scoped sync service bound to the request's database session."""
    return SyncService.from_session(db, get_settings())
