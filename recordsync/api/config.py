from fastapi import APIRouter
from pydantic import BaseModel

from recordsync.core.config import get_settings

router = APIRouter(prefix="/api", tags=["config"])


class HealthResponse(BaseModel):
    status: str
    version: str


class ConfigResponse(BaseModel):
    db_path: str
    sync_chunk_size: int
    max_sync_operations: int
    business_client_lead_minutes: int
    sync_history_retention_days: int
    cleanup_hour: int
    tz: str
    debug: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version="0.1.0")


@router.get("/config", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration."""
    settings = get_settings()
    return ConfigResponse(
        db_path=settings.db_path,
        sync_chunk_size=settings.sync_chunk_size,
        max_sync_operations=settings.max_sync_operations,
        business_client_lead_minutes=settings.business_client_lead_minutes,
        sync_history_retention_days=settings.sync_history_retention_days,
        cleanup_hour=settings.cleanup_hour,
        tz=settings.tz,
        debug=settings.debug,
    )
