import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from recordsync.core.config import get_settings
from recordsync.core.database import init_db
from recordsync.api import config, records, sync
from recordsync.services.scheduler import start_scheduler, stop_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    settings = get_settings()
    logging.getLogger("recordsync").setLevel(logging.DEBUG if settings.debug else logging.INFO)
    await init_db()
    start_scheduler()
    yield
    # Shutdown
    stop_scheduler()


# Create FastAPI application
app = FastAPI(
    title="Record Sync",
    description="Offline-first bulk sync service for captured contact records",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(config.router)
app.include_router(sync.router)
app.include_router(records.router)
