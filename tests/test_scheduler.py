"""Tests for the scheduled sync session cleanup."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import OWNER
from recordsync.core.timestamps import utc_now
from recordsync.models import SyncSession
from recordsync.services import scheduler
from recordsync.services.scheduler import run_session_cleanup


class _SessionMaker:
    """Hands the test session to code expecting an async_session_maker."""

    def __init__(self, session):
        self.session = session

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


class TestRunSessionCleanup:

    @pytest.mark.asyncio
    async def test_removes_sessions_past_retention(self, async_session):
        async_session.add(SyncSession(
            id="sync_old", owner_id=OWNER, status="completed",
            started_at=utc_now() - timedelta(days=90),
        ))
        async_session.add(SyncSession(id="sync_new", owner_id=OWNER, status="completed", started_at=utc_now()))
        await async_session.commit()

        removed = await run_session_cleanup(_SessionMaker(async_session))

        assert removed == 1
        ids = (await async_session.execute(select(SyncSession.id))).scalars().all()
        assert ids == ["sync_new"]


class TestSchedulerLifecycle:

    @pytest.mark.asyncio
    async def test_start_registers_cleanup_job(self):
        scheduler.start_scheduler()
        try:
            job = scheduler.scheduler.get_job("sync_session_cleanup")
            assert job is not None
        finally:
            scheduler.stop_scheduler()

        assert scheduler.scheduler is None
