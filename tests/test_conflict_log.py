"""Tests for persisted conflict bookkeeping."""

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import OTHER_OWNER, OWNER
from recordsync.schemas.sync import ConflictData, SyncResult
from recordsync.services.conflict_log import ConflictLog


def conflict(local_id="L1", fields=("name",)) -> SyncResult:
    return SyncResult(
        local_id=local_id,
        server_id="srv-1",
        action="create",
        status="conflict",
        conflict_data=ConflictData(
            client_data={"name": "Grace"},
            server_data={"id": "srv-1", "name": "Ada"},
            conflict_fields=list(fields),
        ),
    )


class TestConflictLog:

    @pytest.mark.asyncio
    async def test_record_and_find_pending(self, async_session):
        log = ConflictLog(async_session)
        conflict_id = await log.record(OWNER, "sync_1", conflict())

        found_id, result = await log.find_pending(OWNER, "L1")

        assert found_id == conflict_id
        assert result == conflict()

    @pytest.mark.asyncio
    async def test_find_pending_returns_newest(self, async_session):
        log = ConflictLog(async_session)
        await log.record(OWNER, "sync_1", conflict(fields=("name",)))
        newest = await log.record(OWNER, "sync_2", conflict(fields=("title",)))

        found_id, result = await log.find_pending(OWNER, "L1")

        assert found_id == newest
        assert result.conflict_data.conflict_fields == ["title"]

    @pytest.mark.asyncio
    async def test_find_pending_is_owner_scoped(self, async_session):
        log = ConflictLog(async_session)
        await log.record(OWNER, "sync_1", conflict())

        assert await log.find_pending(OTHER_OWNER, "L1") is None

    @pytest.mark.asyncio
    async def test_resolved_conflicts_are_not_pending(self, async_session):
        log = ConflictLog(async_session)
        conflict_id = await log.record(OWNER, "sync_1", conflict())

        await log.mark(conflict_id, "resolved", "server_wins")

        assert await log.find_pending(OWNER, "L1") is None

    @pytest.mark.asyncio
    async def test_manual_conflicts_stay_open(self, async_session):
        log = ConflictLog(async_session)
        conflict_id = await log.record(OWNER, "sync_1", conflict())

        await log.mark(conflict_id, "manual", "manual")

        assert (await log.find_pending(OWNER, "L1"))[0] == conflict_id

    @pytest.mark.asyncio
    async def test_mark_resolved_for_closes_all_open(self, async_session):
        log = ConflictLog(async_session)
        await log.record(OWNER, "sync_1", conflict())
        await log.record(OWNER, "sync_2", conflict())

        assert await log.mark_resolved_for(OWNER, "L1", "merge") == 2
        assert await log.find_pending(OWNER, "L1") is None

    @pytest.mark.asyncio
    async def test_statistics(self, async_session):
        log = ConflictLog(async_session)
        first = await log.record(OWNER, "sync_1", conflict("L1", ("name", "notes")))
        await log.record(OWNER, "sync_1", conflict("L2", ("notes",)))
        await log.record(OTHER_OWNER, "sync_9", conflict("L1", ("phone",)))
        await log.mark(first, "resolved", "client_wins")

        stats = await log.statistics(OWNER)

        assert stats.total_conflicts == 2
        assert stats.resolved_conflicts == 1
        assert stats.pending_conflicts == 1
        assert stats.conflicts_by_field == {"name": 1, "notes": 2}

    @pytest.mark.asyncio
    async def test_failed_commit_rolls_back(self, async_session):
        log = ConflictLog(async_session)

        with pytest.raises(IntegrityError):
            await log.record(None, "sync_1", conflict())

        await log.record(OWNER, "sync_2", conflict())
        assert (await log.statistics(OWNER)).total_conflicts == 1
