"""Tests for the SQLAlchemy record store and local id mapping."""

import pytest
from datetime import datetime

from conftest import OTHER_OWNER, OWNER
from recordsync.services.errors import ConstraintViolationError, RecordNotFoundError
from recordsync.services.local_ids import LocalIdMapper


def values(**overrides):
    data = {
        "name": "Ada",
        "company": "Engines",
        "interests": ["math"],
        "capture_method": "business_card",
        "captured_at": datetime(2025, 3, 1, 10, 0),
    }
    data.update(overrides)
    return data


class TestCreateAndFind:

    @pytest.mark.asyncio
    async def test_create_returns_snapshot(self, store):
        record = await store.create(OWNER, values(), local_id="local-1")

        assert record.owner_id == OWNER
        assert record.local_id == "local-1"
        assert record.sync_version == 1
        assert record.created_at == record.updated_at

    @pytest.mark.asyncio
    async def test_create_ignores_unknown_fields(self, store):
        record = await store.create(OWNER, values(sync_version=99, id="forced"))
        assert record.sync_version == 1
        assert record.id != "forced"

    @pytest.mark.asyncio
    async def test_duplicate_local_id_raises_constraint_violation(self, store):
        await store.create(OWNER, values(), local_id="local-1")

        with pytest.raises(ConstraintViolationError, match="local-1"):
            await store.create(OWNER, values(), local_id="local-1")

    @pytest.mark.asyncio
    async def test_store_usable_after_constraint_violation(self, store):
        await store.create(OWNER, values(), local_id="local-1")
        with pytest.raises(ConstraintViolationError):
            await store.create(OWNER, values(), local_id="local-1")

        record = await store.create(OWNER, values(), local_id="local-2")
        assert await store.find_by_id(OWNER, record.id) is not None

    @pytest.mark.asyncio
    async def test_find_scoped_to_owner(self, store):
        record = await store.create(OWNER, values(), local_id="local-1")

        assert await store.find_by_id(OTHER_OWNER, record.id) is None
        assert await store.find_by_local_id(OTHER_OWNER, "local-1") is None

    @pytest.mark.asyncio
    async def test_find_by_owner_excludes_deleted(self, store):
        kept = await store.create(OWNER, values(name="Kept"))
        gone = await store.create(OWNER, values(name="Gone"))
        await store.soft_delete(OWNER, gone.id)

        records = await store.find_by_owner(OWNER)
        assert [r.id for r in records] == [kept.id]

    @pytest.mark.asyncio
    async def test_find_by_owner_pages(self, store):
        for day in range(1, 4):
            await store.create(OWNER, values(captured_at=datetime(2025, 3, day)))

        page = await store.find_by_owner(OWNER, limit=2, offset=0)
        assert [r.captured_at.day for r in page] == [3, 2]


class TestUpdate:

    @pytest.mark.asyncio
    async def test_update_bumps_version_and_timestamp(self, store):
        record = await store.create(OWNER, values())

        updated = await store.update(OWNER, record.id, {"title": "CTO"})

        assert updated.title == "CTO"
        assert updated.sync_version == 2
        assert updated.updated_at >= record.updated_at

    @pytest.mark.asyncio
    async def test_sync_version_strictly_increases(self, store):
        record = await store.create(OWNER, values())
        versions = []
        for title in ("A", "B", "C"):
            versions.append((await store.update(OWNER, record.id, {"title": title})).sync_version)
        assert versions == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, store):
        assert await store.update(OWNER, "missing", {"title": "CTO"}) is None

    @pytest.mark.asyncio
    async def test_update_deleted_returns_none(self, store):
        record = await store.create(OWNER, values())
        await store.soft_delete(OWNER, record.id)
        assert await store.update(OWNER, record.id, {"title": "CTO"}) is None

    @pytest.mark.asyncio
    async def test_empty_changes_return_current_record(self, store):
        record = await store.create(OWNER, values())
        unchanged = await store.update(OWNER, record.id, {"owner_id": "someone-else"})
        assert unchanged.sync_version == 1
        assert unchanged.owner_id == OWNER


class TestSoftDelete:

    @pytest.mark.asyncio
    async def test_soft_delete_hides_record(self, store):
        record = await store.create(OWNER, values(), local_id="local-1")

        assert await store.soft_delete(OWNER, record.id) is True
        assert await store.find_by_id(OWNER, record.id) is None
        assert await store.find_by_local_id(OWNER, "local-1") is None

    @pytest.mark.asyncio
    async def test_second_delete_returns_false(self, store):
        record = await store.create(OWNER, values())
        await store.soft_delete(OWNER, record.id)
        assert await store.soft_delete(OWNER, record.id) is False

    @pytest.mark.asyncio
    async def test_local_id_reusable_after_delete(self, store):
        first = await store.create(OWNER, values(), local_id="local-1")
        await store.soft_delete(OWNER, first.id)

        second = await store.create(OWNER, values(), local_id="local-1")
        assert second.id != first.id


class TestLatestUpdate:

    @pytest.mark.asyncio
    async def test_none_without_records(self, store):
        assert await store.latest_update(OWNER) is None

    @pytest.mark.asyncio
    async def test_tracks_most_recent_write(self, store):
        record = await store.create(OWNER, values())
        updated = await store.update(OWNER, record.id, {"title": "CTO"})
        assert await store.latest_update(OWNER) == updated.updated_at


class TestLocalIdMapper:

    @pytest.mark.asyncio
    async def test_record_mapping_then_lookup(self, store):
        record = await store.create(OWNER, values())
        mapper = LocalIdMapper(store)

        await mapper.record_mapping(OWNER, "local-9", record.id)

        found = await mapper.find_by_local_id(OWNER, "local-9")
        assert found.id == record.id
        assert await mapper.get_mappings(OWNER) == {"local-9": record.id}

    @pytest.mark.asyncio
    async def test_record_mapping_missing_record_raises(self, store):
        mapper = LocalIdMapper(store)
        with pytest.raises(RecordNotFoundError):
            await mapper.record_mapping(OWNER, "local-9", "missing")

    @pytest.mark.asyncio
    async def test_mappings_skip_records_without_local_id(self, store):
        await store.create(OWNER, values())
        with_local = await store.create(OWNER, values(), local_id="local-1")

        assert await LocalIdMapper(store).get_mappings(OWNER) == {"local-1": with_local.id}
