"""Tests for sync orchestration, mutations and scheduling."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest

from fignotes.exceptions import InvalidMutationPayload, StorageWriteFailed
from fignotes.models import FetchStatus, InternalStatus, Priority, ShipReadiness
from fignotes.storage import MemoryKeyValueStore, TaskStore
from fignotes.sync import SyncScheduler, SyncService
from fignotes.sync.service import EMPTY_FETCH_WARNING, FETCH_FAILED_WARNING, normalize_field_name


class FlakyStore(MemoryKeyValueStore):
    """Store whose writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def set(self, key, value):
        if self.fail_writes:
            raise OSError("quota exceeded")
        super().set(key, value)


@pytest.fixture
def kv():
    return FlakyStore()


@pytest.fixture
def store(kv, clock):
    return TaskStore(kv, clock=clock)


@pytest.fixture
def service(store, clock):
    return SyncService(store, clock=clock)


class TestSync:
    """Tests for SyncService.sync and get_state."""

    @pytest.mark.asyncio
    async def test_first_sync_creates_tasks_with_defaults(self, service, store, raw_comment):
        result = await service.sync([raw_comment("c1", days_old=2), raw_comment("c2", message="@alice nudge")], "alice")

        assert result.fetch_status == FetchStatus.LIVE
        assert {t.comment_id for t in result.tasks} == {"c1", "c2"}
        stored = store.get_all()
        assert stored["c1"].priority == Priority.MEDIUM
        assert stored["c1"].internal_status == InternalStatus.PENDING
        assert stored["c1"].age_in_days == 2
        assert stored["c2"].assignee == "alice"
        assert result.file_metrics.ship_readiness == ShipReadiness.NEEDS_CLEANUP

    @pytest.mark.asyncio
    async def test_sync_keeps_local_edits(self, service, raw_comment, now):
        await service.sync([raw_comment("c1")])
        await service.update_task("c1", "priority", "Critical")
        await service.update_task("c1", "assignee", "@alice")

        result = await service.sync([raw_comment("c1", message="Updated text", resolved=True)])

        task = result.tasks[0]
        assert task.message == "Updated text"
        assert task.resolved is True
        assert task.priority == Priority.CRITICAL
        assert task.assignee == "alice"
        assert task.resolved_by == "alice"

    @pytest.mark.asyncio
    async def test_result_matches_store(self, service, store, raw_comment):
        result = await service.sync([raw_comment("c1"), raw_comment("c2")])
        assert {t.comment_id for t in result.tasks} == set(store.get_all())

    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_store(self, service, store, raw_comment):
        await service.sync([raw_comment("c1")])

        result = await service.sync(None)

        assert result.fetch_status == FetchStatus.FETCH_FAILED
        assert result.warnings == [FETCH_FAILED_WARNING]
        assert [t.comment_id for t in result.tasks] == ["c1"]
        assert set(store.get_all()) == {"c1"}

    @pytest.mark.asyncio
    async def test_empty_fetch_clears_with_warning(self, service, store, raw_comment):
        await service.sync([raw_comment("c1")])

        result = await service.sync([])

        assert result.tasks == []
        assert result.warnings == [EMPTY_FETCH_WARNING]
        assert result.file_metrics.ship_readiness == ShipReadiness.READY
        assert store.get_all() == {}

    @pytest.mark.asyncio
    async def test_write_failure_propagates_and_keeps_store(self, service, store, kv, raw_comment):
        await service.sync([raw_comment("c1")])
        kv.fail_writes = True

        with pytest.raises(StorageWriteFailed):
            await service.sync([raw_comment("c1"), raw_comment("c2")])

        assert set(store.get_all()) == {"c1"}

    @pytest.mark.asyncio
    async def test_get_state_on_empty_store(self, service):
        state = await service.get_state()

        assert state.tasks == []
        assert state.metrics == []
        assert state.file_metrics.ship_readiness == ShipReadiness.READY
        assert state.file_metrics.completion_percentage == 100

    @pytest.mark.asyncio
    async def test_get_state_recomputes_age(self, store, raw_comment, now):
        current = {"now": now}
        service = SyncService(store, clock=lambda: current["now"])
        await service.sync([raw_comment("c1", days_old=1)])

        current["now"] = now + timedelta(days=3)
        state = await service.get_state()

        assert state.fetch_status == FetchStatus.STORED
        assert state.tasks[0].age_in_days == 4

    @pytest.mark.asyncio
    async def test_undated_comment_ages_across_syncs(self, store, now):
        current = {"now": now}
        service = SyncService(store, clock=lambda: current["now"])
        await service.sync([{"id": "c1", "message": "No timestamp"}])

        current["now"] = now + timedelta(days=3)
        result = await service.sync([{"id": "c1", "message": "No timestamp"}])

        assert result.tasks[0].created_at == now
        assert result.tasks[0].age_in_days == 3


class TestMutations:
    """Tests for task mutations."""

    @pytest.mark.asyncio
    async def test_update_task_accepts_camel_case(self, service, store, raw_comment, now):
        await service.sync([raw_comment("c1")])

        updated = await service.update_task("c1", "internalStatus", "InProgress")

        assert updated.internal_status == InternalStatus.IN_PROGRESS
        assert updated.last_updated_at == now
        assert store.get_all()["c1"].internal_status == InternalStatus.IN_PROGRESS

    @pytest.mark.parametrize(
        "task_id,key,value",
        [
            ("missing", "priority", "High"),
            ("c1", "message", "rewritten"),
            ("c1", "resolved", True),
            ("c1", "priority", "Urgent"),
            ("c1", "effort", "huge"),
            ("c1", "", "x"),
            (None, "priority", "High"),
        ],
    )
    @pytest.mark.asyncio
    async def test_update_task_rejects(self, service, store, raw_comment, task_id, key, value):
        await service.sync([raw_comment("c1")])
        before = store.get_all()["c1"]

        with pytest.raises(InvalidMutationPayload):
            await service.update_task(task_id, key, value)

        assert store.get_all()["c1"] == before

    @pytest.mark.asyncio
    async def test_bulk_update_all(self, service, store, raw_comment):
        await service.sync([raw_comment("a"), raw_comment("b"), raw_comment("c")])

        changed = await service.bulk_update(["a", "b"], {"priority": "High", "ignored": True})

        assert [t.comment_id for t in changed] == ["a", "b"]
        tasks = store.get_all()
        assert tasks["a"].priority == Priority.HIGH
        assert tasks["b"].ignored is True
        assert tasks["c"].priority == Priority.MEDIUM

    @pytest.mark.asyncio
    async def test_bulk_update_is_all_or_nothing(self, service, store, raw_comment):
        await service.sync([raw_comment("a"), raw_comment("b")])

        with pytest.raises(InvalidMutationPayload):
            await service.bulk_update(["a", "missing"], {"priority": "High"})

        assert all(t.priority == Priority.MEDIUM for t in store.get_all().values())

    @pytest.mark.parametrize("ids,updates", [([], {"priority": "High"}), (["a"], {}), ("a", {"priority": "High"})])
    @pytest.mark.asyncio
    async def test_bulk_update_rejects_malformed(self, service, ids, updates):
        with pytest.raises(InvalidMutationPayload):
            await service.bulk_update(ids, updates)

    @pytest.mark.asyncio
    async def test_set_working_is_exclusive(self, service, raw_comment):
        await service.sync([raw_comment("a"), raw_comment("b")])

        await service.set_working("a")
        await service.set_working("b")

        state = await service.get_state()
        assert [t.comment_id for t in state.tasks if t.is_currently_working] == ["b"]

        await service.clear_working()
        state = await service.get_state()
        assert not any(t.is_currently_working for t in state.tasks)

    @pytest.mark.asyncio
    async def test_set_working_unknown_task(self, service):
        with pytest.raises(InvalidMutationPayload):
            await service.set_working("missing")

    @pytest.mark.asyncio
    async def test_working_survives_sync(self, service, raw_comment):
        await service.sync([raw_comment("a"), raw_comment("b")])
        await service.set_working("a")

        result = await service.sync([raw_comment("a"), raw_comment("b")])

        assert [t.comment_id for t in result.tasks if t.is_currently_working] == ["a"]

    @pytest.mark.asyncio
    async def test_focus(self, service, raw_comment):
        await service.sync([raw_comment("t1", message="@alice please"), raw_comment("t2")], "alice")
        await service.update_task("t2", "priority", "Critical")

        assert (await service.focus("alice")).comment_id == "t1"
        assert (await service.focus(None)).comment_id == "t2"

    @pytest.mark.asyncio
    async def test_concurrent_updates_do_not_lose_writes(self, service, store, raw_comment):
        await service.sync([raw_comment("a"), raw_comment("b")])

        await asyncio.gather(
            service.update_task("a", "priority", "High"),
            service.update_task("b", "assignee", "bob"),
        )

        tasks = store.get_all()
        assert tasks["a"].priority == Priority.HIGH
        assert tasks["b"].assignee == "bob"

    def test_normalize_field_name(self):
        assert normalize_field_name("timeEstimateMinutes") == "time_estimate_minutes"
        assert normalize_field_name("priority") == "priority"


class TestSyncScheduler:
    """Tests for debounced sync scheduling."""

    @pytest.mark.asyncio
    async def test_burst_collapses_to_one_sync(self, service, raw_comment):
        scheduler = SyncScheduler(service, delay=0.01)

        with patch.object(service, "sync", wraps=service.sync) as spy:
            first = scheduler.request([raw_comment("a")])
            second = scheduler.request([raw_comment("b")])
            assert await first is None
            result = await second

        assert spy.await_count == 1
        assert [t.comment_id for t in result.tasks] == ["b"]
        assert not scheduler.pending

    @pytest.mark.asyncio
    async def test_request_during_sync_is_dropped(self, service, raw_comment):
        release = asyncio.Event()
        original = service.sync

        async def slow_sync(raw_comments, current_user=None):
            await release.wait()
            return await original(raw_comments, current_user)

        service.sync = slow_sync
        scheduler = SyncScheduler(service, delay=0.01)

        first = scheduler.request([raw_comment("a")])
        while not scheduler.in_progress:
            await asyncio.sleep(0.005)

        second = scheduler.request([raw_comment("b")])
        assert await second is None

        release.set()
        result = await first
        assert [t.comment_id for t in result.tasks] == ["a"]
        assert not scheduler.in_progress

    @pytest.mark.asyncio
    async def test_results_and_errors_reported(self, service, kv, raw_comment):
        results, errors = [], []
        scheduler = SyncScheduler(service, delay=0, on_result=results.append, on_error=errors.append)

        await scheduler.request([raw_comment("a")])
        kv.fail_writes = True
        assert await scheduler.request([raw_comment("b")]) is None

        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], StorageWriteFailed)

    @pytest.mark.asyncio
    async def test_error_propagates_without_handler(self, service, kv, raw_comment):
        kv.fail_writes = True
        scheduler = SyncScheduler(service, delay=0)

        with pytest.raises(StorageWriteFailed):
            await scheduler.request([raw_comment("a")])
