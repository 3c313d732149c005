"""Tests for UI message dispatch."""

import pytest

from fignotes.dispatch import MessageDispatcher
from fignotes.storage import MemoryKeyValueStore, SettingsStore, TaskStore
from fignotes.sync import SyncService


class BrokenWrites(MemoryKeyValueStore):
    def set(self, key, value):
        raise OSError("read-only storage")


@pytest.fixture
def dispatcher(clock):
    service = SyncService(TaskStore(MemoryKeyValueStore(), clock=clock), clock=clock)
    return MessageDispatcher(service, SettingsStore(MemoryKeyValueStore()), current_user="alice")


def types(messages):
    return [m["type"] for m in messages]


def notifications(messages):
    return [m["payload"] for m in messages if m["type"] == "notify"]


async def seed(dispatcher, raw_comment, *ids):
    return await dispatcher.handle({"type": "sync", "payload": [raw_comment(i) for i in ids]})


class TestSyncMessages:
    """Tests for sync and state messages."""

    @pytest.mark.asyncio
    async def test_sync_replies_with_state(self, dispatcher, raw_comment):
        messages = await seed(dispatcher, raw_comment, "a", "b")

        assert types(messages) == ["sync-complete"]
        payload = messages[0]["payload"]
        assert {t["comment_id"] for t in payload["tasks"]} == {"a", "b"}
        assert payload["fetch_status"] == "live"

    @pytest.mark.asyncio
    async def test_sync_with_wrapped_payload(self, dispatcher, raw_comment):
        messages = await dispatcher.handle(
            {"type": "sync", "payload": {"comments": [raw_comment("a", message="@bob @alice")], "currentUser": "bob"}}
        )
        assert messages[0]["payload"]["tasks"][0]["assignee"] == "bob"

    @pytest.mark.asyncio
    async def test_failed_fetch_reports_stored_state(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a")

        messages = await dispatcher.handle({"type": "sync", "payload": {"comments": None}})

        assert types(messages) == ["sync-complete", "notify"]
        assert messages[0]["payload"]["fetch_status"] == "fetch_failed"
        assert len(messages[0]["payload"]["tasks"]) == 1

    @pytest.mark.asyncio
    async def test_sync_without_payload_broadcasts_state(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a")
        messages = await dispatcher.handle({"type": "sync"})
        assert types(messages) == ["sync-complete"]
        assert messages[0]["payload"]["fetch_status"] == "stored"

    @pytest.mark.asyncio
    async def test_storage_failure_reports_sync_error(self, clock, raw_comment):
        service = SyncService(TaskStore(BrokenWrites(), clock=clock), clock=clock)
        dispatcher = MessageDispatcher(service, SettingsStore(MemoryKeyValueStore()))

        messages = await dispatcher.handle({"type": "sync", "payload": [raw_comment("a")]})

        assert types(messages) == ["sync-error", "notify"]
        assert notifications(messages)[0]["error"] is True
        assert notifications(messages)[0]["message"].startswith("Sync failure:")


class TestMutationMessages:
    """Tests for task mutations over messages."""

    @pytest.mark.asyncio
    async def test_update_task(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a")

        messages = await dispatcher.handle(
            {"type": "update-task", "payload": {"id": "a", "key": "priority", "value": "Critical"}}
        )

        assert types(messages) == ["sync-complete"]
        assert messages[0]["payload"]["tasks"][0]["priority"] == "Critical"

    @pytest.mark.parametrize(
        "payload",
        [
            {"id": "missing", "key": "priority", "value": "High"},
            {"id": "a", "key": "resolved", "value": True},
            {"id": "a"},
            "a",
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_update_yields_one_error(self, dispatcher, raw_comment, payload):
        await seed(dispatcher, raw_comment, "a")

        messages = await dispatcher.handle({"type": "update-task", "payload": payload})

        assert types(messages) == ["notify"]
        assert messages[0]["payload"]["error"] is True

    @pytest.mark.asyncio
    async def test_bulk_update(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a", "b")

        messages = await dispatcher.handle(
            {"type": "bulk-update", "payload": {"ids": ["a", "b"], "updates": {"internalStatus": "Blocked"}}}
        )

        assert {t["internal_status"] for t in messages[0]["payload"]["tasks"]} == {"Blocked"}

    @pytest.mark.asyncio
    async def test_working(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a", "b")

        await dispatcher.handle({"type": "set-working", "payload": {"id": "a"}})
        messages = await dispatcher.handle({"type": "set-working", "payload": "b"})
        working = [t["comment_id"] for t in messages[0]["payload"]["tasks"] if t["is_currently_working"]]
        assert working == ["b"]

        messages = await dispatcher.handle({"type": "clear-working"})
        assert not any(t["is_currently_working"] for t in messages[0]["payload"]["tasks"])

    @pytest.mark.asyncio
    async def test_focus(self, dispatcher, raw_comment):
        assert notifications(await dispatcher.handle({"type": "focus-mode"})) == [
            {"message": "No actionable focus tasks found.", "error": False}
        ]

        await seed(dispatcher, raw_comment, "a")
        messages = await dispatcher.handle({"type": "focus-mode"})
        assert types(messages) == ["focus-task-found"]
        assert messages[0]["payload"]["comment_id"] == "a"


class TestOtherMessages:
    """Tests for settings, export and malformed messages."""

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, dispatcher):
        saved = await dispatcher.handle(
            {"type": "save-settings", "payload": {"pat": "figd_x", "fileUrl": "https://www.figma.com/file/K1/x"}}
        )
        assert notifications(saved) == [{"message": "Settings saved.", "error": False}]

        loaded = await dispatcher.handle({"type": "get-settings"})
        assert loaded == [
            {"type": "settings-loaded", "payload": {"pat": "figd_x", "fileUrl": "https://www.figma.com/file/K1/x"}}
        ]

    @pytest.mark.asyncio
    async def test_export(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a")

        messages = await dispatcher.handle({"type": "export", "payload": {"format": "csv"}})

        assert types(messages) == ["export-data"]
        assert messages[0]["payload"]["format"] == "csv"
        assert messages[0]["payload"]["content"].startswith("ID,Message")

    @pytest.mark.asyncio
    async def test_export_unknown_format(self, dispatcher):
        messages = await dispatcher.handle({"type": "export", "payload": "pdf"})
        assert types(messages) == ["notify"]

    @pytest.mark.parametrize(
        "message",
        [
            None,
            "sync",
            {"payload": {}},
            {"type": "explode"},
            {"type": "sync", "payload": {"comments": [], "currentUser": 42}},
        ],
    )
    @pytest.mark.asyncio
    async def test_malformed_messages(self, dispatcher, message):
        messages = await dispatcher.handle(message)
        assert types(messages) == ["notify"]
        assert messages[0]["payload"]["error"] is True

    @pytest.mark.asyncio
    async def test_non_string_user_leaves_store_untouched(self, dispatcher, raw_comment):
        await seed(dispatcher, raw_comment, "a")

        messages = await dispatcher.handle(
            {"type": "sync", "payload": {"comments": [raw_comment("b", message="@x")], "currentUser": ["alice"]}}
        )

        assert types(messages) == ["notify"]
        state = await dispatcher.handle({"type": "get-state"})
        assert [t["comment_id"] for t in state[0]["payload"]["tasks"]] == ["a"]
