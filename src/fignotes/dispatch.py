"""Inbound UI message handling.

Messages are ``{"type": ..., "payload": ...}`` dicts. Each handler returns the
outbound messages for the UI. Every error caught here becomes exactly one
``notify`` message.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from pydantic import ValidationError

from fignotes.exceptions import FigNotesError, InvalidMutationPayload, StorageWriteFailed
from fignotes.export import EXPORTERS
from fignotes.models.result import FetchStatus, SyncResult
from fignotes.storage.settings_store import SettingsStore, StoredSettings
from fignotes.sync.service import SyncService

logger = structlog.get_logger(__name__)

Message = Dict[str, Any]


def notify(text: str, error: bool = False) -> Message:
    return {"type": "notify", "payload": {"message": text, "error": error}}


def _result_message(result: SyncResult) -> Message:
    return {"type": "sync-complete", "payload": result.model_dump(mode="json")}


class MessageDispatcher:
    """Routes UI messages to the sync service and settings store."""

    def __init__(
        self,
        service: SyncService,
        settings_store: SettingsStore,
        current_user: Optional[str] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            service: Sync service owning the task store
            settings_store: Saved settings persistence
            current_user: Handle of the local user
        """
        self.service = service
        self.settings_store = settings_store
        self.current_user = current_user
        self._handlers: Dict[str, Callable[[Any], Awaitable[List[Message]]]] = {
            "sync": self._handle_sync,
            "get-state": self._handle_get_state,
            "update-task": self._handle_update_task,
            "bulk-update": self._handle_bulk_update,
            "set-working": self._handle_set_working,
            "clear-working": self._handle_clear_working,
            "focus-mode": self._handle_focus,
            "save-settings": self._handle_save_settings,
            "get-settings": self._handle_get_settings,
            "export": self._handle_export,
        }

    async def handle(self, message: Any) -> List[Message]:
        """Handle one inbound message.

        Args:
            message: ``{"type": str, "payload": Any}``

        Returns:
            Outbound messages, in send order
        """
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            return [notify("Runtime Error: malformed message", error=True)]

        msg_type = message["type"]
        handler = self._handlers.get(msg_type)
        if handler is None:
            logger.warning("unknown_message_type", type=msg_type)
            return [notify(f"Runtime Error: unknown message type '{msg_type}'", error=True)]

        try:
            return await handler(message.get("payload"))
        except InvalidMutationPayload as e:
            logger.warning("mutation_rejected", type=msg_type, error=str(e))
            return [notify(str(e), error=True)]
        except StorageWriteFailed as e:
            logger.error("storage_write_failed", type=msg_type, error=str(e))
            return [
                {"type": "sync-error", "payload": str(e)},
                notify(f"Sync failure: {e}", error=True),
            ]
        except FigNotesError as e:
            logger.error("message_failed", type=msg_type, error=str(e))
            return [notify(f"Runtime Error: {e}", error=True)]

    async def _broadcast_state(self) -> List[Message]:
        return [_result_message(await self.service.get_state(self.current_user))]

    async def _handle_sync(self, payload: Any) -> List[Message]:
        if payload is None:
            return await self._broadcast_state()

        current_user = self.current_user
        comments = payload
        if isinstance(payload, dict):
            comments = payload.get("comments")
            current_user = payload.get("currentUser") or payload.get("current_user") or current_user
        if current_user is not None and not isinstance(current_user, str):
            raise InvalidMutationPayload("currentUser must be a string handle")

        result = await self.service.sync(comments, current_user)
        messages = [_result_message(result)]
        if result.fetch_status == FetchStatus.FETCH_FAILED or result.warnings:
            messages.append(notify(" ".join(result.warnings)))
        return messages

    async def _handle_get_state(self, payload: Any) -> List[Message]:
        return await self._broadcast_state()

    async def _handle_update_task(self, payload: Any) -> List[Message]:
        if not isinstance(payload, dict) or not payload.get("id") or "key" not in payload:
            raise InvalidMutationPayload("Invalid task update payload")
        await self.service.update_task(payload["id"], payload["key"], payload.get("value"))
        return await self._broadcast_state()

    async def _handle_bulk_update(self, payload: Any) -> List[Message]:
        if not isinstance(payload, dict) or not payload.get("ids"):
            raise InvalidMutationPayload("Invalid bulk update payload")
        await self.service.bulk_update(payload["ids"], payload.get("updates"))
        return await self._broadcast_state()

    async def _handle_set_working(self, payload: Any) -> List[Message]:
        task_id = payload.get("id") if isinstance(payload, dict) else payload
        await self.service.set_working(task_id)
        return await self._broadcast_state()

    async def _handle_clear_working(self, payload: Any) -> List[Message]:
        await self.service.clear_working()
        return await self._broadcast_state()

    async def _handle_focus(self, payload: Any) -> List[Message]:
        task = await self.service.focus(self.current_user)
        if task is None:
            return [notify("No actionable focus tasks found.")]
        return [{"type": "focus-task-found", "payload": task.model_dump(mode="json")}]

    async def _handle_save_settings(self, payload: Any) -> List[Message]:
        if not isinstance(payload, dict):
            raise InvalidMutationPayload("Invalid settings payload")
        try:
            settings = StoredSettings(
                pat=payload.get("pat"),
                file_url=payload.get("fileUrl") or payload.get("file_url"),
            )
        except ValidationError as e:
            raise InvalidMutationPayload("Invalid settings payload") from e
        self.settings_store.save(settings)
        return [notify("Settings saved.")]

    async def _handle_get_settings(self, payload: Any) -> List[Message]:
        settings = self.settings_store.load()
        return [{"type": "settings-loaded", "payload": {"pat": settings.pat, "fileUrl": settings.file_url}}]

    async def _handle_export(self, payload: Any) -> List[Message]:
        fmt = payload.get("format") if isinstance(payload, dict) else payload
        exporter = EXPORTERS.get(fmt) if isinstance(fmt, str) else None
        if exporter is None:
            raise InvalidMutationPayload(f"Unsupported export format: {fmt}")
        result = await self.service.get_state(self.current_user)
        return [{"type": "export-data", "payload": {"format": fmt, "content": exporter(result)}}]
