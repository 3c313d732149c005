"""Sync orchestration and user mutations over the task store."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import structlog
from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from fignotes.exceptions import InvalidMutationPayload
from fignotes.models.config import ScoringConfig
from fignotes.models.result import FetchStatus, SyncResult
from fignotes.models.task import USER_OWNED_FIELDS, Task
from fignotes.parsing.parser import CommentParser
from fignotes.storage.task_store import TaskStore
from fignotes.sync.focus import select_focus
from fignotes.sync.metrics import compute_result
from fignotes.sync.reconcile import reconcile, refresh_all

logger = structlog.get_logger(__name__)

FETCH_FAILED_WARNING = "Comment fetch failed; showing stored tasks."
EMPTY_FETCH_WARNING = "Sync returned no comments."


def normalize_field_name(key: Any) -> str:
    """Map a UI field name (``internalStatus``) to the model name."""
    if not isinstance(key, str) or not key.strip():
        raise InvalidMutationPayload("Field name must be a non-empty string")
    return to_snake(key.strip())


def _apply_updates(task: Task, updates: Mapping[str, Any]) -> Task:
    """Validate and apply user-owned field updates to a copy of ``task``."""
    fields: Dict[str, Any] = {}
    for key, value in updates.items():
        field_name = normalize_field_name(key)
        if field_name not in USER_OWNED_FIELDS:
            raise InvalidMutationPayload(f"Field '{key}' cannot be edited")
        if field_name == "assignee" and isinstance(value, str):
            value = value.strip().lstrip("@") or None
        fields[field_name] = value

    data = task.model_dump()
    data.update(fields)
    try:
        return Task.model_validate(data)
    except ValidationError as e:
        raise InvalidMutationPayload(
            f"Invalid value for task {task.comment_id}: {e.errors()[0]['msg']}"
        ) from e


class SyncService:
    """Runs syncs, state reads and mutations against one task store.

    Every store operation runs under a single asyncio lock, so operations
    are applied one at a time in submission order and the store's
    read-modify-write updates cannot interleave.
    """

    def __init__(
        self,
        store: TaskStore,
        parser: Optional[CommentParser] = None,
        scoring: Optional[ScoringConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the sync service.

        Args:
            store: Task persistence
            parser: Comment parser (a parser without canvas lookup by default)
            scoring: Metric thresholds
            clock: Returns "now"; shared by reconciliation and metrics
        """
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.parser = parser or CommentParser(clock=self.clock)
        self.scoring = scoring or ScoringConfig()
        self._lock = asyncio.Lock()

    async def sync(
        self,
        raw_comments: Optional[Sequence[Any]],
        current_user: Optional[str] = None,
    ) -> SyncResult:
        """Reconcile a fresh comment fetch with the store.

        The merged set replaces the stored set before metrics are computed,
        so the result describes exactly what was persisted. A failed fetch
        (``raw_comments`` of None or not a list) leaves the store untouched
        and reports the stored tasks instead.

        Args:
            raw_comments: Raw comment records, or None when the fetch failed
            current_user: Handle of the local user

        Returns:
            SyncResult

        Raises:
            StorageWriteFailed: If the merged set cannot be persisted
        """
        async with self._lock:
            if not isinstance(raw_comments, (list, tuple)):
                logger.warning("sync_fetch_failed", received=type(raw_comments).__name__)
                return self._state(current_user, FetchStatus.FETCH_FAILED, [FETCH_FAILED_WARNING])

            now = self.clock()
            live = self.parser.parse(raw_comments, current_user)
            stored = self.store.get_all()
            merged = reconcile(live, stored, now=now, scoring=self.scoring)
            self.store.save_all(merged)

            warnings = [] if merged else [EMPTY_FETCH_WARNING]
            result = compute_result(
                merged.values(),
                current_user=current_user,
                scoring=self.scoring,
                fetch_status=FetchStatus.LIVE,
                warnings=warnings,
            )
            logger.info(
                "sync_completed",
                tasks=len(result.tasks),
                unresolved=result.file_metrics.total_unresolved,
                ship_readiness=result.file_metrics.ship_readiness.value,
            )
            return result

    async def get_state(self, current_user: Optional[str] = None) -> SyncResult:
        """Compute a result from the stored tasks without fetching."""
        async with self._lock:
            return self._state(current_user, FetchStatus.STORED)

    def _state(
        self,
        current_user: Optional[str],
        fetch_status: FetchStatus,
        warnings: Optional[List[str]] = None,
    ) -> SyncResult:
        tasks = refresh_all(self.store.get_all(), now=self.clock(), scoring=self.scoring)
        return compute_result(
            tasks.values(),
            current_user=current_user,
            scoring=self.scoring,
            fetch_status=fetch_status,
            warnings=warnings,
        )

    async def update_task(self, task_id: Any, key: Any, value: Any) -> Task:
        """Set one user-owned field on one task.

        Raises:
            InvalidMutationPayload: Unknown task, non-editable field or bad value
            StorageWriteFailed: If the store write fails
        """
        async with self._lock:
            tasks = self.store.get_all()
            task = self._require(tasks, task_id)
            updated = self.store.update_one(_apply_updates(task, {key: value}))
            logger.info("task_updated", task_id=task_id, field=normalize_field_name(key))
            return updated

    async def bulk_update(self, task_ids: Any, updates: Any) -> List[Task]:
        """Apply the same updates to several tasks, all or nothing.

        Raises:
            InvalidMutationPayload: Any unknown task id or invalid update
            StorageWriteFailed: If the store write fails
        """
        if not isinstance(task_ids, (list, tuple)) or not task_ids:
            raise InvalidMutationPayload("Bulk update needs a non-empty list of task ids")
        if not isinstance(updates, Mapping) or not updates:
            raise InvalidMutationPayload("Bulk update needs at least one field to change")

        async with self._lock:
            tasks = self.store.get_all()
            now = self.clock()
            changed = []
            for task_id in task_ids:
                task = self._require(tasks, task_id)
                changed.append(_apply_updates(task, updates).model_copy(update={"last_updated_at": now}))

            for task in changed:
                tasks[task.comment_id] = task
            self.store.save_all(tasks)
            logger.info("tasks_bulk_updated", count=len(changed), fields=sorted(updates))
            return changed

    async def set_working(self, task_id: Any) -> None:
        """Mark ``task_id`` as the one task being worked on.

        Raises:
            InvalidMutationPayload: Unknown task id
        """
        async with self._lock:
            self._require(self.store.get_all(), task_id)
            self.store.set_working_id(task_id)
            logger.info("working_task_set", task_id=task_id)

    async def clear_working(self) -> None:
        """Unmark the working task, if any."""
        async with self._lock:
            self.store.set_working_id(None)
            logger.info("working_task_cleared")

    async def focus(self, current_user: Optional[str] = None) -> Optional[Task]:
        """Select the focus task from the stored snapshot."""
        async with self._lock:
            state = self._state(current_user, FetchStatus.STORED)
        return select_focus(state.tasks, current_user)

    @staticmethod
    def _require(tasks: Mapping[str, Task], task_id: Any) -> Task:
        if not isinstance(task_id, str) or not task_id:
            raise InvalidMutationPayload("Task id must be a non-empty string")
        task = tasks.get(task_id)
        if task is None:
            raise InvalidMutationPayload(f"Task not found: {task_id}")
        return task
