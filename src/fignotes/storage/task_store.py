"""Persistent task set keyed by comment id."""

from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from fignotes.exceptions import StorageWriteFailed
from fignotes.models.task import Task
from fignotes.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)

STORAGE_KEY = "fignotes_tasks_v3"
SNAPSHOT_VERSION = "3"


class TaskSnapshot(BaseModel):
    """Stored form of the task set.

    The working task is a single reference rather than a flag on every task,
    so at most one task can ever be marked.
    """

    version: str = Field(SNAPSHOT_VERSION, description="Snapshot format version")
    tasks: Dict[str, Task] = Field(default_factory=dict, description="Tasks by comment id")
    working_task_id: Optional[str] = Field(None, description="Task currently being worked on")


class TaskStore:
    """Whole-set persistence of tasks on top of a key-value store.

    Reads never raise: missing or corrupt data reads as an empty set. Writes
    raise ``StorageWriteFailed``. ``update_one`` is a read-modify-write of the
    whole set and is not safe under concurrent writers; callers serialize
    access (see ``SyncService``).
    """

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = STORAGE_KEY,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the task store.

        Args:
            kv: Underlying key-value store
            key: Key holding the task snapshot
            clock: Returns "now"; used to stamp local edits
        """
        self.kv = kv
        self.key = key
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def load_snapshot(self) -> TaskSnapshot:
        """Read the stored snapshot, tolerating missing or corrupt data."""
        try:
            raw = self.kv.get(self.key)
        except Exception as e:
            logger.warning("task_store_read_failed", key=self.key, error=str(e))
            return TaskSnapshot()

        if raw is None:
            return TaskSnapshot()
        if not isinstance(raw, dict):
            logger.warning("task_store_corrupt", key=self.key, type=type(raw).__name__)
            return TaskSnapshot()

        # v2 snapshots were a bare {comment_id: task} mapping
        entries = raw.get("tasks") if "tasks" in raw else raw
        if not isinstance(entries, dict):
            logger.warning("task_store_corrupt", key=self.key, type=type(entries).__name__)
            return TaskSnapshot()

        tasks: Dict[str, Task] = {}
        dropped = 0
        for comment_id, data in entries.items():
            try:
                task = Task.model_validate(data)
            except ValidationError:
                dropped += 1
                continue
            tasks[task.comment_id] = task
        if dropped:
            logger.warning("task_store_entries_dropped", key=self.key, dropped=dropped)

        working_id = raw.get("working_task_id") if "tasks" in raw else None
        if working_id is None:
            # Legacy data carried the flag on each task
            flagged = sorted(cid for cid, t in tasks.items() if t.is_currently_working)
            working_id = flagged[0] if flagged else None
        if not isinstance(working_id, str) or working_id not in tasks:
            working_id = None

        return TaskSnapshot(tasks=tasks, working_task_id=working_id)

    def save_snapshot(self, snapshot: TaskSnapshot) -> None:
        """Write a snapshot, replacing whatever is stored.

        Raises:
            StorageWriteFailed: If the underlying write fails
        """
        data = {
            "version": SNAPSHOT_VERSION,
            "working_task_id": snapshot.working_task_id,
            "tasks": {
                cid: task.model_dump(mode="json", exclude={"is_currently_working"})
                for cid, task in snapshot.tasks.items()
            },
        }
        try:
            self.kv.set(self.key, data)
        except StorageWriteFailed:
            logger.error("task_store_write_failed", key=self.key)
            raise
        except Exception as e:
            logger.error("task_store_write_failed", key=self.key, error=str(e))
            raise StorageWriteFailed(self.key, e) from e
        logger.debug("task_store_saved", key=self.key, tasks=len(snapshot.tasks))

    def get_all(self) -> Dict[str, Task]:
        """Get every stored task keyed by comment id.

        ``is_currently_working`` is filled in from the stored working reference.
        """
        snapshot = self.load_snapshot()
        return {
            cid: task.model_copy(update={"is_currently_working": cid == snapshot.working_task_id})
            for cid, task in snapshot.tasks.items()
        }

    def save_all(self, tasks: Dict[str, Task]) -> None:
        """Replace the stored set with ``tasks``.

        The working reference is taken from the task flagged
        ``is_currently_working``.

        Raises:
            StorageWriteFailed: If the underlying write fails
        """
        flagged = sorted(cid for cid, t in tasks.items() if t.is_currently_working)
        if len(flagged) > 1:
            logger.warning("multiple_working_tasks", task_ids=flagged, kept=flagged[0])
        self.save_snapshot(
            TaskSnapshot(tasks=dict(tasks), working_task_id=flagged[0] if flagged else None)
        )

    def update_one(self, task: Task) -> Task:
        """Read the full set, replace one task and write the set back.

        Args:
            task: Task to store

        Returns:
            The stored task, stamped with ``last_updated_at``
        """
        snapshot = self.load_snapshot()
        stamped = task.model_copy(update={"last_updated_at": self.clock()})
        snapshot.tasks[stamped.comment_id] = stamped
        if stamped.is_currently_working:
            snapshot.working_task_id = stamped.comment_id
        elif snapshot.working_task_id == stamped.comment_id:
            snapshot.working_task_id = None
        self.save_snapshot(snapshot)
        return stamped

    def get_working_id(self) -> Optional[str]:
        return self.load_snapshot().working_task_id

    def set_working_id(self, task_id: Optional[str]) -> None:
        """Point the working reference at ``task_id`` (None clears it)."""
        snapshot = self.load_snapshot()
        snapshot.working_task_id = task_id
        self.save_snapshot(snapshot)

    def clear(self) -> None:
        """Remove the stored task set."""
        self.kv.delete(self.key)

