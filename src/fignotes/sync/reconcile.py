"""Merge of live comment tasks with stored task annotations.

Field ownership:

- the comment source owns location, message, author, creation time and
  resolution; live values always win
- the user owns effort, estimate, assignee, priority, status, ignored and
  the working flag; stored values always win
- age and avoidance are derived from (task, now) on every pass
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, Mapping, Optional

import structlog

from fignotes.models.config import ScoringConfig
from fignotes.models.task import Effort, Task

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400


def compute_age_in_days(created_at: datetime, now: datetime) -> int:
    """Whole days elapsed since ``created_at``; never negative."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed = (now - created_at).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def refresh_derived(
    task: Task,
    now: datetime,
    scoring: Optional[ScoringConfig] = None,
) -> Task:
    """Return a copy of ``task`` with age and avoidance recomputed.

    Args:
        task: Task to refresh
        now: Reference time
        scoring: Thresholds (defaults apply when omitted)

    Returns:
        New Task; the input is not modified
    """
    scoring = scoring or ScoringConfig()
    age = compute_age_in_days(task.created_at, now)
    is_avoidance = (
        not task.resolved
        and task.effort == Effort.LARGE
        and age > scoring.avoidance_age_days
    )
    return task.model_copy(update={"age_in_days": age, "is_avoidance": is_avoidance})


def merge_task(live: Task, stored: Task) -> Task:
    """Overlay the stored task's user-owned fields onto the live task.

    Optional annotations (effort, estimate, resolution stamps) keep the
    stored value unless it is unset. A live task without a source timestamp
    keeps the stored ``created_at``. Assignment, priority, status, ignored
    and the working flag are carried over unconditionally.
    """
    update = {
        "effort": stored.effort if stored.effort is not None else live.effort,
        "time_estimate_minutes": (
            stored.time_estimate_minutes
            if stored.time_estimate_minutes is not None
            else live.time_estimate_minutes
        ),
        "assignee": stored.assignee,
        "priority": stored.priority,
        "internal_status": stored.internal_status,
        "ignored": stored.ignored,
        "is_currently_working": stored.is_currently_working,
        "last_updated_at": stored.last_updated_at,
    }
    if live.created_at_estimated:
        # No source timestamp: the first sighting stands as creation time
        update["created_at"] = stored.created_at
    if live.resolved:
        update["resolved_at"] = stored.resolved_at or live.resolved_at
        update["resolved_by"] = stored.resolved_by or live.resolved_by
    else:
        update["resolved_at"] = None
        update["resolved_by"] = None
    return live.model_copy(update=update)


def _stamp_resolution(task: Task, now: datetime) -> Task:
    """Record who and when for resolved tasks that lack it."""
    if not task.resolved:
        return task
    update = {}
    if task.resolved_at is None:
        update["resolved_at"] = now
    if task.resolved_by is None and task.assignee:
        update["resolved_by"] = task.assignee
    return task.model_copy(update=update) if update else task


def reconcile(
    live_tasks: Iterable[Task],
    stored_map: Mapping[str, Task],
    now: Optional[datetime] = None,
    scoring: Optional[ScoringConfig] = None,
) -> Dict[str, Task]:
    """Merge freshly parsed tasks with the stored set.

    Only live tasks make it into the result: stored tasks that the source no
    longer returns are dropped.

    Args:
        live_tasks: Tasks parsed from the current fetch
        stored_map: Previously stored tasks by comment id
        now: Reference time for derived fields (defaults to current UTC time)
        scoring: Thresholds for derived fields

    Returns:
        Reconciled tasks by comment id, in live order
    """
    now = now or datetime.now(timezone.utc)
    merged: Dict[str, Task] = {}
    discarded = 0
    carried = 0

    for live in live_tasks:
        comment_id = getattr(live, "comment_id", None)
        if not comment_id:
            discarded += 1
            continue
        if comment_id in merged:
            logger.debug("duplicate_live_task", comment_id=comment_id)
            continue

        stored = stored_map.get(comment_id)
        if stored is not None:
            task = merge_task(live, stored)
            carried += 1
        else:
            task = live
        merged[comment_id] = refresh_derived(_stamp_resolution(task, now), now, scoring)

    dropped = [cid for cid in stored_map if cid not in merged]
    logger.info(
        "tasks_reconciled",
        live=len(merged),
        carried=carried,
        new=len(merged) - carried,
        dropped=len(dropped),
        discarded=discarded,
    )
    if dropped:
        logger.debug("stored_tasks_dropped", comment_ids=dropped)
    return merged


def refresh_all(
    tasks: Mapping[str, Task],
    now: Optional[datetime] = None,
    scoring: Optional[ScoringConfig] = None,
) -> Dict[str, Task]:
    """Recompute derived fields for every task without merging anything."""
    now = now or datetime.now(timezone.utc)
    return {cid: refresh_derived(task, now, scoring) for cid, task in tasks.items()}
