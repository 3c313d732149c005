"""Selection of the single most actionable task."""

from typing import Iterable, Optional

from fignotes.models.task import Priority, Task


def _is_assigned_to(task: Task, user: Optional[str]) -> bool:
    if not user or not task.assignee:
        return False
    return task.assignee.lstrip("@").lower() == user.lstrip("@").lower()


def select_focus(tasks: Iterable[Task], current_user_id: Optional[str] = None) -> Optional[Task]:
    """Pick the task the user should work on next.

    Candidates are open tasks (unresolved, not Done, not ignored). Ranking:
    assigned to the current user, then Critical, then oldest, then the
    largest estimate. Pure: same snapshot, same answer.

    Args:
        tasks: Task snapshot
        current_user_id: Handle of the local user, if known

    Returns:
        The chosen task, or None when nothing is actionable
    """
    candidates = [t for t in tasks if t.is_open and not t.ignored]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda t: (
            not _is_assigned_to(t, current_user_id),
            t.priority != Priority.CRITICAL,
            t.created_at.timestamp(),
            -t.estimate_minutes,
            t.comment_id,
        ),
    )
