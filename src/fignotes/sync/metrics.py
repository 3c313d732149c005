"""Flow grouping, health scoring and file-wide readiness."""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from fignotes.models.config import ScoringConfig
from fignotes.models.result import (
    FetchStatus,
    FileMetrics,
    FlowMetrics,
    ShipReadiness,
    SyncResult,
    UserResolution,
)
from fignotes.models.task import Priority, Task

logger = structlog.get_logger(__name__)

FlowGroups = Dict[str, Dict[str, List[Task]]]


def task_sort_key(task: Task) -> tuple:
    """Unresolved first, then priority, stage, newest, comment id."""
    return (
        task.resolved,
        task.priority.rank,
        task.internal_status.ordinal,
        -task.created_at.timestamp(),
        task.comment_id,
    )


def sort_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Return tasks in display order. Deterministic for any input order."""
    return sorted(tasks, key=task_sort_key)


def group_flows(tasks: Iterable[Task]) -> FlowGroups:
    """Group tasks by page key, then frame key.

    Tasks without a page fall under ``"global"``, tasks without a frame under
    ``"canvas"``.
    """
    groups: FlowGroups = {}
    for task in tasks:
        page_key, frame_key = task.flow_key
        groups.setdefault(page_key, {}).setdefault(frame_key, []).append(task)
    return groups


def compute_health_score(tasks: Sequence[Task], scoring: Optional[ScoringConfig] = None) -> int:
    """Penalty-adjusted completion percentage for a group of tasks.

    Starts from the resolved ratio and subtracts a penalty for each open task
    that is Critical, stale, or has a long estimate. Clamped to [0, 100].
    """
    scoring = scoring or ScoringConfig()
    total = len(tasks)
    if total == 0:
        return 100

    resolved = sum(1 for t in tasks if t.resolved)
    score = 100.0 * resolved / total

    penalty = 0
    for task in tasks:
        if task.resolved:
            continue
        if task.priority == Priority.CRITICAL:
            penalty += scoring.critical_penalty
        if task.age_in_days > scoring.stale_age_days:
            penalty += scoring.stale_penalty
        if task.estimate_minutes > scoring.long_estimate_minutes:
            penalty += scoring.long_estimate_penalty

    score = min(100.0, max(0.0, score - penalty))
    return int(score + 0.5)


def compute_flow_metrics(
    page_key: str,
    frame_key: str,
    tasks: Sequence[Task],
    scoring: Optional[ScoringConfig] = None,
) -> FlowMetrics:
    """Aggregate one flow."""
    total = len(tasks)
    unresolved = [t for t in tasks if not t.resolved]
    first = tasks[0] if tasks else None
    page_name = first.page if first else page_key
    frame_name = first.frame if first else frame_key

    return FlowMetrics(
        flow_id=f"{page_key}/{frame_key}",
        flow_name=f"{page_name} / {frame_name}",
        page_id=None if page_key == "global" else page_key,
        frame_id=None if frame_key == "canvas" else frame_key,
        total_tasks=total,
        resolved_tasks=total - len(unresolved),
        unresolved_tasks=len(unresolved),
        critical_tasks=sum(1 for t in unresolved if t.priority == Priority.CRITICAL),
        total_time_estimate=sum(t.estimate_minutes for t in tasks),
        health_score=compute_health_score(tasks, scoring),
        intensity=(len(unresolved) / total) if total else 0.0,
    )


def build_flow_metrics(tasks: Iterable[Task], scoring: Optional[ScoringConfig] = None) -> List[FlowMetrics]:
    """Metrics for every flow, least healthy first."""
    flows = [
        compute_flow_metrics(page_key, frame_key, group, scoring)
        for page_key, frames in group_flows(tasks).items()
        for frame_key, group in frames.items()
    ]
    flows.sort(key=lambda f: (f.health_score, f.flow_name, f.flow_id))
    return flows


def classify_ship_readiness(tasks: Sequence[Task], scoring: Optional[ScoringConfig] = None) -> ShipReadiness:
    """High Risk, Needs Cleanup or Ready.

    High Risk when any open task is Critical, the oldest open task is older
    than the age threshold, or too many tasks are open.
    """
    scoring = scoring or ScoringConfig()
    unresolved = [t for t in tasks if not t.resolved]
    if not unresolved:
        return ShipReadiness.READY

    has_critical = any(t.priority == Priority.CRITICAL for t in unresolved)
    oldest = max(t.age_in_days for t in unresolved)
    if (
        has_critical
        or oldest > scoring.high_risk_age_days
        or len(unresolved) > scoring.high_risk_unresolved
    ):
        return ShipReadiness.HIGH_RISK
    return ShipReadiness.NEEDS_CLEANUP


def compute_file_metrics(
    tasks: Sequence[Task],
    current_user: Optional[str] = None,
    scoring: Optional[ScoringConfig] = None,
) -> FileMetrics:
    """File-wide aggregates over ``tasks``."""
    total = len(tasks)
    unresolved = [t for t in tasks if not t.resolved]
    resolved = total - len(unresolved)

    return FileMetrics(
        total_tasks=total,
        total_unresolved=len(unresolved),
        critical_unresolved=sum(1 for t in unresolved if t.priority == Priority.CRITICAL),
        unresolved_time_estimate=sum(t.estimate_minutes for t in unresolved),
        completion_percentage=int(100.0 * resolved / total + 0.5) if total else 100,
        oldest_unresolved_age=max((t.age_in_days for t in unresolved), default=0),
        avoidance_count=sum(1 for t in unresolved if t.is_avoidance),
        ship_readiness=classify_ship_readiness(tasks, scoring),
        current_user=current_user,
    )


def compute_user_breakdown(tasks: Iterable[Task]) -> List[UserResolution]:
    """Resolved-task counts per resolver, highest first."""
    counts = Counter(t.resolved_by for t in tasks if t.resolved and t.resolved_by)
    return [
        UserResolution(user=user, resolved_count=count)
        for user, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def build_weekly_summary(file_metrics: FileMetrics, flow_count: int) -> str:
    """One-sentence status report."""
    summary = (
        f"Ship readiness: {file_metrics.ship_readiness.value}. "
        f"{_plural(file_metrics.total_unresolved, 'unresolved task')} across "
        f"{_plural(flow_count, 'flow')} ({file_metrics.critical_unresolved} critical, "
        f"{file_metrics.completion_percentage}% complete)."
    )
    if file_metrics.avoidance_count:
        summary += f" {_plural(file_metrics.avoidance_count, 'large task')} aging without progress."
    return summary


def compute_result(
    tasks: Iterable[Task],
    current_user: Optional[str] = None,
    scoring: Optional[ScoringConfig] = None,
    fetch_status: FetchStatus = FetchStatus.STORED,
    warnings: Optional[List[str]] = None,
) -> SyncResult:
    """Build the full result for a reconciled task set.

    Ignored tasks are listed but left out of every aggregate.

    Args:
        tasks: Tasks with derived fields already refreshed
        current_user: Handle of the local user
        scoring: Thresholds
        fetch_status: Origin of the tasks
        warnings: Non-fatal issues to surface

    Returns:
        SyncResult with sorted tasks, flow metrics and file metrics
    """
    ordered = sort_tasks(tasks)
    active = [t for t in ordered if not t.ignored]

    flows = build_flow_metrics(active, scoring)
    file_metrics = compute_file_metrics(active, current_user, scoring)

    logger.debug(
        "metrics_computed",
        tasks=len(ordered),
        flows=len(flows),
        ship_readiness=file_metrics.ship_readiness.value,
    )
    return SyncResult(
        tasks=ordered,
        metrics=flows,
        file_metrics=file_metrics,
        weekly_summary=build_weekly_summary(file_metrics, len(flows)),
        user_breakdown=compute_user_breakdown(active),
        fetch_status=fetch_status,
        warnings=list(warnings or []),
    )
