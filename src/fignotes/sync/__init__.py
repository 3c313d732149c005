"""Reconciliation, metrics and sync orchestration."""

from fignotes.sync.focus import select_focus
from fignotes.sync.metrics import (
    build_flow_metrics,
    classify_ship_readiness,
    compute_file_metrics,
    compute_health_score,
    compute_result,
    group_flows,
    sort_tasks,
)
from fignotes.sync.reconcile import compute_age_in_days, merge_task, reconcile, refresh_derived
from fignotes.sync.scheduler import SyncScheduler
from fignotes.sync.service import SyncService

__all__ = [
    "SyncService",
    "SyncScheduler",
    "reconcile",
    "merge_task",
    "refresh_derived",
    "compute_age_in_days",
    "compute_result",
    "compute_health_score",
    "compute_file_metrics",
    "classify_ship_readiness",
    "build_flow_metrics",
    "group_flows",
    "sort_tasks",
    "select_focus",
]
