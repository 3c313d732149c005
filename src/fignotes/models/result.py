"""Aggregate metrics and sync result models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from fignotes.models.task import Task


class ShipReadiness(str, Enum):
    """File-wide release risk classification."""

    READY = "Ready"
    NEEDS_CLEANUP = "Needs Cleanup"
    HIGH_RISK = "High Risk"


class FetchStatus(str, Enum):
    """Where the tasks in a result came from."""

    LIVE = "live"
    STORED = "stored"
    FETCH_FAILED = "fetch_failed"


class FlowMetrics(BaseModel):
    """Aggregates for one page/frame grouping."""

    flow_id: str = Field(..., description="Grouping key: '{page_key}/{frame_key}'")
    flow_name: str = Field(..., description="'{page} / {frame}'")
    page_id: Optional[str] = Field(None, description="Page id, None for the global group")
    frame_id: Optional[str] = Field(None, description="Frame id, None for the canvas group")
    total_tasks: int = Field(0, description="Tasks in the flow")
    resolved_tasks: int = Field(0, description="Resolved tasks")
    unresolved_tasks: int = Field(0, description="Unresolved tasks")
    critical_tasks: int = Field(0, description="Unresolved tasks with Critical priority")
    total_time_estimate: int = Field(0, description="Summed estimate of all tasks, minutes")
    health_score: int = Field(100, ge=0, le=100, description="Penalty-adjusted completion")
    intensity: float = Field(0.0, ge=0.0, le=1.0, description="Unresolved ratio")


class FileMetrics(BaseModel):
    """File-wide aggregates."""

    total_tasks: int = 0
    total_unresolved: int = 0
    critical_unresolved: int = 0
    unresolved_time_estimate: int = 0
    completion_percentage: int = 100
    oldest_unresolved_age: int = 0
    avoidance_count: int = 0
    ship_readiness: ShipReadiness = ShipReadiness.READY
    current_user: Optional[str] = None


class UserResolution(BaseModel):
    """Resolved-task count for one user."""

    user: str
    resolved_count: int


class SyncResult(BaseModel):
    """Everything the presentation layer needs after a sync or state read."""

    tasks: List[Task] = Field(default_factory=list, description="Stably sorted tasks")
    metrics: List[FlowMetrics] = Field(default_factory=list, description="Per-flow metrics")
    file_metrics: FileMetrics = Field(default_factory=FileMetrics)
    weekly_summary: str = Field("", description="Human-readable summary sentence")
    user_breakdown: List[UserResolution] = Field(default_factory=list)
    fetch_status: FetchStatus = Field(FetchStatus.STORED)
    warnings: List[str] = Field(default_factory=list, description="Non-fatal issues")
