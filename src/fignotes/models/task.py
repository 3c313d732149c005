"""Canonical task model for design-review work."""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, Field, field_validator

GLOBAL_PAGE_LABEL = "Global / Unassigned"
CANVAS_FRAME_LABEL = "Canvas"

DEFAULT_ESTIMATE_MINUTES = 30


class Priority(str, Enum):
    """Task priority as set by the reviewer."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        """Sort rank, most urgent first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class InternalStatus(str, Enum):
    """Workflow stage of a task. Declaration order is the stage order."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    NEEDS_REVIEW = "NeedsReview"
    BLOCKED = "Blocked"
    APPROVED = "Approved"
    DONE = "Done"

    @property
    def ordinal(self) -> int:
        return list(InternalStatus).index(self)


class Effort(IntEnum):
    """T-shirt size of the work behind a comment."""

    SMALL = 1
    MEDIUM = 2
    LARGE = 3


EFFORT_MINUTES: Dict[Effort, int] = {
    Effort.SMALL: 15,
    Effort.MEDIUM: 60,
    Effort.LARGE: 240,
}

_EFFORT_NAMES = {"small": Effort.SMALL, "medium": Effort.MEDIUM, "large": Effort.LARGE, "high": Effort.LARGE}


class Task(BaseModel):
    """One design-review comment tracked as a unit of work.

    Fields are split by ownership: the comment source owns the location,
    message, author, timestamps and resolution; the user owns the workflow
    annotations. ``age_in_days`` and ``is_avoidance`` are derived and get
    recomputed on every reconciliation.
    """

    comment_id: str = Field(..., min_length=1, description="Comment thread identifier (primary key)")
    node_id: Optional[str] = Field(None, description="Canvas node the comment is pinned to")
    frame_id: Optional[str] = Field(None, description="Nearest enclosing frame")
    page_id: Optional[str] = Field(None, description="Enclosing page")
    author: str = Field("Unknown", description="Handle of the comment author")
    created_at: datetime = Field(..., description="When the comment was posted")
    created_at_estimated: bool = Field(False, description="Source gave no timestamp; created_at is first sight")
    resolved: bool = Field(False, description="Resolution state reported by the comment source")
    message: str = Field("", description="Comment body")
    page: str = Field(GLOBAL_PAGE_LABEL, description="Page display name")
    frame: str = Field(CANVAS_FRAME_LABEL, description="Frame display name")

    # User-owned annotations
    effort: Optional[Effort] = Field(None, description="Effort size (1-3)")
    time_estimate_minutes: Optional[int] = Field(None, ge=0, description="Explicit time estimate")
    assignee: Optional[str] = Field(None, description="Handle of the person doing the work")
    priority: Priority = Field(Priority.MEDIUM, description="Reviewer priority")
    internal_status: InternalStatus = Field(InternalStatus.PENDING, description="Workflow stage")
    ignored: bool = Field(False, description="Excluded from metrics and focus")
    is_currently_working: bool = Field(False, description="The single task being worked on")
    resolved_at: Optional[datetime] = Field(None, description="When the comment was resolved")
    resolved_by: Optional[str] = Field(None, description="Who resolved the comment")
    last_updated_at: Optional[datetime] = Field(None, description="Last local edit")

    # Derived
    age_in_days: int = Field(0, ge=0, description="Whole days since creation")
    is_avoidance: bool = Field(False, description="Large, unresolved and aging")

    @field_validator("created_at", "resolved_at", "last_updated_at")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("effort", mode="before")
    @classmethod
    def _coerce_effort(cls, value: Any) -> Any:
        if isinstance(value, str):
            named = _EFFORT_NAMES.get(value.strip().lower())
            if named is not None:
                return named
            if value.strip().isdigit():
                return int(value.strip())
        if value == 0:
            return None
        return value

    @property
    def estimate_minutes(self) -> int:
        """Effective time estimate in minutes."""
        if self.time_estimate_minutes is not None:
            return self.time_estimate_minutes
        if self.effort is not None:
            return EFFORT_MINUTES[self.effort]
        return DEFAULT_ESTIMATE_MINUTES

    @property
    def flow_key(self) -> tuple:
        """Two-level grouping key: page then frame."""
        return (self.page_id or "global", self.frame_id or "canvas")

    @property
    def is_open(self) -> bool:
        """Unresolved and not finished internally."""
        return not self.resolved and self.internal_status != InternalStatus.DONE


# Fields the user may change through mutations. Everything else is owned by
# the comment source or derived.
USER_OWNED_FIELDS: FrozenSet[str] = frozenset(
    {
        "effort",
        "time_estimate_minutes",
        "assignee",
        "priority",
        "internal_status",
        "ignored",
    }
)
