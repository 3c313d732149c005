"""Data models for design-review tasks and metrics."""

from fignotes.models.comment import ClientMeta, CommentUser, RawComment
from fignotes.models.config import FigNotesSettings, ScoringConfig
from fignotes.models.result import (
    FetchStatus,
    FileMetrics,
    FlowMetrics,
    ShipReadiness,
    SyncResult,
    UserResolution,
)
from fignotes.models.task import (
    USER_OWNED_FIELDS,
    Effort,
    InternalStatus,
    Priority,
    Task,
)

__all__ = [
    "Task",
    "Priority",
    "InternalStatus",
    "Effort",
    "USER_OWNED_FIELDS",
    "RawComment",
    "CommentUser",
    "ClientMeta",
    "FlowMetrics",
    "FileMetrics",
    "ShipReadiness",
    "FetchStatus",
    "SyncResult",
    "UserResolution",
    "FigNotesSettings",
    "ScoringConfig",
]
