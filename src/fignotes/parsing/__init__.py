"""Comment parsing and canvas ancestry resolution."""

from fignotes.parsing.canvas import (
    CanvasNode,
    CanvasResolver,
    StaticCanvas,
    nearest_ancestor,
    normalize_node_id,
)
from fignotes.parsing.parser import CommentParser, derive_assignee, extract_mentions

__all__ = [
    "CanvasNode",
    "CanvasResolver",
    "StaticCanvas",
    "CommentParser",
    "derive_assignee",
    "extract_mentions",
    "nearest_ancestor",
    "normalize_node_id",
]
