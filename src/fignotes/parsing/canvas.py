"""Canvas node lookup used to place comments on pages and frames."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)

# Bound for ancestor walks; real documents are far shallower.
MAX_ANCESTOR_DEPTH = 256

PAGE_TYPES = frozenset({"PAGE", "CANVAS"})
FRAME_TYPES = frozenset({"FRAME"})


def normalize_node_id(node_id: Optional[str]) -> Optional[str]:
    """Normalize URL-style node ids (``12-34``) to API style (``12:34``).

    Args:
        node_id: Raw node id, possibly None or blank

    Returns:
        Normalized id or None
    """
    if node_id is None:
        return None
    node_id = str(node_id).strip()
    if not node_id:
        return None
    return node_id.replace("-", ":")


@dataclass
class CanvasNode:
    """A node in the design document tree."""

    id: str
    type: str
    name: str = ""
    parent: Optional["CanvasNode"] = field(default=None, repr=False)

    @property
    def is_page(self) -> bool:
        return self.type in PAGE_TYPES

    @property
    def is_frame(self) -> bool:
        return self.type in FRAME_TYPES


class CanvasResolver(Protocol):
    """Looks up canvas nodes by id. May return None or raise for unknown ids."""

    def resolve(self, node_id: str) -> Optional[CanvasNode]:
        ...


class StaticCanvas:
    """In-memory canvas built from a Figma REST file document.

    Indexes every node by id with parent links so ancestor walks are
    dictionary lookups.
    """

    def __init__(self, nodes: Optional[Iterable[CanvasNode]] = None) -> None:
        self._nodes: Dict[str, CanvasNode] = {}
        for node in nodes or []:
            self._nodes[node.id] = node

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "StaticCanvas":
        """Build a canvas from a ``GET /v1/files/:key`` response or its document.

        Args:
            document: Either the full file response or its ``document`` node

        Returns:
            StaticCanvas indexing every node in the tree
        """
        root = document.get("document", document) if isinstance(document, dict) else {}
        canvas = cls()
        stack = [(root, None)]
        while stack:
            raw, parent = stack.pop()
            if not isinstance(raw, dict) or "id" not in raw:
                continue
            node = CanvasNode(
                id=str(raw["id"]),
                type=str(raw.get("type", "")).upper(),
                name=str(raw.get("name", "")),
                parent=parent,
            )
            canvas.add(node)
            for child in raw.get("children") or []:
                stack.append((child, node))
        logger.debug("canvas_indexed", nodes=len(canvas))
        return canvas

    def add(self, node: CanvasNode) -> None:
        self._nodes[node.id] = node

    def resolve(self, node_id: str) -> Optional[CanvasNode]:
        node = self._nodes.get(node_id)
        if node is None:
            node = self._nodes.get(node_id.replace(":", "-"))
        return node

    def __len__(self) -> int:
        return len(self._nodes)


def nearest_ancestor(node: Optional[CanvasNode], page_only: bool) -> Optional[CanvasNode]:
    """Walk up from ``node`` (inclusive) to the nearest page, or frame-or-page.

    Args:
        node: Starting node
        page_only: Stop only at pages when True, at frames or pages otherwise

    Returns:
        The matching ancestor or None when the chain ends first
    """
    depth = 0
    while node is not None and depth < MAX_ANCESTOR_DEPTH:
        if node.is_page or (not page_only and node.is_frame):
            return node
        node = node.parent
        depth += 1
    return None
