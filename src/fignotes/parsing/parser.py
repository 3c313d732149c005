"""Normalizes raw comment records into canonical tasks."""

import re
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from fignotes.models.comment import RawComment
from fignotes.models.task import CANVAS_FRAME_LABEL, GLOBAL_PAGE_LABEL, Task
from fignotes.parsing.canvas import (
    CanvasNode,
    CanvasResolver,
    nearest_ancestor,
    normalize_node_id,
)

logger = structlog.get_logger(__name__)

MENTION_PATTERN = re.compile(r"(?<![\w.])@(\w[\w.\-]*)")


def extract_mentions(message: str) -> List[str]:
    """Return distinct ``@handle`` mentions in order of first appearance."""
    seen = set()
    mentions: List[str] = []
    for match in MENTION_PATTERN.finditer(message or ""):
        handle = match.group(1).rstrip(".-")
        if handle and handle.lower() not in seen:
            seen.add(handle.lower())
            mentions.append(handle)
    return mentions


def mentions_handle(message: str, handle: str) -> bool:
    """True if ``message`` contains ``@handle`` as a whole mention.

    Handles are display names and may contain spaces or non-ASCII letters,
    so this matches the literal text rather than a tokenized mention.
    """
    handle = handle.strip().lstrip("@")
    if not handle:
        return False
    pattern = r"(?<![\w.])@" + re.escape(handle) + r"(?!\w)"
    return re.search(pattern, message or "", re.IGNORECASE) is not None


def derive_assignee(message: str, current_user_handle: Optional[str] = None) -> Optional[str]:
    """Pick an assignee from mentions in a comment.

    A mention of the current user wins. Otherwise a comment mentioning
    exactly one person is assigned to them. Anything else stays unassigned.

    Args:
        message: Comment body
        current_user_handle: Handle of the local user, if known

    Returns:
        Assignee handle or None
    """
    if current_user_handle and mentions_handle(message, current_user_handle):
        return current_user_handle.strip().lstrip("@")
    mentions = extract_mentions(message)
    if len(mentions) == 1:
        return mentions[0]
    return None


class CommentParser:
    """Turns raw comment records into ``Task`` objects.

    Never raises for bad input: malformed records are skipped and location
    lookups that fail degrade to the global/canvas labels.
    """

    def __init__(
        self,
        canvas: Optional[CanvasResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the parser.

        Args:
            canvas: Node lookup for page/frame ancestry (optional)
            clock: Returns "now"; used for records without a timestamp
        """
        self.canvas = canvas
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def parse(
        self,
        raw_comments: Iterable[Any],
        current_user_handle: Optional[str] = None,
    ) -> List[Task]:
        """Parse raw comment records.

        Args:
            raw_comments: Records shaped like the REST ``comments`` array
            current_user_handle: Handle used for mention-based assignment

        Returns:
            Tasks for every valid top-level comment, in input order
        """
        tasks: List[Task] = []
        seen_ids = set()
        skipped = 0

        for raw in raw_comments or []:
            try:
                comment = RawComment.model_validate(raw)
            except ValidationError as e:
                skipped += 1
                logger.warning("comment_skipped", reason="invalid", errors=e.error_count())
                continue

            if comment.is_reply or comment.id in seen_ids:
                continue
            seen_ids.add(comment.id)

            try:
                tasks.append(self._to_task(comment, current_user_handle))
            except ValidationError as e:
                skipped += 1
                logger.warning("comment_skipped", comment_id=comment.id, errors=e.error_count())

        logger.info("comments_parsed", tasks=len(tasks), skipped=skipped)
        return tasks

    def _to_task(self, comment: RawComment, current_user_handle: Optional[str]) -> Task:
        node_id = normalize_node_id(comment.client_meta.node_id)
        frame, page = self._locate(node_id)

        return Task(
            comment_id=comment.id,
            node_id=node_id,
            frame_id=frame.id if frame else None,
            page_id=page.id if page else None,
            author=comment.user.handle or "Unknown",
            created_at=comment.created_at or self.clock(),
            created_at_estimated=comment.created_at is None,
            resolved=comment.resolved_at is not None,
            resolved_at=comment.resolved_at,
            message=comment.message,
            page=(page.name if page and page.name else GLOBAL_PAGE_LABEL),
            frame=(frame.name if frame and frame.name else CANVAS_FRAME_LABEL),
            assignee=derive_assignee(comment.message, current_user_handle),
        )

    def _locate(self, node_id: Optional[str]) -> Tuple[Optional[CanvasNode], Optional[CanvasNode]]:
        """Find the enclosing frame and page of a node.

        Returns:
            Tuple of (frame, page); either may be None
        """
        if not node_id or self.canvas is None:
            return None, None
        try:
            node = self.canvas.resolve(node_id)
        except Exception as e:
            logger.debug("node_lookup_failed", node_id=node_id, error=str(e))
            return None, None
        if node is None:
            return None, None

        frame_or_page = nearest_ancestor(node, page_only=False)
        frame = frame_or_page if frame_or_page is not None and frame_or_page.is_frame else None
        page = frame_or_page if frame_or_page is not None and frame_or_page.is_page else None
        if page is None:
            page = nearest_ancestor(frame_or_page.parent if frame_or_page else node, page_only=True)
        return frame, page
