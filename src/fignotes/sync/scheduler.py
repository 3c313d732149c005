"""Debounced sync triggering."""

import asyncio
from typing import Any, Callable, Optional, Sequence

import structlog

from fignotes.exceptions import FigNotesError
from fignotes.models.result import SyncResult
from fignotes.sync.service import SyncService

logger = structlog.get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.2


class SyncScheduler:
    """Collapses bursts of sync requests into one sync.

    A request waits ``delay`` seconds; a newer request arriving in that
    window supersedes it. Requests that come due while a sync is running are
    dropped rather than queued.
    """

    def __init__(
        self,
        service: SyncService,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
        on_result: Optional[Callable[[SyncResult], None]] = None,
        on_error: Optional[Callable[[FigNotesError], None]] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            service: Service that performs the sync
            delay: Debounce window in seconds
            on_result: Called with each completed sync result
            on_error: Called with sync errors; errors propagate when omitted
        """
        self.service = service
        self.delay = delay
        self.on_result = on_result
        self.on_error = on_error
        self._generation = 0
        self._waiting = 0
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def pending(self) -> bool:
        """True while a request is inside its debounce window."""
        return self._waiting > 0

    def request(
        self,
        raw_comments: Optional[Sequence[Any]],
        current_user: Optional[str] = None,
    ) -> asyncio.Task:
        """Schedule a sync, superseding any request still waiting.

        Must be called from a running event loop.

        Returns:
            Task resolving to the SyncResult, or None if superseded or dropped
        """
        self._generation += 1
        return asyncio.create_task(self._run_after_delay(self._generation, raw_comments, current_user))

    async def _run_after_delay(
        self,
        generation: int,
        raw_comments: Optional[Sequence[Any]],
        current_user: Optional[str],
    ) -> Optional[SyncResult]:
        self._waiting += 1
        try:
            await asyncio.sleep(self.delay)
        finally:
            self._waiting -= 1

        if generation != self._generation:
            logger.debug("sync_request_collapsed", generation=generation)
            return None
        if self._in_progress:
            logger.info("sync_request_dropped", reason="sync_in_progress")
            return None

        self._in_progress = True
        try:
            result = await self.service.sync(raw_comments, current_user)
        except FigNotesError as e:
            logger.error("scheduled_sync_failed", error=str(e))
            if self.on_error is None:
                raise
            self.on_error(e)
            return None
        finally:
            self._in_progress = False

        if self.on_result is not None:
            self.on_result(result)
        return result
