"""Figma REST API client for comments, identity and the canvas tree."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog

from fignotes.exceptions import TransientFetchFailure
from fignotes.parsing.canvas import StaticCanvas

logger = structlog.get_logger(__name__)

FILE_KEY_PATTERN = re.compile(r"figma\.com/(?:file|design|proto|board)/([A-Za-z0-9]+)")


def parse_file_key(file_url: Optional[str]) -> Optional[str]:
    """Extract the file key from a Figma file URL.

    Args:
        file_url: URL such as https://www.figma.com/design/AbC123/Name

    Returns:
        The key, or None if the URL is not a Figma file URL
    """
    if not file_url:
        return None
    match = FILE_KEY_PATTERN.search(file_url)
    return match.group(1) if match else None


@dataclass
class RemoteSnapshot:
    """Everything fetched for one sync.

    ``comments`` is None when the comment fetch failed.
    """

    comments: Optional[List[Dict[str, Any]]]
    current_user: Optional[str] = None
    canvas: Optional[StaticCanvas] = None
    errors: List[str] = field(default_factory=list)


class FigmaClient:
    """Async REST client. The access token is sent as-is."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.figma.com",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Personal access token
            base_url: API root
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"X-Figma-Token": self._token, "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("figma_request_failed", path=path, error=str(e))
            raise TransientFetchFailure(f"Request to {path} failed: {e}") from e

        if response.status_code >= 400:
            logger.warning("figma_request_rejected", path=path, status=response.status_code)
            raise TransientFetchFailure(
                f"Request to {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransientFetchFailure(f"Malformed JSON from {path}") from e

    async def fetch_comments(self, file_key: str) -> List[Dict[str, Any]]:
        """Fetch the raw comment records of a file.

        Raises:
            TransientFetchFailure: Transport error, HTTP error or malformed body
        """
        data = await self._get_json(f"/v1/files/{file_key}/comments")
        comments = data.get("comments") if isinstance(data, dict) else None
        if not isinstance(comments, list):
            raise TransientFetchFailure("Comment response has no comments list")
        logger.info("comments_fetched", file_key=file_key, count=len(comments))
        return comments

    async def fetch_current_user(self) -> Optional[str]:
        """Handle of the token owner."""
        data = await self._get_json("/v1/me")
        if isinstance(data, dict) and isinstance(data.get("handle"), str):
            return data["handle"]
        return None

    async def fetch_canvas(self, file_key: str) -> StaticCanvas:
        """Fetch the file document and index it for ancestry lookups."""
        data = await self._get_json(f"/v1/files/{file_key}")
        if not isinstance(data, dict):
            raise TransientFetchFailure("File response is not an object")
        return StaticCanvas.from_document(data)

    async def fetch_snapshot(self, file_key: str, with_canvas: bool = True) -> RemoteSnapshot:
        """Fetch comments, user and canvas, degrading on each failure.

        A failed comment fetch yields ``comments=None``; failed user or canvas
        lookups just leave those unset.
        """
        snapshot = RemoteSnapshot(comments=None)
        try:
            snapshot.comments = await self.fetch_comments(file_key)
        except TransientFetchFailure as e:
            snapshot.errors.append(str(e))

        try:
            snapshot.current_user = await self.fetch_current_user()
        except TransientFetchFailure as e:
            snapshot.errors.append(str(e))

        if with_canvas:
            try:
                snapshot.canvas = await self.fetch_canvas(file_key)
            except TransientFetchFailure as e:
                snapshot.errors.append(str(e))
        return snapshot
