"""Remote comment source (Figma REST API)."""

from fignotes.remote.figma_client import FigmaClient, RemoteSnapshot, parse_file_key

__all__ = ["FigmaClient", "RemoteSnapshot", "parse_file_key"]
