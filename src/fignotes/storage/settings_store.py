"""Persisted plugin settings (access token and file URL)."""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from fignotes.exceptions import StorageReadFailure, StorageWriteFailed
from fignotes.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)

TOKEN_KEY = "figma_pat"
FILE_URL_KEY = "figma_file_url"


class StoredSettings(BaseModel):
    """Settings saved from the UI."""

    pat: Optional[str] = Field(None, description="Personal access token, passed through opaquely")
    file_url: Optional[str] = Field(None, description="Figma file URL")


class SettingsStore:
    """Reads and writes the saved settings keys."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def load(self) -> StoredSettings:
        """Load saved settings; unreadable values read as unset."""
        values = {}
        for field_name, key in (("pat", TOKEN_KEY), ("file_url", FILE_URL_KEY)):
            try:
                value = self.kv.get(key)
            except Exception as e:
                logger.warning("settings_read_failed", key=key, error=str(e))
                value = None
            values[field_name] = value if isinstance(value, str) else None
        return StoredSettings(**values)

    def save(self, settings: StoredSettings) -> None:
        """Save settings, restoring the previous file URL if the token write fails.

        Raises:
            StorageWriteFailed: If either write fails
        """
        try:
            previous_url = self.kv.get(FILE_URL_KEY)
        except StorageReadFailure:
            previous_url = None

        self.kv.set(FILE_URL_KEY, settings.file_url)
        try:
            self.kv.set(TOKEN_KEY, settings.pat)
        except StorageWriteFailed:
            try:
                self.kv.set(FILE_URL_KEY, previous_url)
            except StorageWriteFailed as e:
                logger.error("settings_rollback_failed", key=FILE_URL_KEY, error=str(e))
            raise
        logger.info("settings_saved", has_token=bool(settings.pat), has_file_url=bool(settings.file_url))
