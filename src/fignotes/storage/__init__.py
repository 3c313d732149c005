"""Storage layer for task and settings persistence."""

from fignotes.storage.kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from fignotes.storage.settings_store import SettingsStore, StoredSettings
from fignotes.storage.task_store import STORAGE_KEY, TaskSnapshot, TaskStore

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "TaskStore",
    "TaskSnapshot",
    "STORAGE_KEY",
    "SettingsStore",
    "StoredSettings",
]
