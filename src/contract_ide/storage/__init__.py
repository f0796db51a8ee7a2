"""Persisted host state."""
from __future__ import annotations

from contract_ide.storage.store import InMemoryStore, JsonFileStore, KeyValueStore

__all__ = ["InMemoryStore", "JsonFileStore", "KeyValueStore"]
