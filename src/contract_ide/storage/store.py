"""Key/value persistence for small pieces of host state.

Provides :class:`KeyValueStore` (abstract base), :class:`InMemoryStore` and
:class:`JsonFileStore`. Values must be JSON-compatible.
"""

from __future__ import annotations

import copy
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStore(ABC):
    """Abstract base for the persisted-state store.

    Reads are synchronous (state is loaded up front); writes are awaited so
    backends may persist asynchronously. Writing ``None`` deletes the key.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the value stored under *key*, or *default*."""

    @abstractmethod
    async def update(self, key: str, value: Any) -> None:
        """Store *value* under *key*; ``None`` removes the key."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return all stored keys."""


class InMemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def __repr__(self) -> str:
        return f"InMemoryStore(keys={len(self._data)})"

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def update(self, key: str, value: Any) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(InMemoryStore):
    """Store persisted as a single JSON object on disk.

    The file is read once on construction and rewritten atomically (temp file
    plus rename) on every update.

    Args:
        path: Location of the JSON file; parent directories are created.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        initial: dict[str, Any] = {}
        if self._path.exists():
            try:
                loaded = json.loads(self._path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                logger.warning("state_file_unreadable", path=str(self._path), error=str(exc))
            else:
                if isinstance(loaded, dict):
                    initial = loaded
        super().__init__(initial)

    def __repr__(self) -> str:
        return f"JsonFileStore(path={str(self._path)!r}, keys={len(self._data)})"

    async def update(self, key: str, value: Any) -> None:
        await super().update(key, value)
        self._flush()

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)
