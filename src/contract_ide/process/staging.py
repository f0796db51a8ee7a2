from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class TempFileStaging:
    """Creates uniquely named scratch files used to hand artifacts between tools.

    Each :meth:`create` call yields a fresh file whose name keeps the requested
    stem and suffix (``main.syms`` becomes e.g. ``main-k3j9x2.syms``), so
    concurrent jobs never overwrite each other's inputs.

    Args:
        root: Directory to stage into; defaults to the system temp dir.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root) if root is not None else Path(tempfile.gettempdir())
        self._paths: list[Path] = []

    def __repr__(self) -> str:
        return f"TempFileStaging(root={str(self._root)!r}, files={len(self._paths)})"

    @property
    def root(self) -> Path:
        return self._root

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def create(self, file_name: str, content: str) -> Path:
        """Write *content* to a new uniquely named file and return its path."""
        stem, suffix = os.path.splitext(file_name)
        self._root.mkdir(parents=True, exist_ok=True)
        fd, raw_path = tempfile.mkstemp(prefix=f"{stem}-", suffix=suffix, dir=self._root)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        path = Path(raw_path)
        self._paths.append(path)
        logger.debug("staged_file", path=str(path), size=len(content))
        return path

    def cleanup(self) -> None:
        """Delete every file created by this instance."""
        for path in self._paths:
            path.unlink(missing_ok=True)
        self._paths.clear()

    def __enter__(self) -> TempFileStaging:
        return self

    def __exit__(self, *_: Any) -> None:
        self.cleanup()
