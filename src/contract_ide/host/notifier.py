"""User-facing notifications for host commands."""
from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger(__name__)


class Notifier(ABC):
    """Where command outcomes are reported to the user (editor toast, status bar...)."""

    @abstractmethod
    async def info(self, message: str) -> None:
        """Report a successful outcome."""
        ...

    @abstractmethod
    async def error(self, message: str) -> None:
        """Report a failed command; *message* is shown as-is."""
        ...


class LoggingNotifier(Notifier):
    """Logs notifications via structlog. Used when no editor is attached."""

    async def info(self, message: str) -> None:
        logger.info("user_notified", message=message)

    async def error(self, message: str) -> None:
        logger.error("user_notified_error", message=message)
