"""Host controller and its user-facing command surface."""
from __future__ import annotations

from contract_ide.host.controller import HostController
from contract_ide.host.notifier import LoggingNotifier, Notifier

__all__ = [
    "HostController",
    "LoggingNotifier",
    "Notifier",
]
