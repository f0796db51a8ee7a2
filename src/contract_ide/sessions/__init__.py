"""Coding sessions and the persisted selection."""
from __future__ import annotations

from contract_ide.sessions.controller import SessionController, SessionRepository

__all__ = ["SessionController", "SessionRepository"]
