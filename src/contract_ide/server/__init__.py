"""Supervision of the singleton debug/REST server."""
from __future__ import annotations

from contract_ide.server.supervisor import ServerSupervisor

__all__ = ["ServerSupervisor"]
