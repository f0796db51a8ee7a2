"""Typed message transport between the host and its UI surface."""
from __future__ import annotations

from contract_ide.messaging.channel import MessageChannel, UISurface
from contract_ide.messaging.messages import (
    InboundMessage,
    OutboundMessage,
    parse_inbound,
    parse_outbound,
    serialize,
)
from contract_ide.messaging.mock import MockSurface

__all__ = [
    "InboundMessage",
    "MessageChannel",
    "MockSurface",
    "OutboundMessage",
    "UISurface",
    "parse_inbound",
    "parse_outbound",
    "serialize",
]
