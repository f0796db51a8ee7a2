"""The "ask anything" assistant and its streamed answers."""
from __future__ import annotations

from contract_ide.assistant.controller import (
    AnswerGenerator,
    AssistantController,
    EchoGenerator,
)
from contract_ide.assistant.facade import AssistantFacade
from contract_ide.assistant.stream import AnswerStream

__all__ = [
    "AnswerGenerator",
    "AnswerStream",
    "AssistantController",
    "AssistantFacade",
    "EchoGenerator",
]
