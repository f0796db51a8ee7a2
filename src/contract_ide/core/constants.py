from __future__ import annotations

from enum import StrEnum


class ServerStatus(StrEnum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"


class BuildStage(StrEnum):
    COMPILE = "compile"
    CODEGEN = "codegen"
    LINK = "link"


class ListSource(StrEnum):
    SESSIONS = "sessions"
    ANSWERS = "answers"


# Message kinds are additive-only: never rename or remove a member, older UI
# bundles and newer hosts (and vice versa) must keep understanding each other.


class InboundType(StrEnum):
    """Messages sent by the UI surface to the host."""

    START_SERVER = "startServer"
    STOP_SERVER = "stopServer"
    REFRESH_LIST = "refreshList"
    ASK_QUESTION = "askQuestion"
    DISPLAY_ANSWER = "displayAnswer"
    SELECT_ITEM = "selectItem"
    ACCEPT_TERMS = "acceptTerms"


class OutboundType(StrEnum):
    """Messages pushed by the host to the UI surface."""

    REFRESH_LIST = "refreshList"
    ANSWER_CHUNK = "answerChunk"
    ANSWER_FINISHED = "answerFinished"
    DEBUGGER_OUTPUT = "debugger:output"
    DEBUGGER_ERROR = "debugger:error"
    ERROR = "error"
    NOTICE = "notice"
    SHOW_ANSWER = "showAnswer"
