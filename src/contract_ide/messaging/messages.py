"""Host ⇄ UI message kinds.

Wire format: ``{"type": str, "value"?: object}`` with camelCase payload keys.
Each direction is a closed, discriminated union on ``type``; the set of kinds
is additive-only (see :mod:`contract_ide.core.constants`). Unknown inbound
kinds parse to ``None`` and are ignored, so older hosts tolerate newer UIs.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from contract_ide.core.constants import InboundType, ListSource, OutboundType
from contract_ide.core.exceptions import ProtocolError
from contract_ide.core.types import Answer, ListItem, TermsAcceptance

# Command names used by UI bundles that predate the ``type`` field.
_LEGACY_COMMANDS: dict[str, InboundType] = {
    "startDebugServer": InboundType.START_SERVER,
    "stopDebugServer": InboundType.STOP_SERVER,
    "refreshSmartContracts": InboundType.REFRESH_LIST,
}


class _Message(BaseModel):
    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --------------------------------------------------------------------------- #
# Payloads
# --------------------------------------------------------------------------- #


class TextValue(BaseModel):
    text: str


class RefreshListValue(BaseModel):
    items: list[ListItem]
    source: ListSource | None = None


class StreamValue(BaseModel):
    stream_id: str = Field(alias="streamId")

    model_config = {"populate_by_name": True}


class AnswerChunkValue(StreamValue):
    text: str


class ErrorValue(BaseModel):
    message: str
    source: str | None = None
    """Inbound message kind whose handler failed, when known."""


class ShowAnswerValue(BaseModel):
    answer: Answer


class QuestionValue(BaseModel):
    question: str


class ItemValue(BaseModel):
    item_id: str = Field(alias="itemId")

    model_config = {"populate_by_name": True}


# --------------------------------------------------------------------------- #
# Outbound (host → UI)
# --------------------------------------------------------------------------- #


class RefreshList(_Message):
    type: Literal["refreshList"] = "refreshList"
    value: RefreshListValue


class AnswerChunk(_Message):
    type: Literal["answerChunk"] = "answerChunk"
    value: AnswerChunkValue


class AnswerFinished(_Message):
    type: Literal["answerFinished"] = "answerFinished"
    value: StreamValue


class DebuggerOutput(_Message):
    type: Literal["debugger:output"] = "debugger:output"
    value: TextValue


class DebuggerError(_Message):
    type: Literal["debugger:error"] = "debugger:error"
    value: TextValue


class ErrorMessage(_Message):
    type: Literal["error"] = "error"
    value: ErrorValue


class Notice(_Message):
    type: Literal["notice"] = "notice"
    value: TextValue


class ShowAnswer(_Message):
    type: Literal["showAnswer"] = "showAnswer"
    value: ShowAnswerValue


OutboundMessage = Annotated[
    Union[
        RefreshList,
        AnswerChunk,
        AnswerFinished,
        DebuggerOutput,
        DebuggerError,
        ErrorMessage,
        Notice,
        ShowAnswer,
    ],
    Field(discriminator="type"),
]


def refresh_list(items: list[ListItem], source: ListSource | None = None) -> RefreshList:
    return RefreshList(value=RefreshListValue(items=items, source=source))


def answer_chunk(stream_id: str, text: str) -> AnswerChunk:
    return AnswerChunk(value=AnswerChunkValue(stream_id=stream_id, text=text))


def answer_finished(stream_id: str) -> AnswerFinished:
    return AnswerFinished(value=StreamValue(stream_id=stream_id))


def debugger_output(text: str) -> DebuggerOutput:
    return DebuggerOutput(value=TextValue(text=text))


def debugger_error(text: str) -> DebuggerError:
    return DebuggerError(value=TextValue(text=text))


def error_message(message: str, source: str | None = None) -> ErrorMessage:
    return ErrorMessage(value=ErrorValue(message=message, source=source))


def notice(text: str) -> Notice:
    return Notice(value=TextValue(text=text))


def show_answer(answer: Answer) -> ShowAnswer:
    return ShowAnswer(value=ShowAnswerValue(answer=answer))


# --------------------------------------------------------------------------- #
# Inbound (UI → host)
# --------------------------------------------------------------------------- #


class StartServerRequested(_Message):
    type: Literal["startServer"] = "startServer"


class StopServerRequested(_Message):
    type: Literal["stopServer"] = "stopServer"


class RefreshListRequested(_Message):
    type: Literal["refreshList"] = "refreshList"


class AskQuestionRequested(_Message):
    type: Literal["askQuestion"] = "askQuestion"
    value: QuestionValue


class DisplayAnswerRequested(_Message):
    type: Literal["displayAnswer"] = "displayAnswer"
    value: ItemValue


class SelectItemRequested(_Message):
    type: Literal["selectItem"] = "selectItem"
    value: ItemValue


class AcceptTermsRequested(_Message):
    type: Literal["acceptTerms"] = "acceptTerms"
    value: TermsAcceptance


InboundMessage = Annotated[
    Union[
        StartServerRequested,
        StopServerRequested,
        RefreshListRequested,
        AskQuestionRequested,
        DisplayAnswerRequested,
        SelectItemRequested,
        AcceptTermsRequested,
    ],
    Field(discriminator="type"),
]

_INBOUND: TypeAdapter[Any] = TypeAdapter(InboundMessage)
_OUTBOUND: TypeAdapter[Any] = TypeAdapter(OutboundMessage)
_KNOWN_INBOUND = frozenset(kind.value for kind in InboundType)
_KNOWN_OUTBOUND = frozenset(kind.value for kind in OutboundType)


def parse_inbound(raw: Any) -> InboundMessage | None:
    """Parse a message received from the UI.

    Returns:
        The typed message, or ``None`` when its kind is unknown to this host.

    Raises:
        ProtocolError: If *raw* is not an object, has no kind, or a known kind
            carries a malformed payload.
    """
    if not isinstance(raw, Mapping):
        raise ProtocolError(
            f"Inbound message must be an object, got {type(raw).__name__}",
            code="ERR_PROTOCOL",
        )
    data = dict(raw)
    kind = data.get("type")
    if kind is None and isinstance(data.get("command"), str):
        legacy = _LEGACY_COMMANDS.get(data["command"])
        kind = legacy.value if legacy is not None else data["command"]
        data["type"] = kind
    if not isinstance(kind, str):
        raise ProtocolError("Inbound message has no 'type'", code="ERR_PROTOCOL")
    if kind not in _KNOWN_INBOUND:
        return None
    try:
        message: InboundMessage = _INBOUND.validate_python(data)
    except ValidationError as exc:
        raise ProtocolError(
            f"Malformed {kind!r} message",
            code="ERR_PROTOCOL",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
    return message


def parse_outbound(raw: Mapping[str, Any]) -> OutboundMessage | None:
    """Parse a host push the way a UI bundle would; unknown kinds give ``None``."""
    if raw.get("type") not in _KNOWN_OUTBOUND:
        return None
    try:
        message: OutboundMessage = _OUTBOUND.validate_python(dict(raw))
    except ValidationError as exc:
        raise ProtocolError(
            f"Malformed {raw.get('type')!r} message", code="ERR_PROTOCOL"
        ) from exc
    return message


def serialize(message: OutboundMessage) -> dict[str, Any]:
    """Return the wire form of an outbound message."""
    return message.to_wire()
