from __future__ import annotations

import asyncio
import uuid
from typing import AsyncIterator, Callable, Protocol, Union

import structlog

from contract_ide.assistant.facade import AssistantFacade
from contract_ide.assistant.stream import AnswerStream
from contract_ide.core.config import AssistantSettings
from contract_ide.core.constants import InboundType, ListSource
from contract_ide.core.exceptions import StateError
from contract_ide.core.types import Answer, AnswerHeader, TermsAcceptance
from contract_ide.messaging.channel import MessageChannel
from contract_ide.messaging.messages import (
    answer_chunk,
    answer_finished,
    error_message,
    notice,
    refresh_list,
    show_answer,
)
from contract_ide.sessions.controller import SessionController

logger = structlog.get_logger(__name__)

DISABLED_NOTICE = (
    "The ask anything feature of the assistant is not enabled. "
    "Please follow the Welcome instructions in order to enable it."
)
NO_SESSION_NOTICE = (
    "In the Coding Sessions view, create a coding session (or choose an existing one) "
    "in order to interact with the assistant."
)


class AnswerGenerator(Protocol):
    """Produces an answer to a question as a sequence of text chunks."""

    def generate(self, question: str) -> AsyncIterator[str]: ...


class EchoGenerator:
    """Answers by repeating the question word by word.

    Useful offline and in tests; real deployments inject a generator backed
    by the assistant service.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self._delay = delay

    async def generate(self, question: str) -> AsyncIterator[str]:
        for word in question.split():
            if self._delay:
                await asyncio.sleep(self._delay)
            yield f"{word} "


class AssistantController:
    """Drives the "ask anything" view.

    :meth:`ask_question` returns a stream id right away; chunks are pushed as
    ``answerChunk`` while the generator runs in the background, followed by
    exactly one ``answerFinished`` and a refreshed history list. If the UI
    detaches mid-answer the remaining pushes are dropped by the channel but
    generation carries on and the answer still lands in history.
    """

    def __init__(
        self,
        channel: MessageChannel,
        generator: AnswerGenerator,
        facade: AssistantFacade,
        sessions: SessionController,
        settings: Union[AssistantSettings, Callable[[], AssistantSettings]],
    ) -> None:
        self._channel = channel
        self._generator = generator
        self._facade = facade
        self._sessions = sessions
        self._settings: Callable[[], AssistantSettings] = (
            (lambda: settings) if isinstance(settings, AssistantSettings) else settings
        )
        self._pending: dict[str, tuple[AnswerHeader, AnswerStream]] = {}
        self._history: dict[str, Answer] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"AssistantController(answers={len(self._history)}, pending={len(self._pending)})"

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def answer_headers(self) -> list[AnswerHeader]:
        """Finished answers of the selected coding session, oldest first."""
        session_id = self._sessions.selected_id
        return [
            answer.header
            for answer in self._history.values()
            if answer.header.session_id == session_id
        ]

    def get_answer(self, stream_id: str) -> Answer:
        """Return a finished answer, or the partial text of one still streaming."""
        if stream_id in self._history:
            return self._history[stream_id]
        if stream_id in self._pending:
            header, stream = self._pending[stream_id]
            return Answer(header=header, content=stream.text)
        raise StateError(f"Unknown answer {stream_id!r}.", code="ERR_UNKNOWN_ITEM")

    def stream(self, stream_id: str) -> AnswerStream | None:
        pending = self._pending.get(stream_id)
        return pending[1] if pending else None

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def ask_question(self, question: str) -> str:
        """Start answering *question* and return the new stream id.

        Raises:
            StateError: If the feature is disabled or no coding session is open.
            ValueError: If *question* is blank.
        """
        if not self._settings().ask_anything_enabled:
            raise StateError(DISABLED_NOTICE, code="ERR_DISABLED")
        if not self._sessions.is_any_open():
            raise StateError(NO_SESSION_NOTICE, code="ERR_NO_SESSION")
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty.")

        stream_id = uuid.uuid4().hex
        header = AnswerHeader(
            stream_id=stream_id, question=question, session_id=self._sessions.selected_id
        )
        stream = AnswerStream(stream_id, question)
        stream.on_chunk(lambda text: self._channel.send(answer_chunk(stream_id, text)))
        stream.on_finish(lambda: self._on_finished(stream_id))
        self._pending[stream_id] = (header, stream)

        task = asyncio.create_task(self._generate(header, stream), name=f"answer-{stream_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("question_asked", stream_id=stream_id, session_id=header.session_id)
        return stream_id

    async def display_answer(self, stream_id: str) -> None:
        self._channel.send(show_answer(self.get_answer(stream_id)))

    async def refresh(self) -> None:
        if not self._settings().ask_anything_enabled:
            self._channel.send(notice(DISABLED_NOTICE))
            return
        if not self._sessions.is_any_open():
            self._channel.send(notice(NO_SESSION_NOTICE))
            return
        items = [header.to_list_item() for header in self.answer_headers()]
        self._channel.send(refresh_list(items, source=ListSource.ANSWERS))

    async def accept_terms(self, terms: TermsAcceptance) -> None:
        await self._facade.accept_terms(terms)
        await self.refresh()

    def terms(self) -> TermsAcceptance:
        return self._facade.are_terms_accepted()

    async def wait_idle(self) -> None:
        """Wait until every answer in progress has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel answers that are still being generated."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _generate(self, header: AnswerHeader, stream: AnswerStream) -> None:
        failed = False
        try:
            async for chunk in self._generator.generate(stream.question):
                await stream.append(chunk)
        except asyncio.CancelledError:
            self._pending.pop(stream.stream_id, None)
            raise
        except Exception as exc:  # noqa: BLE001
            failed = True
            logger.exception("answer_generation_failed", stream_id=stream.stream_id)
            self._channel.send(
                error_message(
                    f"The assistant could not answer: {exc}",
                    source=InboundType.ASK_QUESTION.value,
                )
            )
        self._history[stream.stream_id] = Answer(header=header, content=stream.text, failed=failed)
        await stream.finish()

    async def _on_finished(self, stream_id: str) -> None:
        self._pending.pop(stream_id, None)
        self._channel.send(answer_finished(stream_id))
        await self.refresh()
