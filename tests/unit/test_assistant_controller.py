"""Tests for assistant/controller.py and assistant/facade.py."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from contract_ide.assistant.controller import (
    DISABLED_NOTICE,
    NO_SESSION_NOTICE,
    AssistantController,
    EchoGenerator,
)
from contract_ide.assistant.facade import TERMS_KEY, AssistantFacade
from contract_ide.core.config import AssistantSettings
from contract_ide.core.exceptions import StateError
from contract_ide.core.types import TermsAcceptance
from contract_ide.messaging.channel import MessageChannel
from contract_ide.messaging.mock import MockSurface
from contract_ide.sessions.controller import SessionController, SessionRepository
from contract_ide.storage.store import InMemoryStore


class FailingGenerator:
    async def generate(self, question: str) -> AsyncIterator[str]:
        yield "partial "
        raise RuntimeError("model unavailable")


class GatedGenerator:
    """Yields one chunk, then waits for the gate before the second."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()

    async def generate(self, question: str) -> AsyncIterator[str]:
        yield "first "
        await self.gate.wait()
        yield "second"


@pytest.fixture
def sessions(channel: MessageChannel, store: InMemoryStore) -> SessionController:
    return SessionController(channel, SessionRepository(store), store)


def _controller(
    channel: MessageChannel,
    store: InMemoryStore,
    sessions: SessionController,
    generator: object | None = None,
    enabled: bool = True,
) -> AssistantController:
    return AssistantController(
        channel,
        generator or EchoGenerator(),
        AssistantFacade(store),
        sessions,
        AssistantSettings(ask_anything_enabled=enabled),
    )


async def _open_session(sessions: SessionController, name: str = "main") -> str:
    session = await sessions.create(name)
    assert session is not None
    return session.identifier


# ---------------------------------------------------------------------------
# ask_question
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ask_question_streams_chunks_then_one_finish(
    channel: MessageChannel, surface: MockSurface, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    controller = _controller(channel, store, sessions)
    await channel.drain()
    surface.reset()

    stream_id = await controller.ask_question("what is gas")
    await controller.wait_idle()
    await channel.drain()

    chunks = surface.of_type("answerChunk")
    assert [c["value"]["text"] for c in chunks] == ["what ", "is ", "gas "]
    assert all(c["value"]["streamId"] == stream_id for c in chunks)
    finished = surface.of_type("answerFinished")
    assert finished == [{"type": "answerFinished", "value": {"streamId": stream_id}}]

    # No chunk after the finish, and the history list follows it.
    types = surface.types
    finish_at = types.index("answerFinished")
    assert "answerChunk" not in types[finish_at:]
    assert types[finish_at + 1] == "refreshList"
    assert surface.rendered_ids("answers") == [stream_id]


@pytest.mark.asyncio
async def test_ask_question_returns_before_generation_completes(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    generator = GatedGenerator()
    controller = _controller(channel, store, sessions, generator)

    stream_id = await controller.ask_question("q")
    await asyncio.sleep(0.01)
    partial = controller.get_answer(stream_id)
    assert partial.content == "first "
    assert controller.answer_headers() == []

    generator.gate.set()
    await controller.wait_idle()
    assert controller.get_answer(stream_id).content == "first second"
    assert [h.stream_id for h in controller.answer_headers()] == [stream_id]


@pytest.mark.asyncio
async def test_generator_failure_pushes_error_and_still_finishes(
    channel: MessageChannel, surface: MockSurface, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    controller = _controller(channel, store, sessions, FailingGenerator())

    stream_id = await controller.ask_question("q")
    await controller.wait_idle()
    await channel.drain()

    [error] = surface.of_type("error")
    assert "model unavailable" in error["value"]["message"]
    assert error["value"]["source"] == "askQuestion"
    assert len(surface.of_type("answerFinished")) == 1
    answer = controller.get_answer(stream_id)
    assert answer.failed
    assert answer.content == "partial "


@pytest.mark.asyncio
async def test_ask_question_requires_open_session(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    controller = _controller(channel, store, sessions)
    with pytest.raises(StateError) as excinfo:
        await controller.ask_question("q")
    assert excinfo.value.code == "ERR_NO_SESSION"


@pytest.mark.asyncio
async def test_ask_question_disabled_feature(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    controller = _controller(channel, store, sessions, enabled=False)
    with pytest.raises(StateError) as excinfo:
        await controller.ask_question("q")
    assert excinfo.value.code == "ERR_DISABLED"


@pytest.mark.asyncio
async def test_blank_question_rejected(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    controller = _controller(channel, store, sessions)
    with pytest.raises(ValueError):
        await controller.ask_question("   ")


@pytest.mark.asyncio
async def test_detached_ui_does_not_stop_generation(
    channel: MessageChannel, surface: MockSurface, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    generator = GatedGenerator()
    controller = _controller(channel, store, sessions, generator)

    stream_id = await controller.ask_question("q")
    await asyncio.sleep(0.01)
    channel.detach()
    generator.gate.set()
    await controller.wait_idle()

    assert controller.get_answer(stream_id).content == "first second"
    assert surface.of_type("answerFinished") == []


# ---------------------------------------------------------------------------
# history, display and refresh
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_is_scoped_to_selected_session(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    first = await _open_session(sessions, "first")
    controller = _controller(channel, store, sessions)
    first_answer = await controller.ask_question("one")
    await controller.wait_idle()

    await _open_session(sessions, "second")
    second_answer = await controller.ask_question("two")
    await controller.wait_idle()
    assert [h.stream_id for h in controller.answer_headers()] == [second_answer]

    await sessions.select(first)
    assert [h.stream_id for h in controller.answer_headers()] == [first_answer]


@pytest.mark.asyncio
async def test_display_answer_pushes_show_answer(
    channel: MessageChannel, surface: MockSurface, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    controller = _controller(channel, store, sessions)
    stream_id = await controller.ask_question("hello there")
    await controller.wait_idle()

    await controller.display_answer(stream_id)
    await channel.drain()

    [shown] = surface.of_type("showAnswer")
    assert shown["value"]["answer"]["content"] == "hello there "
    assert shown["value"]["answer"]["header"]["question"] == "hello there"


@pytest.mark.asyncio
async def test_display_unknown_answer_raises(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    controller = _controller(channel, store, sessions)
    with pytest.raises(StateError):
        await controller.display_answer("missing")


@pytest.mark.asyncio
async def test_refresh_notices(
    channel: MessageChannel, surface: MockSurface, store: InMemoryStore, sessions: SessionController
) -> None:
    await _controller(channel, store, sessions, enabled=False).refresh()
    await _controller(channel, store, sessions).refresh()
    await channel.drain()
    assert surface.texts("notice") == [DISABLED_NOTICE, NO_SESSION_NOTICE]


@pytest.mark.asyncio
async def test_settings_provider_is_read_live(
    channel: MessageChannel, surface: MockSurface, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    settings = AssistantSettings(ask_anything_enabled=False)
    controller = AssistantController(
        channel, EchoGenerator(), AssistantFacade(store), sessions, lambda: settings
    )
    with pytest.raises(StateError):
        await controller.ask_question("q")
    settings.ask_anything_enabled = True
    assert await controller.ask_question("q")
    await controller.wait_idle()


# ---------------------------------------------------------------------------
# terms and lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_accept_terms_persists(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    controller = _controller(channel, store, sessions)
    assert not controller.terms().all_accepted

    await controller.accept_terms(
        TermsAcceptance(accept_terms_of_service=True, accept_privacy_statement=True)
    )
    assert controller.terms().all_accepted
    assert store.get(TERMS_KEY) == {"acceptTermsOfService": True, "acceptPrivacyStatement": True}


@pytest.mark.asyncio
async def test_close_cancels_in_flight_answers(
    channel: MessageChannel, store: InMemoryStore, sessions: SessionController
) -> None:
    await _open_session(sessions)
    controller = _controller(channel, store, sessions, GatedGenerator())
    stream_id = await controller.ask_question("q")
    await asyncio.sleep(0.01)

    await controller.close()
    with pytest.raises(StateError):
        controller.get_answer(stream_id)
