from __future__ import annotations

import asyncio

import structlog

from contract_ide.core.exceptions import StreamError
from contract_ide.utils.async_helpers import Listener, maybe_await

logger = structlog.get_logger(__name__)


class AnswerStream:
    """An answer delivered piece by piece.

    Chunks are appended in order until :meth:`finish`; after that the stream
    is terminal and further appends raise :class:`StreamError`. Chunk
    listeners receive each chunk's text, finish listeners are called once.
    """

    def __init__(self, stream_id: str, question: str) -> None:
        self.stream_id = stream_id
        self.question = question
        self._chunks: list[str] = []
        self._finished = asyncio.Event()
        self._chunk_listeners: list[Listener] = []
        self._finish_listeners: list[Listener] = []

    def __repr__(self) -> str:
        return (
            f"AnswerStream(stream_id={self.stream_id!r}, chunks={len(self._chunks)}, "
            f"finished={self.finished})"
        )

    @property
    def chunks(self) -> list[str]:
        return list(self._chunks)

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def on_chunk(self, listener: Listener) -> AnswerStream:
        self._chunk_listeners.append(listener)
        return self

    def on_finish(self, listener: Listener) -> AnswerStream:
        self._finish_listeners.append(listener)
        return self

    async def append(self, text: str) -> None:
        if self.finished:
            raise StreamError(
                f"Answer stream {self.stream_id!r} is already finished.",
                code="ERR_STREAM_FINISHED",
            )
        self._chunks.append(text)
        for listener in list(self._chunk_listeners):
            await maybe_await(listener, text)

    async def finish(self) -> None:
        """Mark the stream finished; calling it again is a no-op."""
        if self.finished:
            return
        self._finished.set()
        logger.debug("answer_stream_finished", stream_id=self.stream_id, chunks=len(self._chunks))
        for listener in list(self._finish_listeners):
            await maybe_await(listener)

    async def wait_finished(self) -> str:
        """Wait for the stream to finish and return the full text."""
        await self._finished.wait()
        return self.text
