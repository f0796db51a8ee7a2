from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

import structlog

from contract_ide.core.constants import InboundType
from contract_ide.core.exceptions import ProtocolError, StateError
from contract_ide.messaging.messages import (
    InboundMessage,
    OutboundMessage,
    error_message,
    parse_inbound,
    serialize,
)

logger = structlog.get_logger(__name__)

InboundHandler = Callable[[Any], Awaitable[None]]


@runtime_checkable
class UISurface(Protocol):
    """A detached UI that can only be reached by posting serialized messages."""

    async def post_message(self, message: dict[str, Any]) -> None: ...


class MessageChannel:
    """Typed, asynchronous message transport between the host and one UI surface.

    Outbound messages are fire-and-forget: :meth:`send` queues the wire form
    and returns immediately; a delivery task posts them to the attached
    surface in send order. With no surface attached a message is dropped,
    and detaching discards whatever was still queued. Nothing is buffered
    for a later surface, since replaying stale UI state is worse than losing it.

    Inbound messages are routed by kind to exactly one handler each. Unknown
    kinds are ignored, malformed ones are logged, and a failing handler is
    reported to the UI as an ``error`` push instead of propagating.

    Usage::

        channel = MessageChannel()
        channel.on_receive(InboundType.START_SERVER, on_start)
        channel.attach(surface)
        channel.send(debugger_output("listening on :8080"))
        await channel.dispatch({"type": "startServer"})
    """

    def __init__(self, name: str = "main") -> None:
        self.name = name
        self._surface: UISurface | None = None
        self._queue: asyncio.Queue[dict[str, Any]] | None = None
        self._delivery_task: asyncio.Task[None] | None = None
        self._handlers: dict[InboundType, InboundHandler] = {}
        self._dispatch_tasks: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"MessageChannel(name={self.name!r}, attached={self.attached})"

    # ------------------------------------------------------------------ #
    # Surface lifecycle
    # ------------------------------------------------------------------ #

    @property
    def surface(self) -> UISurface | None:
        return self._surface

    @property
    def attached(self) -> bool:
        return self._surface is not None

    def attach(self, surface: UISurface) -> None:
        """Make *surface* the delivery target, replacing any previous one.

        Must be called from a running event loop.
        """
        if surface is self._surface:
            return
        if self._surface is not None:
            self.detach()
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._surface = surface
        self._queue = queue
        self._delivery_task = asyncio.get_running_loop().create_task(
            self._deliver(surface, queue), name=f"ui-delivery-{self.name}"
        )
        logger.info("ui_attached", channel=self.name)

    def detach(self, surface: UISurface | None = None) -> None:
        """Detach the current surface and drop its undelivered messages.

        When *surface* is given, only detach if it is still the current one,
        so a late disconnect of an old surface cannot evict its successor.
        """
        if self._surface is None:
            return
        if surface is not None and surface is not self._surface:
            return
        queue, task = self._queue, self._delivery_task
        self._surface = None
        self._queue = None
        self._delivery_task = None
        if task is not None:
            task.cancel()
        dropped = 0
        if queue is not None:
            while not queue.empty():
                queue.get_nowait()
                queue.task_done()
                dropped += 1
        logger.info("ui_detached", channel=self.name, dropped=dropped)

    # ------------------------------------------------------------------ #
    # Outbound
    # ------------------------------------------------------------------ #

    def send(self, message: OutboundMessage) -> bool:
        """Queue *message* for the attached surface.

        Returns:
            ``True`` if it was queued, ``False`` if it was dropped because no
            surface is attached.
        """
        try:
            queue = self._require_queue()
        except StateError:
            logger.debug("message_dropped", channel=self.name, type=message.type)
            return False
        queue.put_nowait(serialize(message))
        return True

    async def drain(self) -> None:
        """Wait until everything queued so far has been delivered or dropped."""
        queue = self._queue
        if queue is not None:
            await queue.join()

    def _require_queue(self) -> asyncio.Queue[dict[str, Any]]:
        if self._queue is None:
            raise StateError("No UI surface is attached.", code="ERR_DETACHED")
        return self._queue

    async def _deliver(self, surface: UISurface, queue: asyncio.Queue[dict[str, Any]]) -> None:
        while True:
            wire = await queue.get()
            try:
                await surface.post_message(wire)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "message_delivery_failed",
                    channel=self.name,
                    type=wire.get("type"),
                    error=str(exc),
                )
            finally:
                queue.task_done()

    # ------------------------------------------------------------------ #
    # Inbound
    # ------------------------------------------------------------------ #

    def on_receive(self, kind: InboundType | str, handler: InboundHandler) -> None:
        """Route inbound messages of *kind* to *handler*.

        A kind has exactly one handler; registering again replaces it.

        Raises:
            ValueError: If *kind* is not a known inbound message kind.
        """
        inbound = InboundType(kind)
        if inbound in self._handlers:
            logger.debug("handler_replaced", channel=self.name, type=str(inbound))
        self._handlers[inbound] = handler

    def missing_handlers(self) -> list[InboundType]:
        """Inbound kinds that have no handler yet."""
        return [kind for kind in InboundType if kind not in self._handlers]

    async def dispatch(self, raw: Any) -> None:
        """Route one raw inbound message to its handler.

        Never raises: protocol errors are logged and swallowed, handler
        failures become an outbound ``error`` message.
        """
        try:
            message = parse_inbound(raw)
        except ProtocolError as exc:
            logger.warning("protocol_error", channel=self.name, error=str(exc), details=exc.details)
            return
        if message is None:
            logger.debug("unknown_message_ignored", channel=self.name, type=raw.get("type"))
            return

        await self._handle(message)

    def dispatch_nowait(self, raw: Any) -> asyncio.Task[None]:
        """Schedule :meth:`dispatch` without waiting for the handler to finish."""
        task = asyncio.get_running_loop().create_task(self.dispatch(raw))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)
        return task

    async def _handle(self, message: InboundMessage) -> None:
        handler = self._handlers.get(InboundType(message.type))
        if handler is None:
            exc = ProtocolError(f"No handler registered for {message.type!r}", code="ERR_UNROUTABLE")
            logger.warning("protocol_error", channel=self.name, error=str(exc))
            return
        try:
            await handler(message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("handler_failed", channel=self.name, type=message.type)
            self.send(error_message(str(exc), source=message.type))

    async def close(self) -> None:
        """Detach the surface and cancel in-flight dispatches."""
        self.detach()
        for task in list(self._dispatch_tasks):
            task.cancel()
        if self._dispatch_tasks:
            await asyncio.gather(*self._dispatch_tasks, return_exceptions=True)
        self._dispatch_tasks.clear()
