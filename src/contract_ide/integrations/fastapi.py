"""FastAPI integration: serve the UI channel over a WebSocket.

Usage::

    from contract_ide.integrations.fastapi import create_ui_router

    host = HostController(HostConfig.from_env())
    app = FastAPI()
    app.include_router(create_ui_router(host, path="/ws"))

Requires the ``fastapi`` extra::

    pip install contract-ide-host[fastapi]
"""

from __future__ import annotations

from typing import Any

try:
    from fastapi import APIRouter, WebSocket, WebSocketDisconnect
except ImportError as _err:  # pragma: no cover
    raise ImportError(
        "FastAPI is required for contract_ide.integrations.fastapi. "
        "Install it with: pip install contract-ide-host[fastapi]"
    ) from _err

import structlog

from contract_ide.host.controller import HostController

logger = structlog.get_logger(__name__)


class WebSocketSurface:
    """UI surface backed by an accepted WebSocket connection."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    def __repr__(self) -> str:
        return f"WebSocketSurface(client={self._websocket.client!r})"

    async def post_message(self, message: dict[str, Any]) -> None:
        await self._websocket.send_json(message)


def create_ui_router(host: HostController, path: str = "/ws") -> APIRouter:
    """Return an :class:`APIRouter` exposing the host's UI channel.

    Endpoints:
        - ``WS {path}``: one UI surface. Each received JSON object is
          dispatched as an inbound message; host pushes are sent back as JSON.
          A newer connection replaces the previous surface.
    """
    router = APIRouter(tags=["ui"])

    @router.websocket(path)
    async def ui_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        surface = WebSocketSurface(websocket)
        await host.show_ui(surface)
        try:
            while True:
                raw = await websocket.receive_json()
                host.channel.dispatch_nowait(raw)
        except WebSocketDisconnect:
            logger.info("ui_socket_closed", path=path)
        finally:
            host.channel.detach(surface)

    return router
