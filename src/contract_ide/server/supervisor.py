from __future__ import annotations

import asyncio
from typing import Callable, Mapping

import structlog

from contract_ide.core.config import ServerSettings
from contract_ide.core.constants import ServerStatus
from contract_ide.core.exceptions import ConfigurationError, ProcessError
from contract_ide.core.exceptions import TimeoutError as HostTimeoutError
from contract_ide.core.types import ServerHandle
from contract_ide.messaging.channel import MessageChannel
from contract_ide.messaging.messages import debugger_error, debugger_output
from contract_ide.process.runner import ProcessHandle, ProcessRunner
from contract_ide.utils.async_helpers import with_timeout

logger = structlog.get_logger(__name__)

SettingsProvider = Callable[[], ServerSettings]


class ServerSupervisor:
    """Keeps at most one debug/REST server bound to the configured port.

    ``start()`` first reclaims the port with a best-effort kill (whatever is
    bound there, ours or a stale instance) and waits for it, bounded by
    ``reclaim_timeout``, before spawning a fresh server. Concurrent
    ``start()`` calls for the same port are single-flight: the second joins
    the first and gets the same handle. ``start`` and ``stop`` never
    interleave.

    Server output is pushed to the UI line by line as ``debugger:output`` /
    ``debugger:error``. Spawn failures and unexpected exits are pushed as
    ``debugger:error`` too; nothing is raised to the caller, because by the
    time a child fails the UI is its only observer.

    Args:
        settings: Server settings, or a zero-argument callable returning the
            current settings (read on every start/stop, so edits apply
            without rebuilding the supervisor).
        runner: Process runner used for the kill command and the server.
        channel: Where server output and failures are pushed.
        env: Environment overrides for the server process.
    """

    def __init__(
        self,
        settings: ServerSettings | SettingsProvider,
        runner: ProcessRunner,
        channel: MessageChannel,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if isinstance(settings, ServerSettings):
            fixed = settings
            self._settings: SettingsProvider = lambda: fixed
        else:
            self._settings = settings
        self._runner = runner
        self._channel = channel
        self._env = dict(env or {})
        self._lock = asyncio.Lock()
        self._inflight: dict[int, asyncio.Task[ServerHandle]] = {}
        self._process: ProcessHandle | None = None
        self._handle = ServerHandle(port=self._settings().port)

    def __repr__(self) -> str:
        return (
            f"ServerSupervisor(port={self._handle.port}, status={self._handle.status}, "
            f"pid={self._handle.process_id})"
        )

    @property
    def handle(self) -> ServerHandle:
        """Snapshot of the current server state."""
        return self._handle.model_copy()

    @property
    def status(self) -> ServerStatus:
        return self._handle.status

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def start(self) -> ServerHandle:
        """Start the server, replacing whatever is bound to the port.

        A call made while another start for the same port is in flight joins
        that start instead of spawning a second server.
        """
        settings = self._settings()
        existing = self._inflight.get(settings.port)
        if existing is not None and not existing.done():
            logger.debug("server_start_joined", port=settings.port)
            return await asyncio.shield(existing)

        task = asyncio.create_task(self._start(settings), name=f"server-start-{settings.port}")
        self._inflight[settings.port] = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._inflight.get(settings.port) is task:
                del self._inflight[settings.port]

    async def stop(self) -> ServerHandle:
        """Free the port and mark the server stopped."""
        settings = self._settings()
        async with self._lock:
            await self._reclaim(settings)
            self._handle = ServerHandle(port=settings.port, status=ServerStatus.STOPPED)
            logger.info("server_stopped", port=settings.port)
            return self.handle

    async def close(self) -> None:
        await self.stop()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _start(self, settings: ServerSettings) -> ServerHandle:
        async with self._lock:
            self._handle = ServerHandle(port=settings.port, status=ServerStatus.STARTING)
            await self._reclaim(settings)

            try:
                if not settings.tool_path:
                    raise ConfigurationError(
                        "Debug server path is not configured.", code="ERR_CONFIG"
                    )
                process = await self._runner.spawn(
                    [
                        settings.tool_path,
                        "--rest-api-port",
                        str(settings.port),
                        "--config",
                        settings.config_path,
                    ],
                    env=self._env,
                )
            except (ConfigurationError, ProcessError) as exc:
                logger.warning("server_spawn_failed", port=settings.port, error=str(exc))
                self._channel.send(debugger_error(f"Debug server failed to start: {exc}"))
                self._handle = ServerHandle(port=settings.port, status=ServerStatus.STOPPED)
                return self.handle

            self._process = process
            process.on_stdout(lambda line: self._channel.send(debugger_output(line)))
            process.on_stderr(lambda line: self._channel.send(debugger_error(line)))
            process.on_exit(lambda code: self._on_exit(process, settings.port, code))

            self._handle = ServerHandle(
                port=settings.port, process_id=process.pid, status=ServerStatus.RUNNING
            )
            logger.info("server_started", port=settings.port, pid=process.pid)
            return self.handle

    async def _reclaim(self, settings: ServerSettings) -> None:
        """Best-effort kill of whatever is bound to the port, then of our own child."""
        port = settings.port
        # Detach our child first: the kill command may be what ends it.
        process, self._process = self._process, None
        command = [part.format(port=port) for part in settings.kill_command]
        try:
            killer = await self._runner.spawn(command)
        except ProcessError as exc:
            logger.warning("port_reclaim_unavailable", port=port, error=str(exc))
        else:
            killer.on_stdout(lambda line: logger.debug("port_reclaim_output", port=port, line=line))
            killer.on_stderr(lambda line: logger.debug("port_reclaim_output", port=port, line=line))
            try:
                code = await with_timeout(
                    killer.wait(), settings.reclaim_timeout, f"port {port} to be freed"
                )
                # Non-zero usually means nothing was bound: the common case.
                logger.debug("port_reclaimed", port=port, exit_code=code)
            except HostTimeoutError as exc:
                logger.warning("port_reclaim_timeout", port=port, error=str(exc))
                killer.kill()

        if process is not None and process.running:
            process.terminate()
            try:
                await with_timeout(process.wait(), settings.reclaim_timeout, "server exit")
            except HostTimeoutError:
                process.kill()
                await process.wait()

    def _on_exit(self, process: ProcessHandle, port: int, code: int) -> None:
        if process is not self._process:
            # Detached by a stop or restart; its exit was requested.
            return
        self._process = None
        self._handle = ServerHandle(port=port, status=ServerStatus.STOPPED)
        logger.warning("server_exited", port=port, exit_code=code)
        if code != 0:
            self._channel.send(debugger_error(f"Debug server exited with code {code}"))
