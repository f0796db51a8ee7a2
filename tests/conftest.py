"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest

from contract_ide.core.config import HostConfig, ServerSettings
from contract_ide.core.exceptions import ProcessError
from contract_ide.core.types import ProcessResult
from contract_ide.host.notifier import Notifier
from contract_ide.messaging.channel import MessageChannel
from contract_ide.messaging.mock import MockSurface
from contract_ide.storage.store import InMemoryStore

# ---------------------------------------------------------------------------
# Fake processes
# ---------------------------------------------------------------------------


class FakeHandle:
    """Stands in for ProcessHandle; exits only when told to (or terminated)."""

    def __init__(self, command: list[str], pid: int) -> None:
        self.command = command
        self.pid = pid
        self._exited: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._stdout: list[Any] = []
        self._stderr: list[Any] = []
        self._exit: list[Any] = []
        self.terminated = False

    def on_stdout(self, listener: Any) -> FakeHandle:
        self._stdout.append(listener)
        return self

    def on_stderr(self, listener: Any) -> FakeHandle:
        self._stderr.append(listener)
        return self

    def on_exit(self, listener: Any) -> FakeHandle:
        self._exit.append(listener)
        return self

    @property
    def running(self) -> bool:
        return not self._exited.done()

    @property
    def returncode(self) -> int | None:
        return self._exited.result() if self._exited.done() else None

    async def wait(self) -> int:
        return await asyncio.shield(self._exited)

    def terminate(self) -> None:
        self.terminated = True
        self.exit(-15)

    def kill(self) -> None:
        self.exit(-9)

    def stdout(self, line: str) -> None:
        for listener in self._stdout:
            listener(line)

    def stderr(self, line: str) -> None:
        for listener in self._stderr:
            listener(line)

    def exit(self, code: int) -> None:
        if self._exited.done():
            return
        for listener in self._exit:
            listener(code)
        self._exited.set_result(code)


class FakeRunner:
    """Records commands instead of running them.

    ``failures`` maps a tool name to the ProcessError its ``run`` raises,
    ``results`` to the ProcessResult it returns. ``spawn_errors`` makes
    ``spawn`` fail for a tool; ``kill_exit_code`` is what the port-kill
    command exits with (``None`` leaves it hanging).
    """

    def __init__(self) -> None:
        self.runs: list[dict[str, Any]] = []
        self.spawned: list[FakeHandle] = []
        self.failures: dict[str, ProcessError] = {}
        self.results: dict[str, ProcessResult] = {}
        self.spawn_errors: dict[str, ProcessError] = {}
        self.kill_exit_code: int | None = 1
        self.spawn_delay = 0.0
        self._pids = itertools.count(1000)

    async def run(
        self,
        command: list[str],
        *,
        tolerate_failure: bool = False,
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> ProcessResult:
        argv = [str(part) for part in command]
        self.runs.append({"argv": argv, "env": env, "cwd": cwd, "tolerate": tolerate_failure})
        await asyncio.sleep(0)
        tool = argv[0]
        if tool in self.failures:
            raise self.failures[tool]
        if tool in self.results:
            return self.results[tool]
        return ProcessResult(command=argv, exit_code=0)

    async def spawn(
        self,
        command: list[str],
        *,
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> FakeHandle:
        argv = [str(part) for part in command]
        if self.spawn_delay:
            await asyncio.sleep(self.spawn_delay)
        else:
            await asyncio.sleep(0)
        if argv[0] in self.spawn_errors:
            raise self.spawn_errors[argv[0]]
        handle = FakeHandle(argv, next(self._pids))
        self.spawned.append(handle)
        if argv[0] == "fuser" and self.kill_exit_code is not None:
            handle.exit(self.kill_exit_code)
        return handle

    @property
    def argvs(self) -> list[list[str]]:
        return [run["argv"] for run in self.runs]

    def servers(self, tool: str = "server-tool") -> list[FakeHandle]:
        return [h for h in self.spawned if h.command[0] == tool]

    def live_servers(self, tool: str = "server-tool") -> list[FakeHandle]:
        return [h for h in self.servers(tool) if h.running]


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.infos: list[str] = []
        self.errors: list[str] = []

    async def info(self, message: str) -> None:
        self.infos.append(message)

    async def error(self, message: str) -> None:
        self.errors.append(message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def server_settings() -> ServerSettings:
    return ServerSettings(
        tool_path="server-tool",
        config_path="/etc/server.toml",
        port=8080,
        reclaim_timeout=0.5,
    )


@pytest.fixture
def host_config(server_settings: ServerSettings) -> HostConfig:
    return HostConfig(
        sdk_path_relative_to_home="sdk",
        server=server_settings,
        debug={"node_debug_path": "node-debug"},
    )


@pytest.fixture
def surface() -> MockSurface:
    return MockSurface()


@pytest.fixture
async def channel(surface: MockSurface) -> AsyncGenerator[MessageChannel, None]:
    ch = MessageChannel()
    ch.attach(surface)
    yield ch
    await ch.close()


@pytest.fixture
def contract_source(tmp_path: Path) -> Path:
    source = tmp_path / "main.c"
    source.write_text("int _main() { return 0; }\n", encoding="utf-8")
    return source
