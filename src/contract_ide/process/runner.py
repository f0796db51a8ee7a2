"""External process execution.

:class:`ProcessRunner` offers three ways to run a tool:

* :meth:`ProcessRunner.run_sync` blocks until the process exits.
* :meth:`ProcessRunner.run` awaits the same result on the event loop, so
  stage chaining reads as straight-line code.
* :meth:`ProcessRunner.spawn` starts a long-lived child and returns a
  :class:`ProcessHandle` whose stdout/stderr lines and exit are delivered to
  registered listeners as they happen.

All three inherit the parent environment merged with the runner's base
overrides and any per-call overrides.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import subprocess
from pathlib import Path
from typing import Mapping, Sequence, Union

import structlog

from contract_ide.core.exceptions import ProcessError
from contract_ide.core.types import ProcessResult
from contract_ide.utils.async_helpers import Listener, maybe_await

logger = structlog.get_logger(__name__)

Command = Union[str, Sequence[Union[str, os.PathLike[str]]]]


def _argv(command: Command) -> list[str]:
    if isinstance(command, str):
        argv = shlex.split(command)
    else:
        argv = [os.fspath(part) for part in command]
    if not argv:
        raise ValueError("command must not be empty")
    return argv


class ProcessHandle:
    """A running child process with event-style output delivery.

    Listeners may be plain functions or coroutine functions. Output listeners
    receive one decoded line at a time (without the trailing newline); exit
    listeners receive the exit code once both output streams are drained.
    A listener that raises is logged and does not stop delivery.
    """

    def __init__(self, process: asyncio.subprocess.Process, command: list[str]) -> None:
        self._process = process
        self.command = command
        self._stdout_listeners: list[Listener] = []
        self._stderr_listeners: list[Listener] = []
        self._exit_listeners: list[Listener] = []
        self._exited: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._late_tasks: set[asyncio.Task[None]] = set()
        self._pump_task = asyncio.create_task(
            self._pump(), name=f"process-pump-{process.pid}"
        )

    def __repr__(self) -> str:
        return f"ProcessHandle(pid={self.pid}, command={self.command[0]!r}, running={self.running})"

    # ------------------------------------------------------------------ #
    # Listener registration
    # ------------------------------------------------------------------ #

    def on_stdout(self, listener: Listener) -> ProcessHandle:
        self._stdout_listeners.append(listener)
        return self

    def on_stderr(self, listener: Listener) -> ProcessHandle:
        self._stderr_listeners.append(listener)
        return self

    def on_exit(self, listener: Listener) -> ProcessHandle:
        """Register an exit listener; fires right away if the process already exited."""
        if self._exited.done():
            task = asyncio.create_task(self._notify(listener, self._exited.result()))
            self._late_tasks.add(task)
            task.add_done_callback(self._late_tasks.discard)
        else:
            self._exit_listeners.append(listener)
        return self

    # ------------------------------------------------------------------ #
    # State / control
    # ------------------------------------------------------------------ #

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._exited.result() if self._exited.done() else None

    @property
    def running(self) -> bool:
        return not self._exited.done()

    async def wait(self) -> int:
        """Wait for the process to exit and its output to be delivered."""
        return await asyncio.shield(self._exited)

    def terminate(self) -> None:
        if self.running:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    def kill(self) -> None:
        if self.running:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _pump(self) -> None:
        await asyncio.gather(
            self._read_lines(self._process.stdout, self._stdout_listeners),
            self._read_lines(self._process.stderr, self._stderr_listeners),
        )
        code = await self._process.wait()
        logger.debug("process_exited", command=self.command[0], pid=self.pid, exit_code=code)
        for listener in list(self._exit_listeners):
            await self._notify(listener, code)
        self._exited.set_result(code)

    async def _read_lines(
        self, stream: asyncio.StreamReader | None, listeners: list[Listener]
    ) -> None:
        if stream is None:
            return
        while True:
            raw = await stream.readline()
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            for listener in list(listeners):
                await self._notify(listener, line)

    async def _notify(self, listener: Listener, *args: object) -> None:
        try:
            await maybe_await(listener, *args)
        except Exception:  # noqa: BLE001
            logger.exception("process_listener_failed", command=self.command[0])


class ProcessRunner:
    """Runs external tools with captured output and non-zero-exit signalling.

    Args:
        env: Environment overrides applied to every child process (e.g. the
            toolchain ``PATH``), on top of the parent's environment.
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = dict(env or {})

    def __repr__(self) -> str:
        return f"ProcessRunner(env_overrides={sorted(self._env)})"

    def environment(self, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return the full child environment for a call with *overrides*."""
        env = dict(os.environ)
        env.update(self._env)
        if overrides:
            env.update(overrides)
        return env

    def run_sync(
        self,
        command: Command,
        *,
        tolerate_failure: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
    ) -> ProcessResult:
        """Run *command* to completion, blocking the caller.

        Args:
            command: argv sequence, or a command line that is split with
                :func:`shlex.split` (no shell is involved).
            tolerate_failure: Return the result instead of raising when the
                process exits non-zero or cannot be started.
            env: Per-call environment overrides.
            cwd: Working directory for the child.

        Raises:
            ProcessError: On non-zero exit or spawn failure, unless
                *tolerate_failure* is set.
        """
        argv = _argv(command)
        logger.debug("process_run", command=argv)
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                env=self.environment(env),
                cwd=cwd,
                check=False,
            )
        except OSError as exc:
            return self._spawn_failed(argv, exc, tolerate_failure)

        result = ProcessResult(
            command=argv,
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
        return self._check(result, tolerate_failure)

    async def run(
        self,
        command: Command,
        *,
        tolerate_failure: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
    ) -> ProcessResult:
        """Async counterpart of :meth:`run_sync` with the same contract."""
        argv = _argv(command)
        logger.debug("process_run", command=argv)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.environment(env),
                cwd=cwd,
            )
        except OSError as exc:
            return self._spawn_failed(argv, exc, tolerate_failure)

        stdout, stderr = await process.communicate()
        result = ProcessResult(
            command=argv,
            exit_code=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        return self._check(result, tolerate_failure)

    async def spawn(
        self,
        command: Command,
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
    ) -> ProcessHandle:
        """Start *command* without waiting for it.

        Raises:
            ProcessError: If the process cannot be started.
        """
        argv = _argv(command)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.environment(env),
                cwd=cwd,
            )
        except OSError as exc:
            logger.warning("process_spawn_failed", command=argv, error=str(exc))
            raise self._spawn_error(argv, exc) from exc
        logger.debug("process_spawned", command=argv, pid=process.pid)
        return ProcessHandle(process, argv)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    @staticmethod
    def _check(result: ProcessResult, tolerate_failure: bool) -> ProcessResult:
        if result.success or tolerate_failure:
            return result
        stderr = result.stderr.strip()
        message = f"Command failed with exit code {result.exit_code}: {result.command[0]}"
        if stderr:
            message = f"{message}\n{stderr}"
        raise ProcessError(
            message,
            command=result.command,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            code="ERR_EXIT",
        )

    @staticmethod
    def _spawn_error(argv: list[str], exc: OSError) -> ProcessError:
        message = f"Failed to start {argv[0]}: {exc.strerror or exc}"
        return ProcessError(
            message, command=argv, exit_code=None, stderr=message, code="ERR_SPAWN"
        )

    @classmethod
    def _spawn_failed(
        cls, argv: list[str], exc: OSError, tolerate_failure: bool
    ) -> ProcessResult:
        logger.warning("process_spawn_failed", command=argv, error=str(exc))
        error = cls._spawn_error(argv, exc)
        if tolerate_failure:
            return ProcessResult(command=argv, exit_code=None, stderr=error.stderr)
        raise error from exc
