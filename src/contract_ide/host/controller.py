from __future__ import annotations

import functools
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from contract_ide.assistant.controller import AnswerGenerator, AssistantController, EchoGenerator
from contract_ide.assistant.facade import AssistantFacade
from contract_ide.build.debugger import DebugRunner
from contract_ide.build.pipeline import BuildPipeline, BuildResult, wasm_path_for
from contract_ide.core.config import HostConfig
from contract_ide.core.constants import InboundType
from contract_ide.core.exceptions import ConfigurationError
from contract_ide.core.types import CodingSession, ServerHandle
from contract_ide.host.notifier import LoggingNotifier, Notifier
from contract_ide.messaging.channel import MessageChannel, UISurface
from contract_ide.messaging.messages import (
    AcceptTermsRequested,
    AskQuestionRequested,
    DisplayAnswerRequested,
    RefreshListRequested,
    SelectItemRequested,
    StartServerRequested,
    StopServerRequested,
)
from contract_ide.process.environment import toolchain_env
from contract_ide.process.runner import ProcessRunner
from contract_ide.process.staging import TempFileStaging
from contract_ide.server.supervisor import ServerSupervisor
from contract_ide.sessions.controller import SessionController, SessionRepository
from contract_ide.storage.store import InMemoryStore, KeyValueStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def command(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T | None]]:
    """Turn any failure of a host command into one user-visible error.

    The wrapped command returns ``None`` when it failed.
    """

    @functools.wraps(func)
    async def wrapper(self: HostController, *args: Any, **kwargs: Any) -> T | None:
        try:
            return await func(self, *args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            logger.exception("command_failed", command=func.__name__)
            await self.notifier.error(str(exc))
            return None

    return wrapper


class HostController:
    """Root object of the host: owns every component and the command surface.

    Collaborators that touch the outside world (process runner, store,
    notifier, answer generator, UI channel) are injectable; the rest is built
    from *config*. Nothing is shared through module globals, so several
    controllers can live in one process (one per test, for instance).

    Usage::

        async with HostController(HostConfig.from_env()) as host:
            await host.build("contracts/main.c")
            await host.start_server()
            await host.show_ui(surface)
    """

    def __init__(
        self,
        config: HostConfig | None = None,
        *,
        runner: ProcessRunner | None = None,
        store: KeyValueStore | None = None,
        notifier: Notifier | None = None,
        generator: AnswerGenerator | None = None,
        channel: MessageChannel | None = None,
        staging_root: str | Path | None = None,
    ) -> None:
        self._config = config or HostConfig()
        self._env = toolchain_env(self._config.sdk_path)
        self._runner = runner or ProcessRunner()
        self._store = store or InMemoryStore()
        self._notifier = notifier or LoggingNotifier()
        self._channel = channel or MessageChannel()

        self._pipeline = BuildPipeline(
            self._config.build, self._runner, env=self._env, staging_root=staging_root
        )
        self._debugger = DebugRunner(
            self._config.debug,
            self._runner,
            env=self._env,
            staging=TempFileStaging(staging_root),
        )
        self._supervisor = ServerSupervisor(
            lambda: self._config.server, self._runner, self._channel, env=self._env
        )
        self._sessions = SessionController(
            self._channel,
            SessionRepository(self._store),
            self._store,
            on_selection_changed=self._on_selection_changed,
        )
        self._assistant = AssistantController(
            self._channel,
            generator or EchoGenerator(),
            AssistantFacade(self._store),
            self._sessions,
            lambda: self._config.assistant,
        )
        self._wire_inbound()

    def __repr__(self) -> str:
        return f"HostController(server={self._supervisor.status}, ui_attached={self._channel.attached})"

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> HostConfig:
        return self._config

    @property
    def channel(self) -> MessageChannel:
        return self._channel

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def pipeline(self) -> BuildPipeline:
        return self._pipeline

    @property
    def supervisor(self) -> ServerSupervisor:
        return self._supervisor

    @property
    def sessions(self) -> SessionController:
        return self._sessions

    @property
    def assistant(self) -> AssistantController:
        return self._assistant

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    @command
    async def build(self, file_path: str | Path) -> BuildResult:
        """Compile, codegen and link *file_path* into a deployable binary."""
        result = await self._pipeline.build(file_path)
        await self._notifier.info("Build done.")
        return result

    @command
    async def run(self, file_path: str | Path, arguments: str = "") -> Path:
        """Run the binary built from *file_path* in the node debugger.

        Args:
            file_path: The contract source; its ``.wasm`` sibling is executed.
            arguments: Transaction data, i.e. function name and parameters.

        Returns:
            Path of the file holding the debugger output.
        """
        output = await self._debugger.run(wasm_path_for(file_path), arguments)
        await self._notifier.info(f"Debug output written to {output}")
        return output

    @command
    async def build_and_run(self, file_path: str | Path, arguments: str = "") -> Path:
        result = await self._pipeline.build(file_path)
        await self._notifier.info("Build done.")
        output = await self._debugger.run(result.output_path, arguments)
        await self._notifier.info(f"Debug output written to {output}")
        return output

    @command
    async def start_server(self) -> ServerHandle:
        return await self._supervisor.start()

    @command
    async def stop_server(self) -> ServerHandle:
        return await self._supervisor.stop()

    @command
    async def new_session(self, name: str) -> CodingSession | None:
        return await self._sessions.create(name)

    @command
    async def remove_session(self, identifier: str) -> None:
        await self._sessions.remove(identifier)

    @command
    async def show_ui(self, surface: UISurface) -> None:
        """Attach *surface* and push the current session list and assistant view."""
        self._channel.attach(surface)
        await self._refresh_views()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def close(self) -> None:
        """Stop the server, cancel pending answers and detach the UI."""
        try:
            await self._supervisor.close()
        finally:
            await self._assistant.close()
            await self._channel.close()
        logger.info("host_closed")

    async def __aenter__(self) -> HostController:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Inbound messages
    # ------------------------------------------------------------------ #

    def _wire_inbound(self) -> None:
        channel = self._channel
        channel.on_receive(InboundType.START_SERVER, self._on_start_server)
        channel.on_receive(InboundType.STOP_SERVER, self._on_stop_server)
        channel.on_receive(InboundType.REFRESH_LIST, self._on_refresh_list)
        channel.on_receive(InboundType.ASK_QUESTION, self._on_ask_question)
        channel.on_receive(InboundType.DISPLAY_ANSWER, self._on_display_answer)
        channel.on_receive(InboundType.SELECT_ITEM, self._on_select_item)
        channel.on_receive(InboundType.ACCEPT_TERMS, self._on_accept_terms)
        missing = channel.missing_handlers()
        if missing:
            raise ConfigurationError(
                f"No handler for inbound messages: {', '.join(missing)}",
                code="ERR_CONFIG",
                details={"missing": [str(kind) for kind in missing]},
            )

    async def _on_start_server(self, _: StartServerRequested) -> None:
        await self._supervisor.start()

    async def _on_stop_server(self, _: StopServerRequested) -> None:
        await self._supervisor.stop()

    async def _on_refresh_list(self, _: RefreshListRequested) -> None:
        await self._refresh_views()

    async def _on_ask_question(self, message: AskQuestionRequested) -> None:
        await self._assistant.ask_question(message.value.question)

    async def _on_display_answer(self, message: DisplayAnswerRequested) -> None:
        await self._assistant.display_answer(message.value.item_id)

    async def _on_select_item(self, message: SelectItemRequested) -> None:
        await self._sessions.select(message.value.item_id)

    async def _on_accept_terms(self, message: AcceptTermsRequested) -> None:
        await self._assistant.accept_terms(message.value)

    async def _on_selection_changed(self) -> None:
        await self._assistant.refresh()

    async def _refresh_views(self) -> None:
        await self._sessions.refresh()
        await self._assistant.refresh()
