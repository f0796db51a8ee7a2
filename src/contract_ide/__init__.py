"""Contract IDE host: build, debug-server and assistant controller for a contract editor."""

from contract_ide.__version__ import __version__

from contract_ide.assistant import (
    AnswerGenerator,
    AnswerStream,
    AssistantController,
    AssistantFacade,
    EchoGenerator,
)
from contract_ide.build import BuildPipeline, BuildResult, DebugRunner, PipelineJob, StageInvocation
from contract_ide.core.config import (
    AssistantSettings,
    BuildSettings,
    DebugSettings,
    HostConfig,
    ServerSettings,
)
from contract_ide.core.constants import (
    BuildStage,
    InboundType,
    ListSource,
    OutboundType,
    ServerStatus,
)
from contract_ide.core.exceptions import (
    BuildError,
    ConfigurationError,
    ContractIdeError,
    ProcessError,
    ProtocolError,
    StateError,
    StreamError,
    TimeoutError,
)
from contract_ide.core.types import (
    Answer,
    AnswerHeader,
    CodingSession,
    ListItem,
    ProcessResult,
    ServerHandle,
    TermsAcceptance,
)
from contract_ide.host import HostController, LoggingNotifier, Notifier
from contract_ide.messaging import MessageChannel, MockSurface, UISurface
from contract_ide.process import ProcessHandle, ProcessRunner, TempFileStaging, toolchain_env
from contract_ide.server import ServerSupervisor
from contract_ide.sessions import SessionController, SessionRepository
from contract_ide.storage import InMemoryStore, JsonFileStore, KeyValueStore
from contract_ide.utils.logging import configure_logging

__all__ = [
    "__version__",
    # Host
    "HostController",
    "Notifier",
    "LoggingNotifier",
    # Config
    "HostConfig",
    "BuildSettings",
    "ServerSettings",
    "DebugSettings",
    "AssistantSettings",
    # Constants
    "BuildStage",
    "InboundType",
    "ListSource",
    "OutboundType",
    "ServerStatus",
    # Exceptions
    "ContractIdeError",
    "ConfigurationError",
    "ProcessError",
    "BuildError",
    "ProtocolError",
    "StateError",
    "StreamError",
    "TimeoutError",
    # Types
    "Answer",
    "AnswerHeader",
    "CodingSession",
    "ListItem",
    "ProcessResult",
    "ServerHandle",
    "TermsAcceptance",
    # Components
    "ProcessRunner",
    "ProcessHandle",
    "TempFileStaging",
    "toolchain_env",
    "BuildPipeline",
    "BuildResult",
    "PipelineJob",
    "StageInvocation",
    "DebugRunner",
    "ServerSupervisor",
    "MessageChannel",
    "MockSurface",
    "UISurface",
    "AnswerStream",
    "AnswerGenerator",
    "AssistantController",
    "AssistantFacade",
    "EchoGenerator",
    "SessionController",
    "SessionRepository",
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    # Logging
    "configure_logging",
]
