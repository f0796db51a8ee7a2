from __future__ import annotations

from typing import Any, Sequence

from contract_ide.core.constants import BuildStage


class ContractIdeError(Exception):
    """Base exception for all host controller errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"ERR_SPAWN"``).
        details: Arbitrary key/value context about the error.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConfigurationError(ContractIdeError): ...


class ProtocolError(ContractIdeError):
    """A malformed or unroutable inbound message.

    Raised while parsing UI messages and always swallowed (and logged) at the
    dispatch boundary; protocol errors are never shown to the end user.
    """


class StateError(ContractIdeError):
    """An operation needs state that is not there.

    Typical causes: no UI surface attached when a push was attempted, or no
    coding session selected when the assistant is asked a question.
    """


class StreamError(ContractIdeError): ...


class TimeoutError(ContractIdeError): ...


class ProcessError(ContractIdeError):
    """An external process exited non-zero or could not be spawned.

    Attributes:
        command: The argv that was executed.
        exit_code: Process exit code, ``None`` when the process never started.
        stdout: Captured standard output (may be empty).
        stderr: Captured standard error (may be empty).
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
        self.command = list(command)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    @property
    def spawn_failed(self) -> bool:
        """Whether the process never started (binary missing, not executable)."""
        return self.exit_code is None


class BuildError(ProcessError):
    """A build pipeline stage failed.

    The message carries the failing stage's stderr verbatim so it can be shown
    to the user as-is.
    """

    def __init__(
        self,
        message: str,
        *,
        stage_index: int,
        stage: BuildStage,
        command: Sequence[str] = (),
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            command=command,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            code="ERR_BUILD",
            details={"stage": str(stage), "stage_index": stage_index},
        )
        self.stage_index = stage_index
        self.stage = stage
