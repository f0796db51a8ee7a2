"""Tests for core/exceptions.py: the host error taxonomy."""
from __future__ import annotations

import pytest

from contract_ide.core.constants import BuildStage
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

# ---------------------------------------------------------------------------
# ContractIdeError: base class
# ---------------------------------------------------------------------------


def test_base_exception_message() -> None:
    exc = ContractIdeError("something went wrong")
    assert str(exc) == "something went wrong"


def test_base_exception_defaults() -> None:
    exc = ContractIdeError("msg")
    assert exc.code is None
    assert exc.details == {}


def test_base_exception_code_and_details() -> None:
    exc = ContractIdeError("msg", code="ERR_X", details={"port": 8080})
    assert exc.code == "ERR_X"
    assert exc.details == {"port": 8080}


@pytest.mark.parametrize(
    "cls",
    [ConfigurationError, ProcessError, BuildError, ProtocolError, StateError, StreamError, TimeoutError],
)
def test_subclasses_inherit_from_base(cls: type[Exception]) -> None:
    assert issubclass(cls, ContractIdeError)


def test_timeout_error_shadows_builtin() -> None:
    import builtins

    assert TimeoutError is not builtins.TimeoutError
    assert not issubclass(TimeoutError, OSError)


# ---------------------------------------------------------------------------
# ProcessError
# ---------------------------------------------------------------------------


def test_process_error_carries_output() -> None:
    exc = ProcessError(
        "failed",
        command=["llc", "-O3"],
        exit_code=2,
        stdout="out",
        stderr="err",
        code="ERR_EXIT",
    )
    assert exc.command == ["llc", "-O3"]
    assert exc.exit_code == 2
    assert exc.stdout == "out"
    assert exc.stderr == "err"
    assert exc.code == "ERR_EXIT"
    assert not exc.spawn_failed


def test_process_error_without_exit_code_is_spawn_failure() -> None:
    exc = ProcessError("cannot start", command=["missing"])
    assert exc.spawn_failed


# ---------------------------------------------------------------------------
# BuildError
# ---------------------------------------------------------------------------


def test_build_error_is_process_error() -> None:
    exc = BuildError(
        "Build failed at stage 2 (codegen):\nboom",
        stage_index=1,
        stage=BuildStage.CODEGEN,
        command=["llc"],
        exit_code=1,
        stderr="boom",
    )
    assert isinstance(exc, ProcessError)
    assert exc.stage_index == 1
    assert exc.stage is BuildStage.CODEGEN
    assert exc.code == "ERR_BUILD"
    assert exc.details == {"stage": "codegen", "stage_index": 1}
    assert str(exc).endswith("boom")


def test_build_error_can_be_caught_as_base() -> None:
    with pytest.raises(ContractIdeError):
        raise BuildError("x", stage_index=0, stage=BuildStage.COMPILE)
