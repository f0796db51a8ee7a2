"""External process execution and scratch-file staging."""
from __future__ import annotations

from contract_ide.process.environment import toolchain_env
from contract_ide.process.runner import ProcessHandle, ProcessRunner
from contract_ide.process.staging import TempFileStaging

__all__ = [
    "ProcessHandle",
    "ProcessRunner",
    "TempFileStaging",
    "toolchain_env",
]
