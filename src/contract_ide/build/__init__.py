"""Contract build pipeline and debugger runs."""
from __future__ import annotations

from contract_ide.build.debugger import DebugRunner
from contract_ide.build.pipeline import (
    BuildPipeline,
    BuildResult,
    PipelineJob,
    StageInvocation,
    wasm_path_for,
)

__all__ = [
    "BuildPipeline",
    "BuildResult",
    "DebugRunner",
    "PipelineJob",
    "StageInvocation",
    "wasm_path_for",
]
