from __future__ import annotations

import shlex
from pathlib import Path
from typing import Mapping

import structlog

from contract_ide.core.config import DebugSettings
from contract_ide.core.exceptions import ConfigurationError
from contract_ide.process.runner import ProcessRunner
from contract_ide.process.staging import TempFileStaging

logger = structlog.get_logger(__name__)


class DebugRunner:
    """Executes a built contract once in the node debugger.

    The debugger signals contract failures by printing an error trace and
    exiting non-zero, so it runs in tolerate-failure mode and whatever it
    printed is written to a scratch file for the user to open.
    """

    def __init__(
        self,
        settings: DebugSettings,
        runner: ProcessRunner,
        *,
        env: Mapping[str, str] | None = None,
        staging: TempFileStaging | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._env = dict(env or {})
        self._staging = staging or TempFileStaging()

    async def run(self, wasm_path: str | Path, arguments: str = "") -> Path:
        """Run *wasm_path* with transaction data *arguments* (function and params).

        Returns:
            Path of the file holding the debugger output.
        """
        if not self._settings.node_debug_path:
            raise ConfigurationError(
                "Node debugger path is not configured.", code="ERR_CONFIG"
            )
        argv = [self._settings.node_debug_path, str(wasm_path), *shlex.split(arguments)]
        result = await self._runner.run(argv, tolerate_failure=True, env=self._env)
        logger.info("debug_run_done", wasm=str(wasm_path), exit_code=result.exit_code)
        return self._staging.create(self._settings.output_file_name, result.output)
