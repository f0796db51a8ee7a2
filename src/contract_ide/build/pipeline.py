from __future__ import annotations

import time
from pathlib import Path
from typing import Mapping

import structlog
from pydantic import BaseModel, Field

from contract_ide.core.config import BuildSettings
from contract_ide.core.constants import BuildStage
from contract_ide.core.exceptions import BuildError, ConfigurationError, ProcessError
from contract_ide.core.types import ProcessResult
from contract_ide.process.runner import ProcessRunner
from contract_ide.process.staging import TempFileStaging

logger = structlog.get_logger(__name__)

# Argument templates per stage; ``{name}`` placeholders are filled by plan().
_COMPILE_ARGS = ("-cc1", "-O{compile_level}", "{emit_flag}", "-triple={target}", "{source}")
_CODEGEN_ARGS = ("-O{codegen_level}", "-filetype=obj", "{ir}", "-o", "{obj}")
_LINK_ARGS = (
    "--no-entry",
    "{obj}",
    "-o",
    "{out}",
    "--strip-all",
    "-allow-undefined-file={syms}",
)

SYMS_FILE_NAME = "main.syms"


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


def wasm_path_for(source_path: str | Path) -> Path:
    """Return the deployable binary a build of *source_path* produces."""
    return Path(source_path).with_suffix(".wasm")


class StageInvocation(BaseModel):
    stage: BuildStage
    tool: str
    args: list[str]
    produces: Path
    cwd: Path | None = None

    @property
    def argv(self) -> list[str]:
        return [self.tool, *self.args]


class PipelineJob(BaseModel):
    source_path: Path
    stages: list[StageInvocation]
    artifacts: dict[BuildStage, Path]
    staged_files: list[Path] = Field(default_factory=list)


class BuildResult(BaseModel):
    source_path: Path
    output_path: Path
    artifacts: dict[BuildStage, Path]
    stage_results: list[ProcessResult]
    total_latency_ms: int


class BuildPipeline:
    """Turns one contract source file into one deployable binary.

    Stages run strictly in order: front-end compile (source → IR), code
    generation (IR → object) and link (object + undefined-symbol allow-list →
    binary). The first stage that fails aborts the job with a
    :class:`BuildError`; later stages are never started and nothing is
    retried.

    Args:
        settings: Tool paths, optimisation levels, target and export list.
        runner: Process runner used for every stage.
        env: Environment overrides for the tools (see
            :func:`~contract_ide.process.environment.toolchain_env`).
        staging_root: Where scratch inputs such as the symbol list are written.
    """

    def __init__(
        self,
        settings: BuildSettings,
        runner: ProcessRunner,
        *,
        env: Mapping[str, str] | None = None,
        staging_root: str | Path | None = None,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._env = dict(env or {})
        self._staging_root = staging_root

    def __repr__(self) -> str:
        return f"BuildPipeline(target={self._settings.target_triple!r})"

    def plan(self, source_path: str | Path, staging: TempFileStaging | None = None) -> PipelineJob:
        """Resolve artifacts and render every stage's command line.

        Writes the undefined-symbol allow-list as a side effect.

        Raises:
            ConfigurationError: If a tool path is not configured.
            FileNotFoundError: If *source_path* does not exist.
        """
        settings = self._settings
        for name in ("clang_path", "llc_path", "wasm_ld_path"):
            if not getattr(settings, name):
                raise ConfigurationError(
                    f"Build tool {name!r} is not configured.", code="ERR_CONFIG"
                )

        source = Path(source_path)
        if not source.is_file():
            raise FileNotFoundError(f"Source file not found: {source}")

        staging = staging or TempFileStaging(self._staging_root)
        syms_path = staging.create(
            SYMS_FILE_NAME, "\n".join(settings.allowed_undefined_symbols)
        )

        artifacts = {
            BuildStage.COMPILE: source.with_suffix(".ll"),
            BuildStage.CODEGEN: source.with_suffix(".o"),
            BuildStage.LINK: wasm_path_for(source),
        }
        variables = {
            "compile_level": settings.compile_opt_level,
            "codegen_level": settings.codegen_opt_level,
            "emit_flag": settings.emit_flag,
            "target": settings.target_triple,
            "source": str(source),
            "ir": str(artifacts[BuildStage.COMPILE]),
            "obj": str(artifacts[BuildStage.CODEGEN]),
            "out": str(artifacts[BuildStage.LINK]),
            "syms": str(syms_path),
        }

        def render(template: tuple[str, ...]) -> list[str]:
            return [part.format(**variables) for part in template]

        link_args = render(_LINK_ARGS) + [f"-export={symbol}" for symbol in settings.exports]

        stages = [
            # clang -cc1 writes its IR next to the input, so run it from there.
            StageInvocation(
                stage=BuildStage.COMPILE,
                tool=settings.clang_path,
                args=render(_COMPILE_ARGS),
                produces=artifacts[BuildStage.COMPILE],
                cwd=source.parent,
            ),
            StageInvocation(
                stage=BuildStage.CODEGEN,
                tool=settings.llc_path,
                args=render(_CODEGEN_ARGS),
                produces=artifacts[BuildStage.CODEGEN],
            ),
            StageInvocation(
                stage=BuildStage.LINK,
                tool=settings.wasm_ld_path,
                args=link_args,
                produces=artifacts[BuildStage.LINK],
            ),
        ]
        return PipelineJob(
            source_path=source,
            stages=stages,
            artifacts=artifacts,
            staged_files=[syms_path],
        )

    async def run(self, job: PipelineJob) -> BuildResult:
        """Execute the job's stages in order.

        Raises:
            BuildError: At the first stage whose process exits non-zero or
                cannot be started. The message ends with that stage's stderr.
        """
        start_ms = _now_ms()
        stage_results: list[ProcessResult] = []

        for index, stage in enumerate(job.stages):
            log = logger.bind(stage=str(stage.stage), index=index, source=str(job.source_path))
            log.info("build_stage_start", command=stage.argv)
            try:
                result = await self._runner.run(stage.argv, env=self._env, cwd=stage.cwd)
            except ProcessError as exc:
                log.warning("build_stage_failed", exit_code=exc.exit_code)
                raise BuildError(
                    f"Build failed at stage {index + 1} ({stage.stage}):\n{exc.stderr}",
                    stage_index=index,
                    stage=stage.stage,
                    command=stage.argv,
                    exit_code=exc.exit_code,
                    stdout=exc.stdout,
                    stderr=exc.stderr,
                ) from exc
            stage_results.append(result)
            log.info("build_stage_done")

        return BuildResult(
            source_path=job.source_path,
            output_path=job.artifacts[BuildStage.LINK],
            artifacts=dict(job.artifacts),
            stage_results=stage_results,
            total_latency_ms=_now_ms() - start_ms,
        )

    async def build(self, source_path: str | Path) -> BuildResult:
        """Plan and run a full build of *source_path*."""
        staging = TempFileStaging(self._staging_root)
        job = self.plan(source_path, staging)
        try:
            result = await self.run(job)
        finally:
            if not self._settings.keep_artifacts:
                staging.cleanup()
        logger.info(
            "build_done",
            source=str(result.source_path),
            output=str(result.output_path),
            latency_ms=result.total_latency_ms,
        )
        return result
