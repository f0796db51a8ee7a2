from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

# Host functions the VM provides to contracts; the linker must leave them undefined.
DEFAULT_ALLOWED_UNDEFINED_SYMBOLS: tuple[str, ...] = (
    "getOwner",
    "getExternalBalance",
    "blockHash",
    "transfer",
    "getArgument",
    "getArgumentAsInt64",
    "getFunction",
    "getNumArguments",
    "storageStore",
    "storageLoad",
    "storageStoreAsInt64",
    "storageLoadAsInt64",
    "getCaller",
    "getCallValue",
    "getCallValueAsInt64",
    "logMessage",
    "writeLog",
    "finish",
    "getBlockTimestamp",
    "signalError",
)

DEFAULT_EXPORTS: tuple[str, ...] = ("_main", "do_balance", "topUp", "transfer")


class BuildSettings(BaseModel):
    clang_path: str = "clang"
    llc_path: str = "llc"
    wasm_ld_path: str = "wasm-ld"
    compile_opt_level: str = "fast"
    codegen_opt_level: str = "3"
    target_triple: str = "wasm32-unknown-unknown-wasm"
    emit_flag: str = "-emit-llvm"
    """Front-end flag that makes ``clang -cc1`` write textual IR next to the source."""
    exports: list[str] = Field(default_factory=lambda: list(DEFAULT_EXPORTS))
    allowed_undefined_symbols: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_UNDEFINED_SYMBOLS)
    )
    keep_artifacts: bool = True
    """Keep staged scratch files (symbol list) after the build for debugging."""


class ServerSettings(BaseModel):
    tool_path: str = ""
    config_path: str = ""
    port: int = Field(default=8080, ge=1, le=65535)
    kill_command: list[str] = Field(default_factory=lambda: ["fuser", "-k", "{port}/tcp"])
    """Best-effort command that frees the port; ``{port}`` is substituted."""
    reclaim_timeout: float = Field(default=10.0, gt=0)


class DebugSettings(BaseModel):
    node_debug_path: str = ""
    output_file_name: str = "simple_output.txt"


class AssistantSettings(BaseModel):
    ask_anything_enabled: bool = True


class HostConfig(BaseModel):
    sdk_path_relative_to_home: str = "ElrondSDK"
    build: BuildSettings = Field(default_factory=BuildSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    debug: DebugSettings = Field(default_factory=DebugSettings)
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True

    @property
    def sdk_path(self) -> Path:
        return Path.home() / self.sdk_path_relative_to_home

    @classmethod
    def from_env(cls) -> HostConfig:
        """Create a :class:`HostConfig` from ``CONTRACT_IDE_*`` environment variables.

        Reads the following env vars (all optional):

        * ``CONTRACT_IDE_SDK_PATH`` → ``sdk_path_relative_to_home``
        * ``CONTRACT_IDE_CLANG_PATH`` / ``CONTRACT_IDE_LLC_PATH`` /
          ``CONTRACT_IDE_WASM_LD_PATH`` → ``build.*_path``
        * ``CONTRACT_IDE_SERVER_PATH`` → ``server.tool_path``
        * ``CONTRACT_IDE_SERVER_CONFIG`` → ``server.config_path``
        * ``CONTRACT_IDE_SERVER_PORT`` → ``server.port`` (integer)
        * ``CONTRACT_IDE_NODE_DEBUG_PATH`` → ``debug.node_debug_path``
        * ``CONTRACT_IDE_LOG_LEVEL`` → ``log_level``

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}
        build: dict[str, Any] = {}
        server: dict[str, Any] = {}
        debug: dict[str, Any] = {}

        sdk_path = os.environ.get("CONTRACT_IDE_SDK_PATH")
        if sdk_path:
            kwargs["sdk_path_relative_to_home"] = sdk_path

        for env_name, key in (
            ("CONTRACT_IDE_CLANG_PATH", "clang_path"),
            ("CONTRACT_IDE_LLC_PATH", "llc_path"),
            ("CONTRACT_IDE_WASM_LD_PATH", "wasm_ld_path"),
        ):
            value = os.environ.get(env_name)
            if value:
                build[key] = value

        tool_path = os.environ.get("CONTRACT_IDE_SERVER_PATH")
        if tool_path:
            server["tool_path"] = tool_path

        config_path = os.environ.get("CONTRACT_IDE_SERVER_CONFIG")
        if config_path:
            server["config_path"] = config_path

        port_str = os.environ.get("CONTRACT_IDE_SERVER_PORT")
        if port_str:
            server["port"] = int(port_str)

        node_debug_path = os.environ.get("CONTRACT_IDE_NODE_DEBUG_PATH")
        if node_debug_path:
            debug["node_debug_path"] = node_debug_path

        log_level = os.environ.get("CONTRACT_IDE_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.upper()

        if build:
            kwargs["build"] = BuildSettings(**build)
        if server:
            kwargs["server"] = ServerSettings(**server)
        if debug:
            kwargs["debug"] = DebugSettings(**debug)

        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: str | Path) -> HostConfig:
        """Load a :class:`HostConfig` from a JSON settings file."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
