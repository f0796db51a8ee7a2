"""Tests for core/config.py: HostConfig defaults, from_env() and from_file()."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from contract_ide.core.config import (
    DEFAULT_ALLOWED_UNDEFINED_SYMBOLS,
    BuildSettings,
    HostConfig,
    ServerSettings,
)

_ENV_VARS = (
    "CONTRACT_IDE_SDK_PATH",
    "CONTRACT_IDE_CLANG_PATH",
    "CONTRACT_IDE_LLC_PATH",
    "CONTRACT_IDE_WASM_LD_PATH",
    "CONTRACT_IDE_SERVER_PATH",
    "CONTRACT_IDE_SERVER_CONFIG",
    "CONTRACT_IDE_SERVER_PORT",
    "CONTRACT_IDE_NODE_DEBUG_PATH",
    "CONTRACT_IDE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_build_settings_defaults() -> None:
    settings = BuildSettings()
    assert settings.clang_path == "clang"
    assert settings.compile_opt_level == "fast"
    assert settings.codegen_opt_level == "3"
    assert settings.target_triple == "wasm32-unknown-unknown-wasm"
    assert settings.exports == ["_main", "do_balance", "topUp", "transfer"]
    assert len(settings.allowed_undefined_symbols) == 20
    assert settings.allowed_undefined_symbols[0] == "getOwner"
    assert settings.allowed_undefined_symbols[-1] == "signalError"


def test_allowed_symbols_default_is_a_fresh_list() -> None:
    a = BuildSettings()
    a.allowed_undefined_symbols.append("extra")
    assert BuildSettings().allowed_undefined_symbols == list(DEFAULT_ALLOWED_UNDEFINED_SYMBOLS)


def test_server_settings_defaults() -> None:
    settings = ServerSettings()
    assert settings.port == 8080
    assert settings.kill_command == ["fuser", "-k", "{port}/tcp"]


@pytest.mark.parametrize("port", [0, 70000])
def test_server_port_out_of_range_rejected(port: int) -> None:
    with pytest.raises(ValidationError):
        ServerSettings(port=port)


def test_sdk_path_is_relative_to_home() -> None:
    config = HostConfig(sdk_path_relative_to_home="MySDK")
    assert config.sdk_path == Path.home() / "MySDK"


# ---------------------------------------------------------------------------
# from_env()
# ---------------------------------------------------------------------------


def test_from_env_defaults_when_not_set() -> None:
    config = HostConfig.from_env()
    assert config == HostConfig()


def test_from_env_reads_tool_paths(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTRACT_IDE_CLANG_PATH", "/opt/llvm/clang")
    monkeypatch.setenv("CONTRACT_IDE_LLC_PATH", "/opt/llvm/llc")
    monkeypatch.setenv("CONTRACT_IDE_WASM_LD_PATH", "/opt/llvm/wasm-ld")
    config = HostConfig.from_env()
    assert config.build.clang_path == "/opt/llvm/clang"
    assert config.build.llc_path == "/opt/llvm/llc"
    assert config.build.wasm_ld_path == "/opt/llvm/wasm-ld"


def test_from_env_reads_server_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTRACT_IDE_SERVER_PATH", "/opt/node/debugserver")
    monkeypatch.setenv("CONTRACT_IDE_SERVER_CONFIG", "/opt/node/config.toml")
    monkeypatch.setenv("CONTRACT_IDE_SERVER_PORT", "9090")
    config = HostConfig.from_env()
    assert config.server.tool_path == "/opt/node/debugserver"
    assert config.server.config_path == "/opt/node/config.toml"
    assert config.server.port == 9090


def test_from_env_reads_sdk_and_debug_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTRACT_IDE_SDK_PATH", "Elrond")
    monkeypatch.setenv("CONTRACT_IDE_NODE_DEBUG_PATH", "/opt/node/debug")
    config = HostConfig.from_env()
    assert config.sdk_path_relative_to_home == "Elrond"
    assert config.debug.node_debug_path == "/opt/node/debug"


def test_from_env_log_level_is_upper_cased(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTRACT_IDE_LOG_LEVEL", "debug")
    assert HostConfig.from_env().log_level == "DEBUG"


def test_from_env_empty_value_keeps_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTRACT_IDE_SERVER_PORT", "")
    assert HostConfig.from_env().server.port == 8080


def test_from_env_invalid_port_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONTRACT_IDE_SERVER_PORT", "not-a-port")
    with pytest.raises(ValueError):
        HostConfig.from_env()


# ---------------------------------------------------------------------------
# from_file()
# ---------------------------------------------------------------------------


def test_from_file_loads_nested_sections(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "build": {"clang_path": "clang-9", "exports": ["_main"]},
                "server": {"port": 7000},
                "assistant": {"ask_anything_enabled": False},
            }
        ),
        encoding="utf-8",
    )
    config = HostConfig.from_file(path)
    assert config.build.clang_path == "clang-9"
    assert config.build.exports == ["_main"]
    assert config.server.port == 7000
    assert config.assistant.ask_anything_enabled is False
    assert config.debug.output_file_name == "simple_output.txt"


def test_from_file_rejects_invalid_values(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text('{"log_level": "LOUD"}', encoding="utf-8")
    with pytest.raises(ValidationError):
        HostConfig.from_file(path)
