"""Child-process environment for the vendored contract toolchain."""

from __future__ import annotations

import os
from pathlib import Path


def toolchain_env(sdk_path: str | Path, base_path: str | None = None) -> dict[str, str]:
    """Return the environment overrides that expose the SDK toolchain.

    ``PATH`` is prepended with the SDK root, the vendored Rust ``bin`` dir and
    the VM tools dir; ``RUSTUP_HOME`` / ``CARGO_HOME`` point at the vendored
    Rust root.

    Args:
        sdk_path: Root of the installed SDK.
        base_path: ``PATH`` to extend; defaults to the current process's.
    """
    sdk = Path(sdk_path)
    rust_folder = sdk / "vendor-rust"
    entries = [str(sdk), str(rust_folder / "bin"), str(sdk / "vmtools")]
    inherited = os.environ.get("PATH", "") if base_path is None else base_path
    if inherited:
        entries.append(inherited)
    return {
        "PATH": os.pathsep.join(entries),
        "RUSTUP_HOME": str(rust_folder),
        "CARGO_HOME": str(rust_folder),
    }
