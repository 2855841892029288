"""Framework bridging metadata lookup for static executables."""

from __future__ import annotations

import warnings
from collections.abc import Iterable
from pathlib import Path

from aotc.toolchain import Toolchain


class BridgingMetadataWarning(UserWarning):
    """Warning raised when a requested framework ships no bridging metadata."""


def bridgesupport_path(toolchain: Toolchain, framework: str) -> Path:
    return (
        toolchain.frameworks_root
        / f"{framework}.framework"
        / "Resources"
        / "BridgeSupport"
        / f"{framework}.bridgesupport"
    )


def bridging_flags(toolchain: Toolchain, frameworks: Iterable[str]) -> tuple[str, ...]:
    """Return frontend flags loading the metadata of every framework found."""
    flags: list[str] = []
    for framework in frameworks:
        path = bridgesupport_path(toolchain, framework)
        if not path.exists():
            warnings.warn(
                f"Couldn't locate bridging metadata for framework `{framework}`.",
                BridgingMetadataWarning,
                stacklevel=2,
            )
            continue
        flags.extend(["--uses-bs", str(path)])
    return tuple(flags)
