"""Toolchain configuration and executable lookup."""

from __future__ import annotations

import os
import platform
import re
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from aotc.errors import ToolNotFoundError
from aotc.models import SUPPORTED_ARCHS, Arch
from aotc.process import Runner

TOOL_NAMES = ("frontend", "backend", "cc", "lipo", "nm", "strip")

# Checked in order; the first flag the backend advertises wins
EH_FLAG_CANDIDATES = ("-disable-cfi", "-enable-eh")

HOST_ARCH_ALIASES: dict[str, Arch] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "i386": "i386",
    "i686": "i386",
    "arm64": "arm64",
    "aarch64": "arm64",
}


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Where the toolchain and the language runtime live, and how to link it."""

    frontend: str = "macruby"
    backend: str = "llc"
    cc: str = "clang"
    lipo: str = "lipo"
    nm: str = "nm"
    strip: str = "strip"
    prefix: Path = Path("/Library/Frameworks/MacRuby.framework/Versions/Current/usr")
    runtime_library: str = "macruby"
    static_library: str = "libmacruby-static.a"
    static_dependencies: tuple[str, ...] = (
        "-lobjc",
        "-licucore",
        "-lauto",
        "-lz",
        "-framework",
        "Foundation",
    )
    frameworks_root: Path = Path("/System/Library/Frameworks")
    source_extension: str = ".rb"
    object_extension: str = ".o"
    bundle_extension: str = ".rbo"
    library_extensions: tuple[str, ...] = (".dylib", ".so")
    sdk: Path | None = None

    @property
    def bin_dir(self) -> Path:
        return self.prefix / "bin"

    @property
    def lib_dir(self) -> Path:
        return self.prefix / "lib"

    @property
    def static_library_path(self) -> Path:
        return self.lib_dir / self.static_library

    def for_sdk(self, sdk: Path) -> Toolchain:
        """Re-root runtime and framework search paths under *sdk*."""
        return replace(
            self,
            prefix=_reroot(sdk, self.prefix),
            frameworks_root=_reroot(sdk, self.frameworks_root),
            sdk=sdk,
        )

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> Toolchain:
        """Apply ``AOTC_<TOOL>`` and ``AOTC_PREFIX`` overrides to the defaults."""
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for name in TOOL_NAMES:
            value = env.get(f"AOTC_{name.upper()}")
            if value:
                overrides[name] = value
        prefix = env.get("AOTC_PREFIX")
        if prefix:
            overrides["prefix"] = Path(prefix)
        return cls(**overrides)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class ToolPaths:
    frontend: Path
    backend: Path
    cc: Path
    lipo: Path
    nm: Path
    strip: Path


def locate_tools(toolchain: Toolchain, *, search_path: str | None = None) -> ToolPaths:
    """Resolve every tool of *toolchain* to an absolute executable path.

    Bare names are searched in the runtime's ``bin`` directory first, then on
    ``PATH``.  Names containing a path separator are taken as-is and must
    point at an executable file.
    """
    path = search_path if search_path is not None else os.environ.get("PATH", "")
    lookup = os.pathsep.join([str(toolchain.bin_dir), path]) if path else str(toolchain.bin_dir)
    resolved: dict[str, Path] = {}
    for name in TOOL_NAMES:
        configured: str = getattr(toolchain, name)
        if os.sep in configured:
            candidate = Path(configured)
            found = str(candidate) if _is_executable(candidate) else None
        else:
            found = shutil.which(configured, path=lookup)
        if found is None:
            raise ToolNotFoundError(
                f"Required tool `{configured}` was not found.",
                hint=f"Install it or point AOTC_{name.upper()} at the executable.",
                context={"tool": name, "name": configured},
            )
        resolved[name] = Path(found).absolute()
    return ToolPaths(**resolved)


def probe_eh_flags(runner: Runner, backend: Path) -> tuple[str, ...]:
    """Ask the backend which exception-handling flag it supports."""
    result = runner.run([str(backend), "-help"], stage="probe", check=False)
    advertised = set(re.findall(r"-[A-Za-z][\w-]*", result.output))
    for flag in EH_FLAG_CANDIDATES:
        if flag in advertised:
            return (flag,)
    return ()


def default_archs() -> tuple[Arch, ...]:
    arch = HOST_ARCH_ALIASES.get(platform.machine().lower())
    if arch is None or arch not in SUPPORTED_ARCHS:
        return ("x86_64",)
    return (arch,)


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _reroot(root: Path, path: Path) -> Path:
    return root / path.relative_to(path.anchor) if path.is_absolute() else root / path
