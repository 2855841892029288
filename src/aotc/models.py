"""Core typed dataclasses for build requests, compiled units and link inputs."""

from __future__ import annotations

import re
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, get_args

from aotc.errors import (
    ConflictingOptionsError,
    InvalidArchitectureError,
    InvalidInputError,
    ValidationError,
)

Arch = Literal["i386", "x86_64", "arm64"]
OutputKind = Literal["object", "bundle", "dylib", "executable"]

SUPPORTED_ARCHS: tuple[Arch, ...] = get_args(Arch)
OUTPUT_KINDS: tuple[OutputKind, ...] = get_args(OutputKind)

# Pipeline arch names differ from the backend's -march tokens
ARCH_TO_BACKEND: dict[str, str] = {
    "i386": "x86",
    "x86_64": "x86-64",
    "arm64": "aarch64",
}

ENTRY_POINT_PREFIX = "MREP_"
ENTRY_POINT_EXCLUDED = "MREP_ALL"

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_issued_entry_points: set[str] = set()
_issued_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class EntryPoint:
    """Symbol of the function a compiled module exposes to host glue code."""

    symbol: str

    def __post_init__(self) -> None:
        if not IDENTIFIER_PATTERN.fullmatch(self.symbol):
            raise ValidationError(
                "Entry point is not a valid C identifier.",
                hint="Entry points must match [A-Za-z_][A-Za-z0-9_]*.",
                context={"symbol": self.symbol},
            )

    @classmethod
    def generate(cls) -> EntryPoint:
        """Return an entry point never handed out before in this process."""
        with _issued_lock:
            while True:
                symbol = f"{ENTRY_POINT_PREFIX}{uuid.uuid4().hex.upper()}"
                if symbol not in _issued_entry_points:
                    _issued_entry_points.add(symbol)
                    return cls(symbol)

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True, slots=True)
class BuildRequest:
    kind: OutputKind
    inputs: tuple[Path, ...]
    output: Path | None = None
    archs: tuple[Arch, ...] = ("x86_64",)
    sdk: Path | None = None
    frameworks: tuple[str, ...] = ()
    linker_flags: tuple[str, ...] = ()
    static: bool = False
    verbose: bool = False
    jobs: int = 1

    def __post_init__(self) -> None:
        if self.kind not in OUTPUT_KINDS:
            raise ValidationError(
                f"Unknown output kind `{self.kind}`.",
                context={"supported": ", ".join(OUTPUT_KINDS)},
            )
        object.__setattr__(self, "inputs", tuple(Path(p) for p in self.inputs))
        if self.output is not None:
            object.__setattr__(self, "output", Path(self.output))
        if self.sdk is not None:
            object.__setattr__(self, "sdk", Path(self.sdk))
        object.__setattr__(self, "archs", _normalize_archs(self.archs))
        object.__setattr__(self, "frameworks", tuple(self.frameworks))
        object.__setattr__(self, "linker_flags", tuple(self.linker_flags))

        if not self.inputs:
            raise InvalidInputError(
                "No input files given.",
                hint="Pass at least one source module or object file.",
            )
        if self.jobs < 1:
            raise ValidationError(
                "Job count must be at least 1.",
                context={"jobs": str(self.jobs)},
            )
        if self.static and self.kind != "executable":
            raise ConflictingOptionsError(
                "Static compilation is only available when building an executable.",
                context={"kind": self.kind},
            )
        if self.compile_only and self.output is not None and len(self.inputs) > 1:
            raise ConflictingOptionsError(
                "An explicit output path cannot be used with multiple inputs in this mode.",
                hint="Drop -o to get one output per input file.",
                context={"kind": self.kind, "inputs": str(len(self.inputs))},
            )

    @classmethod
    def from_flags(
        cls,
        *,
        inputs: Iterable[str | Path],
        dont_link: bool = False,
        bundle: bool = False,
        dylib: bool = False,
        static: bool = False,
        **options: Any,
    ) -> BuildRequest:
        """Map the command-line flag set onto an output kind."""
        enabled = {
            "dont-link": dont_link,
            "bundle": bundle,
            "dylib": dylib,
            "static": static,
        }
        for first, second in _CONFLICTING_FLAGS:
            if enabled[first] and enabled[second]:
                raise ConflictingOptionsError(
                    f"Cannot use --{first} and --{second} together.",
                    context={"flags": f"{first},{second}"},
                )
        kind: OutputKind
        if dont_link:
            kind = "object"
        elif bundle:
            kind = "bundle"
        elif dylib:
            kind = "dylib"
        else:
            kind = "executable"
        return cls(kind=kind, inputs=tuple(Path(p) for p in inputs), static=static, **options)

    @property
    def compile_only(self) -> bool:
        return self.kind in ("object", "bundle")


_CONFLICTING_FLAGS: tuple[tuple[str, str], ...] = (
    ("dont-link", "bundle"),
    ("dylib", "static"),
    ("dylib", "dont-link"),
    ("dylib", "bundle"),
    ("static", "dont-link"),
    ("static", "bundle"),
)


@dataclass(frozen=True, slots=True)
class CompiledUnit:
    source: Path
    path: Path
    entry_point: EntryPoint


@dataclass(frozen=True, slots=True)
class LinkInput:
    path: Path
    entry_point: EntryPoint | None = None
    feature: str = ""

    def __post_init__(self) -> None:
        if not self.feature:
            object.__setattr__(self, "feature", self.path.stem)

    @classmethod
    def from_unit(cls, unit: CompiledUnit) -> LinkInput:
        return cls(path=unit.path, entry_point=unit.entry_point, feature=unit.source.stem)


@dataclass(slots=True)
class BuildResult:
    artifacts: tuple[Path, ...] = ()
    logs: list[dict[str, Any]] = field(default_factory=list)


def _normalize_archs(archs: Iterable[str]) -> tuple[Arch, ...]:
    ordered: list[Arch] = []
    for arch in archs:
        if arch not in SUPPORTED_ARCHS:
            raise InvalidArchitectureError(
                f"Unsupported architecture `{arch}`.",
                hint="Pick architectures from the supported set.",
                context={"arch": str(arch), "supported": ", ".join(SUPPORTED_ARCHS)},
            )
        if arch not in ordered:
            ordered.append(arch)  # type: ignore[arg-type]
    if not ordered:
        raise InvalidArchitectureError(
            "At least one target architecture is required.",
            context={"supported": ", ".join(SUPPORTED_ARCHS)},
        )
    return tuple(ordered)
