"""Per-architecture object compilation.

Each source module goes through three external stages per architecture:

- frontend: source -> LLVM bitcode, defining the entry point under a fresh name
- backend: bitcode -> architecture-specific assembly
- cc: assembly -> native object

The per-architecture objects are then merged into one fat object.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from aotc.compiler.merge import merge_architectures
from aotc.models import ARCH_TO_BACKEND, Arch, CompiledUnit, EntryPoint
from aotc.process import Runner
from aotc.session import TempSession
from aotc.toolchain import ToolPaths


@dataclass(slots=True)
class ObjectCompiler:
    tools: ToolPaths
    runner: Runner
    session: TempSession
    archs: tuple[Arch, ...]
    object_extension: str = ".o"
    bridging_flags: tuple[str, ...] = ()
    eh_flags: tuple[str, ...] = ()
    jobs: int = 1

    def compile(self, source: Path, output: Path | None = None) -> CompiledUnit:
        entry_point = EntryPoint.generate()
        destination = output if output is not None else self.default_output(source)

        if self.jobs > 1 and len(self.archs) > 1:
            with ThreadPoolExecutor(max_workers=min(self.jobs, len(self.archs))) as pool:
                objects = list(
                    pool.map(
                        lambda arch: self._compile_arch(source, arch, entry_point),
                        self.archs,
                    )
                )
        else:
            objects = [self._compile_arch(source, arch, entry_point) for arch in self.archs]

        merge_architectures(
            self.runner,
            self.tools.lipo,
            objects,
            destination,
            input=str(source),
        )
        return CompiledUnit(source=source, path=destination, entry_point=entry_point)

    def default_output(self, source: Path) -> Path:
        return source.with_suffix(self.object_extension)

    def _compile_arch(self, source: Path, arch: Arch, entry_point: EntryPoint) -> Path:
        stem = f"{source.stem}-{arch}"
        bitcode = self.session.allocate(stem, ".bc")
        assembly = self.session.allocate(stem, ".s")
        obj = self.session.allocate(stem, ".o")
        context = {"input": str(source), "arch": arch}

        self.runner.run(
            [
                str(self.tools.frontend),
                *self.bridging_flags,
                "--emit-llvm",
                str(bitcode),
                entry_point.symbol,
                str(source),
            ],
            stage="frontend",
            **context,
        )
        self.runner.run(
            [
                str(self.tools.backend),
                "-f",
                str(bitcode),
                f"-o={assembly}",
                f"-march={ARCH_TO_BACKEND[arch]}",
                "-relocation-model=pic",
                *self.eh_flags,
            ],
            stage="backend",
            **context,
        )
        self.runner.run(
            [
                str(self.tools.cc),
                "-fexceptions",
                "-c",
                "-arch",
                arch,
                str(assembly),
                "-o",
                str(obj),
            ],
            stage="assemble",
            **context,
        )
        return obj
