"""Shared link-stage helpers for artifact assemblers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from aotc.errors import ToolFailureError
from aotc.models import Arch
from aotc.process import Runner
from aotc.session import TempSession
from aotc.toolchain import Toolchain, ToolPaths


@dataclass(slots=True)
class LinkContext:
    """Everything an assembler needs to compile glue, link and strip."""

    tools: ToolPaths
    runner: Runner
    session: TempSession
    toolchain: Toolchain
    archs: tuple[Arch, ...]

    @property
    def arch_flags(self) -> list[str]:
        flags: list[str] = []
        for arch in self.archs:
            flags.extend(["-arch", arch])
        return flags

    @property
    def sysroot_flags(self) -> list[str]:
        if self.toolchain.sdk is None:
            return []
        return ["-isysroot", str(self.toolchain.sdk)]

    @property
    def runtime_flags(self) -> list[str]:
        return [f"-L{self.toolchain.lib_dir}", f"-l{self.toolchain.runtime_library}"]

    def compile_glue(self, source_text: str, *, name: str) -> Path:
        glue_source = self.session.allocate(f"{name}-glue", ".cpp")
        glue_source.write_text(source_text, encoding="utf-8")
        glue_object = self.session.allocate(f"{name}-glue", ".o")
        self.runner.run(
            [
                str(self.tools.cc),
                "-fexceptions",
                "-c",
                "-x",
                "c++",
                *self.arch_flags,
                *self.sysroot_flags,
                str(glue_source),
                "-o",
                str(glue_object),
            ],
            stage="glue",
            input=name,
        )
        return glue_object

    def link(
        self,
        *,
        output: Path,
        objects: Sequence[Path],
        mode_flags: Sequence[str] = (),
        libraries: Sequence[str] = (),
        extra_flags: Sequence[str] = (),
    ) -> Path:
        output.parent.mkdir(parents=True, exist_ok=True)
        self.runner.run(
            [
                str(self.tools.cc),
                "-o",
                str(output),
                *self.arch_flags,
                *self.sysroot_flags,
                *mode_flags,
                *(str(obj) for obj in objects),
                *libraries,
                *extra_flags,
            ],
            stage="link",
            input=output.name,
        )
        return output

    def strip(self, output: Path, flags: Sequence[str] = ()) -> Path:
        try:
            self.runner.run(
                [str(self.tools.strip), *flags, str(output)],
                stage="strip",
                input=output.name,
            )
        except ToolFailureError:
            # An unstripped artifact is never handed out
            output.unlink(missing_ok=True)
            raise
        return output
