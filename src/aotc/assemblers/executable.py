"""Standalone executable assembly."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from aotc.assemblers.base import LinkContext
from aotc.glue import render_executable_glue
from aotc.models import LinkInput


@dataclass(slots=True)
class ExecutableAssembler:
    context: LinkContext

    def assemble(
        self,
        inputs: Sequence[LinkInput],
        output: Path,
        *,
        static: bool = False,
        frameworks: Sequence[str] = (),
        linker_flags: Sequence[str] = (),
    ) -> Path:
        """Link *inputs* behind a generated ``main`` running the first input.

        The glue is rendered before any tool runs, so a first input without an
        entry point fails without invoking the compiler or linker.
        """
        glue = render_executable_glue(inputs)
        glue_object = self.context.compile_glue(glue, name=output.name)
        self.context.link(
            output=output,
            objects=[glue_object, *(item.path for item in inputs)],
            libraries=[
                *self._runtime_libraries(static),
                *_framework_flags(frameworks),
                "-lstdc++",
            ],
            extra_flags=linker_flags,
        )
        return self.context.strip(output)

    def _runtime_libraries(self, static: bool) -> list[str]:
        toolchain = self.context.toolchain
        if static:
            return [str(toolchain.static_library_path), *toolchain.static_dependencies]
        return self.context.runtime_flags


def _framework_flags(frameworks: Sequence[str]) -> list[str]:
    flags: list[str] = []
    for framework in frameworks:
        flags.extend(["-framework", framework])
    return flags
