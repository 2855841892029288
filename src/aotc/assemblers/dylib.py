"""Dynamic library assembly."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from aotc.assemblers.base import LinkContext
from aotc.errors import MissingOutputError
from aotc.glue import render_dylib_glue
from aotc.models import LinkInput

DYLIB_STRIP_FLAGS = ("-x",)


@dataclass(slots=True)
class DylibAssembler:
    context: LinkContext

    def assemble(
        self,
        inputs: Sequence[LinkInput],
        output: Path | None,
        *,
        linker_flags: Sequence[str] = (),
    ) -> Path:
        """Link *inputs* into a dynamic library that registers them on load.

        Inputs without an entry point contribute code but are not registered.
        """
        if output is None:
            raise MissingOutputError(
                "Building a dynamic library requires an explicit output path.",
                hint="Pass -o <name>.dylib.",
            )
        glue = render_dylib_glue(inputs)
        glue_object = self.context.compile_glue(glue, name=output.stem)
        self.context.link(
            output=output,
            objects=[glue_object, *(item.path for item in inputs)],
            mode_flags=["-dynamiclib"],
            libraries=self.context.runtime_flags,
            extra_flags=linker_flags,
        )
        return self.context.strip(output, DYLIB_STRIP_FLAGS)
