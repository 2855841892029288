"""Loadable bundle assembly."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from aotc.assemblers.base import LinkContext
from aotc.glue import render_bundle_glue
from aotc.models import CompiledUnit, LinkInput

BUNDLE_STRIP_FLAGS = ("-x",)


@dataclass(slots=True)
class BundleAssembler:
    context: LinkContext

    def assemble(self, unit: CompiledUnit, output: Path) -> Path:
        glue = render_bundle_glue(LinkInput.from_unit(unit))
        glue_object = self.context.compile_glue(glue, name=unit.source.stem)
        self.context.link(
            output=output,
            objects=[glue_object, unit.path],
            mode_flags=["-bundle"],
            libraries=self.context.runtime_flags,
        )
        return self.context.strip(output, BUNDLE_STRIP_FLAGS)
