"""Fat-binary assembly from per-architecture objects."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from aotc.errors import ValidationError
from aotc.process import Runner


def merge_architectures(
    runner: Runner,
    lipo: Path,
    objects: Sequence[Path],
    output: Path,
    *,
    input: str | None = None,
) -> Path:
    """Combine one object per architecture into a single multi-arch file at *output*."""
    if not objects:
        raise ValidationError(
            "Cannot merge an empty set of objects.",
            context={"output": str(output)},
        )
    output.parent.mkdir(parents=True, exist_ok=True)
    runner.run(
        [str(lipo), "-create", *(str(obj) for obj in objects), "-output", str(output)],
        stage="merge",
        input=input,
    )
    return output
