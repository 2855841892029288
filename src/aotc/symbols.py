"""Entry point recovery from previously compiled objects."""

from __future__ import annotations

import warnings
from pathlib import Path

from aotc.models import ENTRY_POINT_EXCLUDED, ENTRY_POINT_PREFIX, EntryPoint
from aotc.process import Runner

# Defined external symbols, names only
NM_DEFINED_EXPORTS_FLAGS = ("-g", "-U", "-j")


class AmbiguousEntryPointWarning(UserWarning):
    """Warning raised when an object exports more than one candidate entry point."""


def parse_entry_point(listing: str, *, source: Path | None = None) -> EntryPoint | None:
    """Pick the entry point out of an ``nm -g -U -j`` symbol listing.

    The first exported name that carries the entry point prefix and does not
    contain the excluded marker wins.
    """
    candidates: list[str] = []
    for line in listing.splitlines():
        name = line.strip()
        if not name:
            continue
        # Mach-O prepends an underscore to C symbols
        if name.startswith("_"):
            name = name[1:]
        if name.startswith(ENTRY_POINT_PREFIX) and ENTRY_POINT_EXCLUDED not in name:
            candidates.append(name)
    # Fat objects list the same symbol once per architecture slice
    candidates = list(dict.fromkeys(candidates))
    if not candidates:
        return None
    if len(candidates) > 1:
        warnings.warn(
            (
                f"{source or 'object'} exports {len(candidates)} entry point candidates; "
                f"using `{candidates[0]}`."
            ),
            AmbiguousEntryPointWarning,
            stacklevel=2,
        )
    return EntryPoint(candidates[0])


def scan_entry_point(runner: Runner, nm: Path, obj: Path) -> EntryPoint | None:
    result = runner.run(
        [str(nm), *NM_DEFINED_EXPORTS_FLAGS, str(obj)],
        stage="symbols",
        input=str(obj),
    )
    return parse_entry_point(result.output, source=obj)
