"""Scratch-file bookkeeping for a single build run."""

from __future__ import annotations

import re
import shutil
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Self

from aotc.errors import ValidationError

_UNSAFE_STEM = re.compile(r"[^\w.-]")


@dataclass(slots=True)
class TempSession:
    """Allocates uniquely named scratch files and removes them all on cleanup.

    The scratch directory is only created on the first allocation, so a run
    that fails validation never touches the filesystem.  Allocation is
    thread-safe; cleanup is idempotent.
    """

    prefix: str = "aotc-"
    parent: Path | None = None
    _directory: Path | None = field(init=False, default=None, repr=False)
    _files: list[Path] = field(init=False, default_factory=list, repr=False)
    _lock: threading.Lock = field(init=False, default_factory=threading.Lock, repr=False)
    _closed: bool = field(init=False, default=False, repr=False)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    @property
    def directory(self) -> Path | None:
        return self._directory

    @property
    def files(self) -> tuple[Path, ...]:
        with self._lock:
            return tuple(self._files)

    def allocate(self, stem: str, suffix: str) -> Path:
        with self._lock:
            if self._closed:
                raise ValidationError(
                    "Temporary session was already cleaned up.",
                    context={"stem": stem},
                )
            if self._directory is None:
                parent = str(self.parent) if self.parent is not None else None
                self._directory = Path(tempfile.mkdtemp(prefix=self.prefix, dir=parent))
            safe_stem = _UNSAFE_STEM.sub("_", stem) or "scratch"
            path = self._directory / f"{safe_stem}-{uuid.uuid4().hex[:12]}{suffix}"
            self._files.append(path)
            return path

    def cleanup(self) -> None:
        with self._lock:
            files, self._files = self._files, []
            directory, self._directory = self._directory, None
            self._closed = True
        for path in files:
            path.unlink(missing_ok=True)
        if directory is not None:
            shutil.rmtree(directory, ignore_errors=True)
