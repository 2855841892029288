"""External process execution with typed results.

Every toolchain invocation goes through a :class:`Runner`.  Commands are
always argument vectors, stdout and stderr are captured as a single combined
stream, and a non-zero exit becomes a :class:`~aotc.errors.ToolFailureError`
carrying the command line and the captured output.
"""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from aotc.errors import ToolFailureError, ToolNotFoundError
from aotc.observability import StructuredLogger


@dataclass(frozen=True, slots=True)
class ProcessResult:
    argv: tuple[str, ...]
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Runner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        *,
        stage: str,
        input: str | None = None,
        arch: str | None = None,
        check: bool = True,
    ) -> ProcessResult:
        """Run *argv* to completion and return its combined output."""


@dataclass(slots=True)
class SubprocessRunner:
    logger: StructuredLogger = field(default_factory=StructuredLogger)

    def run(
        self,
        argv: Sequence[str],
        *,
        stage: str,
        input: str | None = None,
        arch: str | None = None,
        check: bool = True,
    ) -> ProcessResult:
        command = tuple(str(part) for part in argv)
        tool = Path(command[0]).name
        self.logger.log(
            operation="invoke",
            input=input,
            arch=arch,
            stage=stage,
            tool=tool,
            message=shlex.join(command),
        )
        returncode, output = self._execute(command)
        result = ProcessResult(argv=command, returncode=returncode, output=output)
        if check and not result.ok:
            self.logger.log(
                operation="tool_failure",
                input=input,
                arch=arch,
                stage=stage,
                tool=tool,
                message=f"`{tool}` exited with status {returncode}.",
                level="error",
            )
            raise ToolFailureError(
                f"`{tool}` failed during {stage}.",
                command=command,
                output=output,
                returncode=returncode,
                hint="Inspect the captured tool output for details.",
                context={"stage": stage, "input": input or "", "arch": arch or ""},
            )
        return result

    def _execute(self, command: tuple[str, ...]) -> tuple[int, str]:
        try:
            completed = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(
                f"Unable to execute `{command[0]}`.",
                hint="Ensure the toolchain is installed and the path is executable.",
                context={"tool": command[0]},
            ) from exc
        return completed.returncode, completed.stdout or ""
