"""Build orchestration: validate a request, compile, assemble, clean up.

A run moves through ``validate -> compile-only | link -> assemble -> strip ->
cleanup``.  Validation never touches the filesystem beyond ``stat`` calls and
never starts a process, so an invalid request has no side effects.  Scratch
files live in a :class:`~aotc.session.TempSession` that is removed on every
exit path.
"""

from __future__ import annotations

import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from aotc.assemblers import BundleAssembler, DylibAssembler, ExecutableAssembler, LinkContext
from aotc.compiler import ObjectCompiler
from aotc.errors import (
    AotcError,
    InvalidFirstInputError,
    InvalidInputError,
    InvalidSDKError,
    MissingOutputError,
    UnsupportedStaticError,
)
from aotc.frameworks import bridging_flags
from aotc.models import BuildRequest, BuildResult, EntryPoint, LinkInput
from aotc.observability import StructuredLogger
from aotc.process import Runner, SubprocessRunner
from aotc.session import TempSession
from aotc.symbols import scan_entry_point
from aotc.toolchain import Toolchain, ToolPaths, locate_tools, probe_eh_flags


# Linker options that take one value and are only accepted for dynamic libraries
DYLIB_ONLY_LINKER_FLAGS = ("-compatibility_version", "-current_version", "-install_name")


class IgnoredOptionWarning(UserWarning):
    """Warning raised when an option has no effect for the requested output kind."""


@dataclass(slots=True)
class BuildDriver:
    toolchain: Toolchain = field(default_factory=Toolchain)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    runner: Runner | None = None
    locator: Callable[[Toolchain], ToolPaths] = locate_tools
    scratch_parent: Path | None = None

    def validate(self, request: BuildRequest) -> Toolchain:
        """Check everything that can be checked without side effects.

        Returns the toolchain layout to link against, re-rooted under the SDK
        when one is configured.
        """
        layout = self.toolchain
        if request.sdk is not None:
            if not request.sdk.is_dir():
                raise InvalidSDKError(
                    "SDK path does not exist.",
                    hint="Point --sdk at an installed SDK root.",
                    context={"sdk": str(request.sdk)},
                )
            layout = layout.for_sdk(request.sdk)
        if request.static and not layout.static_library_path.exists():
            raise UnsupportedStaticError(
                "This toolchain cannot build static executables.",
                hint="Install the static runtime library or drop --static.",
                context={"library": str(layout.static_library_path)},
            )
        if request.kind == "dylib" and request.output is None:
            raise MissingOutputError(
                "Building a dynamic library requires an explicit output path.",
                hint="Pass -o <name>.dylib.",
            )
        for path in request.inputs:
            self._validate_input(request, path)
        if request.kind == "executable" and request.inputs[0].suffix in layout.library_extensions:
            raise InvalidFirstInputError(
                "A dynamic library cannot serve as the program body.",
                hint="List a source module (or an object compiled from one) first.",
                context={"input": str(request.inputs[0])},
            )
        if request.frameworks and request.kind != "executable":
            warnings.warn(
                f"Frameworks are only linked into executables; ignoring them for `{request.kind}`.",
                IgnoredOptionWarning,
                stacklevel=2,
            )
        ignored = [flag for flag in request.linker_flags if flag in DYLIB_ONLY_LINKER_FLAGS]
        if ignored and request.kind != "dylib":
            warnings.warn(
                (
                    f"{', '.join(ignored)} only apply to dynamic libraries; "
                    f"ignoring them for `{request.kind}`."
                ),
                IgnoredOptionWarning,
                stacklevel=2,
            )
        return layout

    def run(self, request: BuildRequest) -> BuildResult:
        layout = self.validate(request)
        tools = self.locator(self.toolchain)
        runner = self._runner()
        self.logger.log(
            operation="build_start",
            input=None,
            arch=None,
            stage="validate",
            tool=None,
            message=f"Building {request.kind} from {len(request.inputs)} input(s).",
            extra={"archs": list(request.archs)},
        )
        with TempSession(parent=self.scratch_parent) as session:
            try:
                artifacts = self._build(request, layout, tools, runner, session)
            except AotcError as exc:
                self.logger.log(
                    operation="build_failed",
                    input=None,
                    arch=None,
                    stage=exc.context.get("stage"),
                    tool=None,
                    message=exc.message,
                    level="error",
                    extra={"code": exc.code},
                )
                raise
        self.logger.log(
            operation="build_complete",
            input=None,
            arch=None,
            stage="cleanup",
            tool=None,
            message="Build finished.",
            extra={"artifacts": [str(path) for path in artifacts]},
        )
        return BuildResult(artifacts=tuple(artifacts), logs=list(self.logger.records))

    def _build(
        self,
        request: BuildRequest,
        layout: Toolchain,
        tools: ToolPaths,
        runner: Runner,
        session: TempSession,
    ) -> list[Path]:
        prebuilt: dict[Path, EntryPoint | None] = {}
        if not request.compile_only:
            prebuilt = self._scan_prebuilt(request, layout, tools, runner)

        has_sources = any(path.suffix == layout.source_extension for path in request.inputs)
        eh_flags = probe_eh_flags(runner, tools.backend) if has_sources else ()
        frontend_flags = (
            bridging_flags(layout, request.frameworks) if request.static else ()
        )
        compiler = ObjectCompiler(
            tools=tools,
            runner=runner,
            session=session,
            archs=request.archs,
            object_extension=layout.object_extension,
            bridging_flags=frontend_flags,
            eh_flags=eh_flags,
            jobs=request.jobs,
        )
        context = LinkContext(
            tools=tools,
            runner=runner,
            session=session,
            toolchain=layout,
            archs=request.archs,
        )

        if request.kind == "object":
            return [compiler.compile(path, request.output).path for path in request.inputs]

        if request.kind == "bundle":
            assembler = BundleAssembler(context)
            artifacts: list[Path] = []
            for path in request.inputs:
                unit = compiler.compile(path, session.allocate(path.stem, layout.object_extension))
                output = request.output or path.with_suffix(layout.bundle_extension)
                artifacts.append(assembler.assemble(unit, output))
            return artifacts

        link_inputs = self._link_inputs(request, layout, session, compiler, prebuilt)
        if request.kind == "dylib":
            return [
                DylibAssembler(context).assemble(
                    link_inputs,
                    request.output,
                    linker_flags=request.linker_flags,
                )
            ]
        output = request.output or request.inputs[0].with_suffix("")
        return [
            ExecutableAssembler(context).assemble(
                link_inputs,
                output,
                static=request.static,
                frameworks=request.frameworks,
                linker_flags=_without_dylib_flags(request.linker_flags),
            )
        ]

    def _scan_prebuilt(
        self,
        request: BuildRequest,
        layout: Toolchain,
        tools: ToolPaths,
        runner: Runner,
    ) -> dict[Path, EntryPoint | None]:
        """Recover entry points of prebuilt objects before anything is compiled.

        A prebuilt first input without an entry point fails an executable
        build here, ahead of the compile pipeline.
        """
        entry_points: dict[Path, EntryPoint | None] = {}
        for path in request.inputs:
            if path.suffix != layout.object_extension or path in entry_points:
                continue
            entry_point = scan_entry_point(runner, tools.nm, path)
            entry_points[path] = entry_point
            if entry_point is not None:
                continue
            if request.kind == "executable" and path == request.inputs[0]:
                raise InvalidFirstInputError(
                    "The first input must provide an entry point to serve as the program body.",
                    hint="List a source module (or an object compiled from one) first.",
                    context={"input": str(path), "stage": "symbols"},
                )
            self.logger.log(
                operation="pass_through",
                input=str(path),
                arch=None,
                stage="symbols",
                tool=None,
                message="No entry point found; linking as pass-through input.",
            )
        return entry_points

    def _link_inputs(
        self,
        request: BuildRequest,
        layout: Toolchain,
        session: TempSession,
        compiler: ObjectCompiler,
        prebuilt: dict[Path, EntryPoint | None],
    ) -> list[LinkInput]:
        link_inputs: list[LinkInput] = []
        for path in request.inputs:
            if path.suffix == layout.source_extension:
                scratch = session.allocate(path.stem, layout.object_extension)
                link_inputs.append(LinkInput.from_unit(compiler.compile(path, scratch)))
            else:
                link_inputs.append(LinkInput(path=path, entry_point=prebuilt.get(path)))
        return link_inputs

    def _validate_input(self, request: BuildRequest, path: Path) -> None:
        layout = self.toolchain
        if not path.is_file():
            raise InvalidInputError(
                "Can't read input file.",
                context={"input": str(path)},
            )
        if request.compile_only:
            allowed: tuple[str, ...] = (layout.source_extension,)
        else:
            allowed = (
                layout.source_extension,
                layout.object_extension,
                *layout.library_extensions,
            )
        if path.suffix not in allowed:
            raise InvalidInputError(
                f"Input has an unsupported extension for `{request.kind}` builds.",
                hint=f"Expected one of: {', '.join(allowed)}.",
                context={"input": str(path), "kind": request.kind},
            )

    def _runner(self) -> Runner:
        if self.runner is None:
            self.runner = SubprocessRunner(logger=self.logger)
        return self.runner


def _without_dylib_flags(flags: tuple[str, ...]) -> tuple[str, ...]:
    kept: list[str] = []
    skip_value = False
    for flag in flags:
        if skip_value:
            skip_value = False
        elif flag in DYLIB_ONLY_LINKER_FLAGS:
            skip_value = True
        else:
            kept.append(flag)
    return tuple(kept)


def build(request: BuildRequest, *, toolchain: Toolchain | None = None) -> BuildResult:
    """Run *request* with a default driver."""
    driver = BuildDriver(toolchain=toolchain or Toolchain.from_environ())
    return driver.run(request)
