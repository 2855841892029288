"""Command-line entry point.

Usage:
    aotc [options] FILE...
"""

from __future__ import annotations

import argparse
import shlex
import sys
import warnings
from collections.abc import Sequence
from pathlib import Path

from aotc import __version__
from aotc.driver import BuildDriver
from aotc.errors import AotcError, ToolFailureError
from aotc.models import SUPPORTED_ARCHS, BuildRequest
from aotc.observability import StructuredLogger
from aotc.toolchain import Toolchain, default_archs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aotc",
        description="Compile source modules into native objects, bundles, libraries or executables.",
    )
    parser.add_argument("files", nargs="*", type=Path, metavar="FILE")
    parser.add_argument(
        "-c",
        "--compile-only",
        action="store_true",
        help="Compile to object files without linking",
    )
    parser.add_argument("-o", dest="output", type=Path, help="Write output to OUTPUT")
    parser.add_argument("--static", action="store_true", help="Create a static executable")
    parser.add_argument(
        "--framework",
        dest="frameworks",
        action="append",
        default=[],
        metavar="NAME",
        help="Link standalone executable against the given framework",
    )
    parser.add_argument("--sdk", type=Path, help="Use SDK when compiling standalone executable")
    parser.add_argument("--dylib", action="store_true", help="Create a dynamic library")
    parser.add_argument(
        "--compatibility_version",
        metavar="VERSION",
        help="Compatibility version for dynamic library link",
    )
    parser.add_argument(
        "--current_version",
        metavar="VERSION",
        help="Current version for dynamic library link",
    )
    parser.add_argument(
        "--install_name",
        metavar="NAME",
        help="Install name for dynamic library link",
    )
    parser.add_argument("--bundle", action="store_true", help="Create a loadable bundle")
    parser.add_argument(
        "-a",
        "--arch",
        dest="archs",
        action="append",
        metavar="ARCH",
        help=f"Compile for the given architecture ({', '.join(SUPPORTED_ARCHS)})",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=1,
        help="Compile architectures in parallel with up to JOBS workers",
    )
    parser.add_argument("-V", "--verbose", action="store_true", help="Print every command line executed")
    parser.add_argument("--log-file", type=Path, help="Write structured build logs as JSON lines")
    parser.add_argument("-v", "--version", action="version", version=f"aotc {__version__}")
    return parser


def linker_flags_from(args: argparse.Namespace) -> tuple[str, ...]:
    flags: list[str] = []
    if args.compatibility_version:
        flags.extend(["-compatibility_version", args.compatibility_version])
    if args.current_version:
        flags.extend(["-current_version", args.current_version])
    if args.install_name:
        flags.extend(["-install_name", args.install_name])
    return tuple(flags)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = StructuredLogger(echo=_echo if args.verbose else None)
    driver = BuildDriver(toolchain=Toolchain.from_environ(), logger=logger)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            request = BuildRequest.from_flags(
                inputs=args.files,
                dont_link=args.compile_only,
                bundle=args.bundle,
                dylib=args.dylib,
                static=args.static,
                output=args.output,
                archs=tuple(args.archs or default_archs()),
                sdk=args.sdk,
                frameworks=tuple(args.frameworks),
                linker_flags=linker_flags_from(args),
                verbose=args.verbose,
                jobs=args.jobs,
            )
            driver.run(request)
        except ToolFailureError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            print(f"Command: {shlex.join(exc.command)}", file=sys.stderr)
            if exc.output:
                sys.stderr.write(exc.output if exc.output.endswith("\n") else exc.output + "\n")
            return 1
        except AotcError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1
        finally:
            for warning in caught:
                print(f"Warning: {warning.message}", file=sys.stderr)
            if args.log_file is not None:
                logger.to_json_lines(args.log_file)
    return 0


def _echo(message: str) -> None:
    print(message, file=sys.stderr)
