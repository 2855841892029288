"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from aotc.driver import BuildDriver
from aotc.observability import StructuredLogger
from aotc.toolchain import Toolchain, ToolPaths

from fakes import FakeToolchainRunner


@pytest.fixture
def tool_paths() -> ToolPaths:
    bin_dir = Path("/opt/aotc-test/bin")
    return ToolPaths(
        frontend=bin_dir / "macruby",
        backend=bin_dir / "llc",
        cc=bin_dir / "clang",
        lipo=bin_dir / "lipo",
        nm=bin_dir / "nm",
        strip=bin_dir / "strip",
    )


@pytest.fixture
def toolchain(tmp_path: Path) -> Toolchain:
    """Toolchain rooted in a throwaway runtime prefix."""
    prefix = tmp_path / "runtime" / "usr"
    (prefix / "lib").mkdir(parents=True)
    return Toolchain(prefix=prefix, frameworks_root=tmp_path / "Frameworks")


@pytest.fixture
def scratch_parent(tmp_path: Path) -> Path:
    parent = tmp_path / "scratch"
    parent.mkdir()
    return parent


@pytest.fixture
def make_driver(
    toolchain: Toolchain,
    tool_paths: ToolPaths,
    scratch_parent: Path,
) -> Callable[..., tuple[BuildDriver, FakeToolchainRunner]]:
    """Build a driver wired to a fake toolchain runner."""

    def factory(**runner_options: object) -> tuple[BuildDriver, FakeToolchainRunner]:
        logger = StructuredLogger()
        runner = FakeToolchainRunner(logger=logger, **runner_options)  # type: ignore[arg-type]
        driver = BuildDriver(
            toolchain=toolchain,
            logger=logger,
            runner=runner,
            locator=lambda _: tool_paths,
            scratch_parent=scratch_parent,
        )
        return driver, runner

    return factory


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    source = tmp_path / "src" / "hello.rb"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text('puts "hello"\n', encoding="utf-8")
    return source
