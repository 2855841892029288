import warnings
from collections.abc import Callable
from pathlib import Path

import pytest

from aotc.driver import BuildDriver, IgnoredOptionWarning
from aotc.errors import (
    InvalidFirstInputError,
    InvalidInputError,
    InvalidSDKError,
    MissingOutputError,
    ToolFailureError,
    ToolNotFoundError,
    UnsupportedStaticError,
)
from aotc.frameworks import BridgingMetadataWarning, bridgesupport_path
from aotc.models import BuildRequest
from aotc.observability import StructuredLogger
from aotc.toolchain import Toolchain

from fakes import FakeToolchainRunner

DriverFactory = Callable[..., tuple[BuildDriver, FakeToolchainRunner]]


def test_compile_only_writes_object_next_to_source(
    make_driver: DriverFactory,
    source_file: Path,
    scratch_parent: Path,
) -> None:
    driver, runner = make_driver()

    result = driver.run(BuildRequest(kind="object", inputs=(source_file,), archs=("i386", "x86_64")))

    assert result.artifacts == (source_file.with_suffix(".o"),)
    assert result.artifacts[0].exists()
    assert runner.stages() == ["probe"] + ["frontend", "backend", "assemble"] * 2 + ["merge"]
    assert list(scratch_parent.iterdir()) == []


def test_compile_only_is_repeatable(
    make_driver: DriverFactory,
    source_file: Path,
) -> None:
    driver, _ = make_driver()
    request = BuildRequest(kind="object", inputs=(source_file,))

    first = driver.run(request)
    second = driver.run(request)

    assert first.artifacts == second.artifacts


def test_compile_only_honors_explicit_output(
    make_driver: DriverFactory,
    source_file: Path,
    tmp_path: Path,
) -> None:
    driver, _ = make_driver()
    output = tmp_path / "build" / "hello-custom.o"

    result = driver.run(BuildRequest(kind="object", inputs=(source_file,), output=output))

    assert result.artifacts == (output,)
    assert output.exists()


def test_bundle_defaults_to_bundle_extension(
    make_driver: DriverFactory,
    source_file: Path,
    scratch_parent: Path,
) -> None:
    driver, runner = make_driver()

    result = driver.run(BuildRequest(kind="bundle", inputs=(source_file,)))

    assert result.artifacts == (source_file.with_suffix(".rbo"),)
    assert runner.stages()[-3:] == ["glue", "link", "strip"]
    assert not source_file.with_suffix(".o").exists()
    assert list(scratch_parent.iterdir()) == []


def test_executable_registers_every_module_with_an_entry_point(
    make_driver: DriverFactory,
    tmp_path: Path,
) -> None:
    first = _source(tmp_path, "main.rb")
    second = _source(tmp_path, "util.rb")
    helper = _object(tmp_path, "helper.o")
    driver, runner = make_driver()

    result = driver.run(BuildRequest(kind="executable", inputs=(first, second, helper)))

    assert result.artifacts == (tmp_path / "main",)
    glue = runner.glue_sources[0]
    assert 'rb_vm_aot_feature_provide("util", (void *)MREP_' in glue
    assert "helper" not in glue
    assert glue.count("(rb_vm_top_self(), 0);") == 1
    link = runner.calls_for("link")[0].argv
    assert str(helper) in link
    pass_through = [record for record in result.logs if record["operation"] == "pass_through"]
    assert [record["input"] for record in pass_through] == [str(helper)]


def test_prebuilt_object_entry_point_is_recovered(
    make_driver: DriverFactory,
    tmp_path: Path,
) -> None:
    prebuilt = _object(tmp_path, "app.o")
    driver, runner = make_driver(symbols={str(prebuilt): "_MREP_ABCDEF\n_rb_vm_top_self\n"})

    driver.run(BuildRequest(kind="executable", inputs=(prebuilt,)))

    assert "probe" not in runner.stages()
    assert runner.stages() == ["symbols", "glue", "link", "strip"]
    assert "MREP_ABCDEF(rb_vm_top_self(), 0);" in runner.glue_sources[0]


def test_executable_with_object_first_input_lacking_entry_point(
    make_driver: DriverFactory,
    tmp_path: Path,
    scratch_parent: Path,
) -> None:
    helper = _object(tmp_path, "helper.o")
    driver, runner = make_driver()

    with pytest.raises(InvalidFirstInputError):
        driver.run(BuildRequest(kind="executable", inputs=(helper, _source(tmp_path, "main.rb"))))

    # Only the first input's symbol scan runs; main.rb is never compiled
    assert runner.stages() == ["symbols"]
    assert list(scratch_parent.iterdir()) == []


def test_dylib_links_every_input_with_version_flags(
    make_driver: DriverFactory,
    tmp_path: Path,
) -> None:
    output = tmp_path / "lib" / "libfoo.dylib"
    driver, runner = make_driver()

    result = driver.run(
        BuildRequest(
            kind="dylib",
            inputs=(_source(tmp_path, "foo.rb"), _source(tmp_path, "bar.rb")),
            output=output,
            linker_flags=("-current_version", "2.0"),
        )
    )

    assert result.artifacts == (output,)
    assert output.exists()
    assert runner.glue_sources[0].count("rb_vm_aot_feature_provide(\"") == 2
    assert runner.calls_for("link")[0].argv[-2:] == ("-current_version", "2.0")


@pytest.mark.parametrize(
    ("request_factory", "error"),
    [
        (lambda src, tmp: BuildRequest(kind="dylib", inputs=(src,)), MissingOutputError),
        (lambda src, tmp: BuildRequest(kind="object", inputs=(tmp / "missing.rb",)), InvalidInputError),
        (lambda src, tmp: BuildRequest(kind="object", inputs=(_object(tmp, "pre.o"),)), InvalidInputError),
        (lambda src, tmp: BuildRequest(kind="executable", inputs=(_text(tmp, "notes.txt"),)), InvalidInputError),
        (lambda src, tmp: BuildRequest(kind="executable", inputs=(src,), sdk=tmp / "nope.sdk"), InvalidSDKError),
        (lambda src, tmp: BuildRequest(kind="executable", inputs=(src,), static=True), UnsupportedStaticError),
        (
            lambda src, tmp: BuildRequest(kind="executable", inputs=(_object(tmp, "libdep.dylib"), src)),
            InvalidFirstInputError,
        ),
    ],
)
def test_invalid_requests_run_no_tools_and_leave_no_scratch(
    make_driver: DriverFactory,
    source_file: Path,
    tmp_path: Path,
    scratch_parent: Path,
    request_factory: Callable[[Path, Path], BuildRequest],
    error: type[Exception],
) -> None:
    driver, runner = make_driver()
    request = request_factory(source_file, tmp_path)

    with pytest.raises(error):
        driver.run(request)

    assert runner.calls == []
    assert list(scratch_parent.iterdir()) == []


@pytest.mark.parametrize(
    "stage",
    ["probe", "frontend", "backend", "assemble", "merge", "symbols", "glue", "link", "strip"],
)
def test_tool_failure_cleans_scratch_and_reports_stage(
    make_driver: DriverFactory,
    tmp_path: Path,
    scratch_parent: Path,
    stage: str,
) -> None:
    main = _source(tmp_path, "main.rb")
    prebuilt = _object(tmp_path, "extra.o")
    driver, runner = make_driver(fail_stage=stage, fail_output=f"{stage} broke\n")
    request = BuildRequest(kind="executable", inputs=(main, prebuilt), output=tmp_path / "app")

    if stage == "probe":
        # An unusable probe only disables EH flags
        driver.run(request)
        assert all(not arg.startswith("-disable-cfi") for call in runner.calls_for("backend") for arg in call.argv)
    else:
        with pytest.raises(ToolFailureError) as excinfo:
            driver.run(request)
        assert excinfo.value.context["stage"] == stage
        assert excinfo.value.output == f"{stage} broke\n"
        assert not (tmp_path / "app").exists()
        failures = [record for record in driver.logger.records if record["operation"] == "build_failed"]
        assert len(failures) == 1

    assert list(scratch_parent.iterdir()) == []


def test_static_executable_passes_bridging_metadata(
    make_driver: DriverFactory,
    toolchain: Toolchain,
    source_file: Path,
) -> None:
    toolchain.static_library_path.write_text("archive", encoding="utf-8")
    metadata = bridgesupport_path(toolchain, "Foundation")
    metadata.parent.mkdir(parents=True)
    metadata.write_text("<signatures/>", encoding="utf-8")
    driver, runner = make_driver()

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        driver.run(
            BuildRequest(
                kind="executable",
                inputs=(source_file,),
                static=True,
                frameworks=("Foundation", "Missing"),
            )
        )

    frontend = runner.calls_for("frontend")[0].argv
    assert frontend[1:3] == ("--uses-bs", str(metadata))
    assert [warning.category for warning in caught] == [BridgingMetadataWarning]
    link = runner.calls_for("link")[0].argv
    assert str(toolchain.static_library_path) in link
    assert ("-framework", "Missing") == link[link.index("Missing") - 1:link.index("Missing") + 1]


def test_frameworks_on_bundle_are_ignored_with_warning(
    make_driver: DriverFactory,
    source_file: Path,
) -> None:
    driver, runner = make_driver()

    with pytest.warns(IgnoredOptionWarning):
        driver.run(BuildRequest(kind="bundle", inputs=(source_file,), frameworks=("AppKit",)))

    assert "AppKit" not in runner.calls_for("link")[0].argv


def test_sdk_reroots_runtime_library_search(
    make_driver: DriverFactory,
    source_file: Path,
    tmp_path: Path,
) -> None:
    sdk = tmp_path / "MacOSX.sdk"
    sdk.mkdir()
    driver, runner = make_driver()

    driver.run(BuildRequest(kind="executable", inputs=(source_file,), sdk=sdk))

    link = runner.calls_for("link")[0].argv
    assert link[link.index("-isysroot") + 1] == str(sdk)
    assert any(arg.startswith(f"-L{sdk}") for arg in link)


def test_missing_tool_fails_before_any_scratch_is_created(
    toolchain: Toolchain,
    source_file: Path,
    scratch_parent: Path,
) -> None:
    def locator(_: Toolchain) -> None:
        raise ToolNotFoundError("Couldn't find `llc`.", context={"tool": "llc"})

    runner = FakeToolchainRunner()
    driver = BuildDriver(
        toolchain=toolchain,
        logger=StructuredLogger(),
        runner=runner,
        locator=locator,  # type: ignore[arg-type]
        scratch_parent=scratch_parent,
    )

    with pytest.raises(ToolNotFoundError):
        driver.run(BuildRequest(kind="object", inputs=(source_file,)))

    assert runner.calls == []
    assert list(scratch_parent.iterdir()) == []


def test_build_logs_are_attributed_per_input(
    make_driver: DriverFactory,
    tmp_path: Path,
) -> None:
    first = _source(tmp_path, "one.rb")
    second = _source(tmp_path, "two.rb")
    driver, _ = make_driver()

    result = driver.run(BuildRequest(kind="object", inputs=(first, second), archs=("x86_64", "arm64")))

    for source in (first, second):
        records = driver.logger.records_for_input(str(source))
        assert {record["stage"] for record in records} == {"frontend", "backend", "assemble", "merge"}
        assert {record["arch"] for record in records if record["stage"] != "merge"} == {"x86_64", "arm64"}
    assert result.logs[0]["operation"] == "build_start"
    assert result.logs[-1]["operation"] == "build_complete"


def test_dylib_only_linker_flags_are_dropped_from_executables(
    make_driver: DriverFactory,
    source_file: Path,
) -> None:
    driver, runner = make_driver()
    flags = ("-install_name", "@rpath/libfoo.dylib", "-dead_strip", "-current_version", "1.2")

    with pytest.warns(IgnoredOptionWarning, match="-install_name, -current_version"):
        driver.run(BuildRequest(kind="executable", inputs=(source_file,), linker_flags=flags))

    link = runner.calls_for("link")[0].argv
    assert link[-1] == "-dead_strip"
    assert "-install_name" not in link
    assert "@rpath/libfoo.dylib" not in link
    assert "-current_version" not in link
    assert "1.2" not in link


def test_dylib_keeps_its_version_flags_without_warning(
    make_driver: DriverFactory,
    tmp_path: Path,
) -> None:
    driver, runner = make_driver()
    flags = ("-install_name", "@rpath/libfoo.dylib")

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        driver.run(
            BuildRequest(
                kind="dylib",
                inputs=(_source(tmp_path, "foo.rb"),),
                output=tmp_path / "libfoo.dylib",
                linker_flags=flags,
            )
        )

    assert runner.calls_for("link")[0].argv[-2:] == flags


def _source(directory: Path, name: str) -> Path:
    path = directory / name
    path.write_text(f"# {name}\n", encoding="utf-8")
    return path


def _object(directory: Path, name: str) -> Path:
    path = directory / name
    path.write_bytes(b"\xcf\xfa\xed\xfe")
    return path


def _text(directory: Path, name: str) -> Path:
    path = directory / name
    path.write_text("notes\n", encoding="utf-8")
    return path
