from pathlib import Path

import pytest

from aotc.errors import InvalidFirstInputError, ValidationError
from aotc.glue import (
    c_string_literal,
    render_bundle_glue,
    render_dylib_glue,
    render_executable_glue,
    render_glue,
)
from aotc.models import EntryPoint, LinkInput

E1 = EntryPoint("MREP_E1")
E2 = EntryPoint("MREP_E2")


def test_bundle_glue_registers_unit_at_load_time() -> None:
    glue = render_bundle_glue(LinkInput(path=Path("/tmp/x/hello-1.o"), entry_point=E1, feature="hello"))

    assert "__attribute__((constructor))" in glue
    assert "void *MREP_E1(void *, void *);" in glue
    assert 'rb_vm_aot_feature_provide("hello", (void *)MREP_E1);' in glue
    assert "int\nmain(" not in glue


def test_bundle_glue_requires_an_entry_point() -> None:
    with pytest.raises(ValidationError):
        render_bundle_glue(LinkInput(path=Path("helper.o")))


def test_dylib_glue_registers_only_inputs_with_entry_points() -> None:
    glue = render_dylib_glue(
        [
            LinkInput(path=Path("a.o"), entry_point=E1),
            LinkInput(path=Path("helper.o")),
            LinkInput(path=Path("b.o"), entry_point=E2),
        ]
    )

    assert glue.count("rb_vm_aot_feature_provide(\"") == 2
    assert '"a", (void *)MREP_E1' in glue
    assert '"b", (void *)MREP_E2' in glue
    assert "helper" not in glue


def test_executable_glue_runs_first_input_and_registers_the_rest() -> None:
    glue = render_executable_glue(
        [
            LinkInput(path=Path("a.o"), entry_point=E1),
            LinkInput(path=Path("b.o"), entry_point=E2),
            LinkInput(path=Path("c.o")),
        ]
    )

    assert "MREP_E1(rb_vm_top_self(), 0);" in glue
    assert 'rb_vm_aot_feature_provide("b", (void *)MREP_E2);' in glue
    assert "(void *)MREP_E1" not in glue
    assert '"c"' not in glue
    body = glue[glue.index("try {"):glue.index("catch (...)")]
    assert body.index("MREP_E2") < body.index("MREP_E1(rb_vm_top_self(), 0);")


def test_executable_glue_bootstraps_runtime_before_user_code() -> None:
    glue = render_executable_glue([LinkInput(path=Path("a.o"), entry_point=E1)])

    order = [
        "ruby_sysinit(&argc, &argv);",
        "ruby_init();",
        "ruby_init_loadpath();",
        "ruby_set_argv(argc, argv);",
        "rb_vm_init_compiler();",
        "ruby_script(progname);",
        "try {",
        "MREP_E1(rb_vm_top_self(), 0);",
        "catch (...) {",
        "rb_exit(1);",
        "rb_exit(0);",
    ]
    positions = [glue.index(marker) for marker in order]
    assert positions == sorted(positions)


@pytest.mark.parametrize(
    "inputs",
    [
        [],
        [LinkInput(path=Path("c.o")), LinkInput(path=Path("a.o"), entry_point=E1)],
    ],
)
def test_executable_glue_rejects_first_input_without_entry_point(inputs: list[LinkInput]) -> None:
    with pytest.raises(InvalidFirstInputError) as excinfo:
        render_executable_glue(inputs)
    assert excinfo.value.code == "E_INVALID_FIRST_INPUT"


def test_render_glue_dispatches_by_kind() -> None:
    item = LinkInput(path=Path("a.o"), entry_point=E1)

    assert render_glue("bundle", [item]) == render_bundle_glue(item)
    assert render_glue("dylib", [item]) == render_dylib_glue([item])
    assert render_glue("executable", [item]) == render_executable_glue([item])
    with pytest.raises(ValidationError):
        render_glue("object", [item])
    with pytest.raises(ValidationError):
        render_glue("bundle", [item, item])


def test_glue_rendering_is_deterministic() -> None:
    inputs = [LinkInput(path=Path("a.o"), entry_point=E1), LinkInput(path=Path("b.o"), entry_point=E2)]
    assert render_executable_glue(inputs) == render_executable_glue(list(inputs))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("hello", '"hello"'),
        ('say"hi', '"say\\"hi"'),
        ("back\\slash", '"back\\\\slash"'),
        ("new\nline", '"new\\012line"'),
        ("what??=", '"what\\077\\077="'),
        ("café", '"caf\\303\\251"'),
    ],
)
def test_feature_names_are_escaped_as_c_strings(value: str, expected: str) -> None:
    assert c_string_literal(value) == expected
