"""Glue translation units wiring compiled entry points into the runtime.

Rendering is pure: it takes link inputs and returns C++ source text.  Entry
points are :class:`~aotc.models.EntryPoint` values, which only admit plain C
identifiers, and feature names are emitted as escaped string literals.
"""

from __future__ import annotations

import textwrap
from collections.abc import Sequence

from aotc.errors import InvalidFirstInputError, ValidationError
from aotc.models import LinkInput, OutputKind

RUNTIME_DECLARATIONS = (
    "void *rb_vm_top_self(void);",
    "void rb_vm_aot_feature_provide(const char *, void *);",
)

EXECUTABLE_DECLARATIONS = (
    "void ruby_sysinit(int *, char ***);",
    "void ruby_init(void);",
    "void ruby_init_loadpath(void);",
    "void ruby_script(const char *);",
    "void ruby_set_argv(int, char **);",
    "void rb_vm_init_compiler(void);",
    *RUNTIME_DECLARATIONS,
    "void rb_vm_print_current_exception(void);",
    "void rb_exit(int);",
)

EXECUTABLE_PROLOGUE = textwrap.dedent("""\
    int
    main(int argc, char **argv)
    {
        const char *progname = argv[0];
        ruby_sysinit(&argc, &argv);
        if (argc > 0) {
            argc--;
            argv++;
        }
        ruby_init();
        ruby_init_loadpath();
        ruby_set_argv(argc, argv);
        rb_vm_init_compiler();
        ruby_script(progname);
        try {
""")

EXECUTABLE_EPILOGUE = textwrap.dedent("""\
        }
        catch (...) {
            rb_vm_print_current_exception();
            rb_exit(1);
        }
        rb_exit(0);
    }
""")


def render_glue(kind: OutputKind, inputs: Sequence[LinkInput]) -> str:
    if kind == "bundle":
        if len(inputs) != 1:
            raise ValidationError(
                "Bundle glue takes exactly one compiled unit.",
                context={"inputs": str(len(inputs))},
            )
        return render_bundle_glue(inputs[0])
    if kind == "dylib":
        return render_dylib_glue(inputs)
    if kind == "executable":
        return render_executable_glue(inputs)
    raise ValidationError(f"No glue is generated for `{kind}` outputs.")


def render_bundle_glue(unit: LinkInput) -> str:
    if unit.entry_point is None:
        raise ValidationError(
            "Bundle glue requires a compiled unit with an entry point.",
            context={"input": str(unit.path)},
        )
    return _render_load_time_registration([unit])


def render_dylib_glue(inputs: Sequence[LinkInput]) -> str:
    return _render_load_time_registration(inputs)


def render_executable_glue(inputs: Sequence[LinkInput]) -> str:
    """Render a ``main`` that boots the runtime and runs the first input."""
    if not inputs or inputs[0].entry_point is None:
        raise InvalidFirstInputError(
            "The first input must provide an entry point to serve as the program body.",
            hint="List a source module (or an object compiled from one) first.",
            context={"input": str(inputs[0].path) if inputs else ""},
        )
    main_input, rest = inputs[0], inputs[1:]
    lines = ['extern "C" {']
    lines.extend(f"    {decl}" for decl in EXECUTABLE_DECLARATIONS)
    lines.extend(f"    {_entry_declaration(item)}" for item in _with_entry_points(inputs))
    lines.append("}")
    lines.append("")
    body = [_registration(item) for item in _with_entry_points(rest)]
    body.append(f"{main_input.entry_point}(rb_vm_top_self(), 0);")
    return (
        "\n".join(lines)
        + "\n"
        + EXECUTABLE_PROLOGUE
        + "".join(f"        {statement}\n" for statement in body)
        + EXECUTABLE_EPILOGUE
    )


def c_string_literal(value: str) -> str:
    escaped: list[str] = []
    for byte in value.encode("utf-8"):
        char = chr(byte)
        if char in ('"', "\\"):
            escaped.append("\\" + char)
        elif 0x20 <= byte < 0x7F and char != "?":
            escaped.append(char)
        else:
            escaped.append(f"\\{byte:03o}")
    return '"' + "".join(escaped) + '"'


def _render_load_time_registration(inputs: Sequence[LinkInput]) -> str:
    registered = _with_entry_points(inputs)
    lines = ['extern "C" {']
    lines.extend(f"    {decl}" for decl in RUNTIME_DECLARATIONS)
    lines.extend(f"    {_entry_declaration(item)}" for item in registered)
    lines.append("")
    lines.append("    __attribute__((constructor)) static void")
    lines.append("    aotc_register_features(void)")
    lines.append("    {")
    lines.extend(f"        {_registration(item)}" for item in registered)
    lines.append("    }")
    lines.append("}")
    return "\n".join(lines) + "\n"


def _with_entry_points(inputs: Sequence[LinkInput]) -> list[LinkInput]:
    return [item for item in inputs if item.entry_point is not None]


def _entry_declaration(item: LinkInput) -> str:
    return f"void *{item.entry_point}(void *, void *);"


def _registration(item: LinkInput) -> str:
    return (
        f"rb_vm_aot_feature_provide({c_string_literal(item.feature)}, "
        f"(void *){item.entry_point});"
    )
