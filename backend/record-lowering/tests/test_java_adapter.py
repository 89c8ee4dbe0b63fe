import os
import sys

import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from adapters.java_adapter import JavaAdapter
from cir.model import Constructor, Field, Method, NestedType, RawMember


def read(code):
    return JavaAdapter().build_unit_for_code(code, "Sample.java")


def test_package_imports_and_record_header():
    code = """package com.example.fleet;

import java.util.List;
import java.util.Map;

/** A vehicle. */
@Deprecated
public record Vehicle(@NotNull String model, int power, Map<String, List<Integer>> stats, String... tags)
        implements Comparable<Vehicle>, java.io.Serializable {
}
"""
    unit = read(code)

    assert unit.package == "com.example.fleet"
    assert unit.imports == ("java.util.List", "java.util.Map")
    assert unit.preamble == "package com.example.fleet;\n\nimport java.util.List;\nimport java.util.Map;\n\n"

    (decl,) = unit.types
    assert decl.kind == "record"
    assert decl.qualified_name == "com.example.fleet.Vehicle"
    assert decl.modifiers == ("public",)
    assert decl.annotations == ("@Deprecated",)
    assert decl.doc == "/** A vehicle. */"
    assert decl.implements == ("Comparable<Vehicle>", "java.io.Serializable")
    assert [(c.raw_type, c.name, c.is_primitive) for c in decl.components] == [
        ("String", "model", False),
        ("int", "power", True),
        ("Map<String, List<Integer>>", "stats", False),
        ("String...", "tags", False),
    ]
    assert decl.components[3].type_name == "String[]"
    assert decl.source == code[code.index("/** A vehicle. */"):].rstrip("\n")


def test_generic_record_type_parameters():
    unit = read("record Pair<A extends Comparable<A>, B>(A first, B second) {}")

    (decl,) = unit.types
    assert decl.type_parameters == ("A extends Comparable<A>", "B")


def test_compact_constructor_statements_keep_comments():
    code = """record Range(int lo, int hi) {
    /** Validates bounds. */
    public Range {
        // bounds must be ordered
        if (lo > hi) {
            throw new IllegalArgumentException("lo > hi");
        }
        lo = Math.max(lo, 0); // clamp
    }
}
"""
    (decl,) = read(code).types
    (ctor,) = decl.members

    assert isinstance(ctor, Constructor)
    assert ctor.is_compact
    assert ctor.parameters == ()
    assert ctor.modifiers == ("public",)
    assert ctor.doc == "/** Validates bounds. */"
    assert ctor.body == (
        "// bounds must be ordered\n"
        "if (lo > hi) {\n"
        "    throw new IllegalArgumentException(\"lo > hi\");\n"
        "}",
        "lo = Math.max(lo, 0); // clamp",
    )
    assert ctor.source.startswith("    /** Validates bounds. */\n    public Range {")
    assert decl.member_indent == "    "


def test_members_are_read_with_exact_source():
    code = """public record Account(String id, long balance) {
    static final int LIMIT = 10; // max per owner
    static int created = 0, closed = 0;

    static {
        created = 0;
    }

    public Account(String id) {
        this(id, 0L);
    }

    public <T> T visit(java.util.function.Function<Account, T> fn) throws Exception {
        return fn.apply(this);
    }

    interface Listener {
        void changed(Account account);
    }
}
"""
    (decl,) = read(code).types
    kinds = [type(m).__name__ for m in decl.members]
    assert kinds == ["Field", "Field", "Field", "RawMember", "Constructor", "Method", "NestedType"]

    limit, created, closed, init, ctor, visit, nested = decl.members
    assert limit.source == "    static final int LIMIT = 10; // max per owner"
    assert limit.modifiers == ("static", "final")
    assert limit.initializer == "10"

    assert (created.name, created.initializer, created.source) == ("created", "0", None)
    assert (closed.name, closed.initializer, closed.source) == ("closed", "0", None)

    assert isinstance(init, RawMember)
    assert init.source == "    static {\n        created = 0;\n    }"

    assert [(p.raw_type, p.name) for p in ctor.parameters] == [("String", "id")]
    assert ctor.body == ("this(id, 0L);",)
    assert not ctor.is_compact

    assert isinstance(visit, Method)
    assert visit.type_parameters == ("T",)
    assert visit.return_type == "T"
    assert visit.throws == ("Exception",)
    assert visit.parameters[0].type_name == "Function"
    assert visit.source in code

    assert isinstance(nested, NestedType)
    listener = nested.declaration
    assert listener.kind == "interface"
    assert listener.is_member
    assert listener.qualified_name == "Account.Listener"
    (changed,) = listener.members
    assert changed.body is None


def test_enum_constants_are_kept_raw():
    code = """enum Color {
    RED("r"), GREEN("g") {
        @Override public String toString() { return "green"; }
    };

    private final String code;

    Color(String code) { this.code = code; }
}
"""
    (decl,) = read(code).types
    constants, field, ctor = decl.members

    assert isinstance(constants, RawMember)
    assert constants.kind == "enum_constants"
    assert constants.source.startswith("    RED(\"r\"), GREEN")
    assert constants.source.endswith("};")
    assert isinstance(field, Field) and field.name == "code"
    assert isinstance(ctor, Constructor) and ctor.body == ("this.code = code;",)


def test_annotation_type_elements():
    code = """@interface Audit {
    String value() default "";
    int level();
}
"""
    (decl,) = read(code).types
    assert decl.kind == "annotation"
    assert [m.name for m in decl.members] == ["value", "level"]
    assert all(m.body is None for m in decl.members)


def test_capability_graph_from_interfaces():
    code = """package zoo;

interface Named { String name(); }
interface Animal extends Named { int legs(); default boolean walks() { return legs() > 0; } }
record Dog(String name, int legs) implements Animal {}
"""
    adapter = JavaAdapter()
    graph = adapter.build_capability_graph([adapter.build_unit_for_code(code)])

    assert graph.closure(["Animal"], package="zoo") == ["capability:zoo.Animal", "capability:zoo.Named"]
    assert graph.declares_method(["Animal"], "name", 0, package="zoo")
    assert graph.declares_method(["Animal"], "legs", 0, package="zoo")
    assert not graph.declares_method(["Animal"], "bark", 0, package="zoo")


def test_unknown_characters_are_a_syntax_error():
    with pytest.raises(ValueError, match="Java syntax error"):
        read("record Broken(int x) { # }")


def test_unterminated_body_is_a_syntax_error():
    with pytest.raises(ValueError, match="Java syntax error"):
        read("record Broken(int x) {")


def test_files_that_cannot_be_read_are_collected(tmp_path):
    good = tmp_path / "Good.java"
    good.write_text("record Good(int x) {}\n", encoding="utf-8")
    bad = tmp_path / "Bad.java"
    bad.write_text("class Bad { #\n", encoding="utf-8")

    units, errors = JavaAdapter().build_unit_for_files([str(good), str(bad), str(tmp_path / "Missing.java")])

    assert [u.types[0].name for u in units] == ["Good"]
    assert [e["file"] for e in errors] == [str(bad), str(tmp_path / "Missing.java")]


def test_header_comment_belongs_to_the_unit():
    code = """/*
 * Licensed under the Apache License, Version 2.0.
 */

/** A tag. */
record Tag(String name) {}
"""
    unit = read(code)

    assert unit.preamble == "/*\n * Licensed under the Apache License, Version 2.0.\n */\n\n"
    assert unit.types[0].doc == "/** A tag. */"


def test_embedded_records_in_blocks_and_class_bodies():
    text = """void run() {
    Object o = new Object() {
        record Inner(int a) {}
    };
    // keep local
    @Deprecated final record Local(int b) {}
    Local l = new Local(1);
}"""
    found = JavaAdapter().find_embedded_records(text, "demo", "demo.Outer")

    assert [(f.declaration.name, f.declaration.is_member) for f in found] == [("Inner", True), ("Local", False)]
    inner, local = found
    assert inner.declaration.qualified_name == "demo.Outer.Inner"
    assert text[inner.start:inner.end] == "        record Inner(int a) {}"
    assert text[local.start:local.end] == "    // keep local\n    @Deprecated final record Local(int b) {}"
    assert local.declaration.annotations == ("@Deprecated",)
    assert local.declaration.modifiers == ("final",)
    assert local.line_indent == ""


def test_embedded_record_sharing_a_line():
    text = "    void run() { record P(int x) {} new P(1); }"
    (found,) = JavaAdapter().find_embedded_records(text)

    assert text[found.start:found.end] == "record P(int x) {}"
    assert found.line_indent == "    "
    assert found.declaration.indent == "    "
    assert found.declaration.header_source == "    record P(int x) {"
    assert not found.declaration.is_member


def test_record_word_alone_is_not_a_declaration():
    text = "void save() { record(entry); this.record = null; Record record = load(); }"

    assert JavaAdapter().find_embedded_records(text) == []


def test_local_class_body_counts_as_class_body():
    text = "void run() {\n    class Helper {\n        record Pair(int a, int b) {}\n    }\n}"
    (found,) = JavaAdapter().find_embedded_records(text)

    assert found.declaration.is_member
