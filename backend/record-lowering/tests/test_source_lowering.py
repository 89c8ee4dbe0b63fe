import os
import sys

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from registry import try_lower_best


VEHICLE = """package demo;

public record Vehicle(String model, int power) {
}
"""

VEHICLE_LOWERED = """package demo;

import java.util.Objects;

public final class Vehicle {
    private final String model;
    private final int power;

    public Vehicle(String model, int power) {
        this.model = model;
        this.power = power;
    }

    public String model() {
        return model;
    }

    public int power() {
        return power;
    }

    @Override
    public boolean equals(Object obj) {
        if (this == obj) {
            return true;
        }
        if (obj == null || getClass() != obj.getClass()) {
            return false;
        }
        Vehicle other = (Vehicle) obj;
        return Objects.equals(model, other.model) && power == other.power;
    }

    @Override
    public int hashCode() {
        return Objects.hash(model, power);
    }

    @Override
    public String toString() {
        return "Vehicle[model=" + model + ", power=" + power + "]";
    }
}
"""


def test_vehicle_source_is_lowered():
    result = try_lower_best(VEHICLE, "Vehicle.java")

    assert result["code"] == VEHICLE_LOWERED
    assert result["lowered"] == ["demo.Vehicle"]
    assert result["skipped"] == []
    assert result["errors"] == []
    assert result["estimated_effort_minutes"] == 30


def test_lowered_output_is_left_alone():
    once = try_lower_best(VEHICLE, "Vehicle.java")["code"]

    again = try_lower_best(once, "Vehicle.java")

    assert again["code"] == once
    assert again["lowered"] == []
    assert again["estimated_effort_minutes"] == 0


def test_compact_constructor_validation_runs_before_assignment():
    code = """package demo;

public record Range(int lo, int hi) {
    public Range {
        if (lo > hi) {
            throw new IllegalArgumentException("lo > hi");
        }
    }
}
"""
    out = try_lower_best(code, "Range.java")["code"]

    assert (
        "    public Range(int lo, int hi) {\n"
        "        if (lo > hi) {\n"
        "            throw new IllegalArgumentException(\"lo > hi\");\n"
        "        }\n"
        "        this.lo = lo;\n"
        "        this.hi = hi;\n"
        "    }"
    ) in out
    assert out.count("public Range(") == 1
    assert "return lo == other.lo && hi == other.hi;" in out
    assert "import java.util.Objects;" in out


def test_accessor_of_interface_method_gets_override():
    code = """package demo;

interface Named {
    String name();
}

public record Person(String name, int age) implements Named {
}
"""
    result = try_lower_best(code, "Person.java")
    out = result["code"]

    assert out.startswith("package demo;\n\nimport java.util.Objects;\n\ninterface Named {\n    String name();\n}\n")
    assert "    @Override\n    public String name() {" in out
    assert "    }\n\n    public int age() {" in out
    assert "public final class Person implements Named {" in out
    assert {n["id"] for n in result["capabilities"]["nodes"]} == {"capability:demo.Named"}


def test_interfaces_from_other_sources_are_considered():
    code = """package demo;

public record Point(int x, int y) implements Shape {
}
"""
    shape = """package demo;

public interface Shape extends Located {
}
"""
    located = """package demo;

public interface Located {
    int x();
}
"""
    out = try_lower_best(code, "Point.java", capability_sources=[shape, located])["code"]

    assert "    @Override\n    public int x() {" in out
    assert "    }\n\n    public int y() {" in out


def test_nested_record_becomes_static_final_class():
    code = """package demo;

public class Garage {
    private final int size = 1;

    record Slot(int number) {
    }
}
"""
    result = try_lower_best(code, "Garage.java")
    out = result["code"]

    assert result["lowered"] == ["demo.Garage.Slot"]
    assert out.startswith("package demo;\n\nimport java.util.Objects;\n\npublic class Garage {\n")
    assert "    private final int size = 1;\n\n    static final class Slot {\n" in out
    assert "        private final int number;\n\n        public Slot(int number) {\n" in out
    assert "record" not in out
    assert out.endswith("    }\n}\n")


def test_clashing_objects_import_uses_qualified_name():
    code = """package demo;

import com.google.common.base.Objects;

public record Tag(String name) {
}
"""
    out = try_lower_best(code, "Tag.java")["code"]

    assert "import java.util.Objects;" not in out
    assert "import com.google.common.base.Objects;" in out
    assert "return java.util.Objects.equals(name, other.name);" in out
    assert "return java.util.Objects.hash(name);" in out


def test_existing_objects_import_is_not_duplicated():
    code = """package demo;

import java.util.*;

public record Tag(String name) {
}
"""
    out = try_lower_best(code, "Tag.java")["code"]

    assert "import java.util.Objects;" not in out
    assert out.startswith("package demo;\n\nimport java.util.*;\n\npublic final class Tag {")


def test_old_java_version_leaves_source_untouched():
    result = try_lower_best(VEHICLE, "Vehicle.java", java_version=11)

    assert result["code"] == VEHICLE
    assert result["lowered"] == []
    assert result["estimated_effort_minutes"] == 0


def test_inconsistent_record_is_reported_and_others_still_lowered():
    code = """package demo;

record Twice(int x) {
    Twice { }
    Twice { }
}

record Once(int y) {
}
"""
    result = try_lower_best(code, "Twice.java")
    out = result["code"]

    assert result["lowered"] == ["demo.Once"]
    assert [e["declaration"] for e in result["errors"]] == ["demo.Twice"]
    assert "record Twice(int x) {\n    Twice { }\n    Twice { }\n}" in out
    assert "final class Once {" in out


def test_generic_record_is_skipped():
    code = "record Box<T>(T value) {\n}\n"

    result = try_lower_best(code, "Box.java")

    assert result["code"] == code
    assert result["skipped"] == ["Box"]


def test_non_java_file_is_rejected():
    assert "error" in try_lower_best(VEHICLE, "vehicle.py")


def test_unreadable_code_is_rejected():
    result = try_lower_best("record Broken(int x) {", "Broken.java")

    assert result["error"].startswith("Java syntax error")


def test_varargs_component_becomes_array_field_and_accessor():
    out = try_lower_best("public record Names(String... names) {}\n", "Names.java")["code"]

    assert "    private final String[] names;" in out
    assert "    public Names(String... names) {" in out
    assert "    public String[] names() {" in out
    assert "String... names;" not in out
    assert "String... names()" not in out


def test_local_record_in_method_is_lowered_without_static():
    code = """package demo;

public class Outer {
    void run() {
        record Point(int x, int y) {}
        System.out.println(new Point(1, 2));
    }
}
"""
    result = try_lower_best(code, "Outer.java")
    out = result["code"]

    assert result["lowered"] == ["demo.Outer.Point"]
    assert "        final class Point {\n            private final int x;\n            private final int y;\n" in out
    assert "            return Objects.hash(x, y);\n" in out
    assert "        }\n        System.out.println(new Point(1, 2));\n    }\n}\n" in out
    assert "static" not in out
    assert "record" not in out
    assert out.startswith("package demo;\n\nimport java.util.Objects;\n\npublic class Outer {\n    void run() {\n")


def test_record_in_anonymous_class_body_is_lowered():
    code = """package demo;

public class Outer {
    Runnable task = new Runnable() {
        record Step(int n) {}

        public void run() {
            System.out.println(new Step(1));
        }
    };
}
"""
    result = try_lower_best(code, "Outer.java")
    out = result["code"]

    assert result["lowered"] == ["demo.Outer.Step"]
    assert "    Runnable task = new Runnable() {\n        static final class Step {\n" in out
    assert "        public void run() {\n            System.out.println(new Step(1));\n        }\n    };\n}\n" in out
    assert "record" not in out


def test_local_record_in_compact_constructor():
    code = """package demo;

public record Range(int lo, int hi) {
    public Range {
        record Check(int v) {}
        new Check(lo);
    }
}
"""
    result = try_lower_best(code, "Range.java")
    out = result["code"]

    assert result["lowered"] == ["demo.Range.Check", "demo.Range"]
    assert "    public Range(int lo, int hi) {\n        final class Check {\n            private final int v;\n" in out
    assert "        new Check(lo);\n        this.lo = lo;\n        this.hi = hi;\n    }" in out
    assert "record" not in out


def test_import_goes_below_header_comment_without_package():
    code = """/*
 * Licensed under the Apache License, Version 2.0.
 */

public record Tag(String name) {
}
"""
    out = try_lower_best(code, "Tag.java")["code"]

    assert out.startswith(
        "/*\n * Licensed under the Apache License, Version 2.0.\n */\n\n"
        "import java.util.Objects;\n\n"
        "public final class Tag {\n"
    )


def test_import_goes_first_without_package_or_header():
    out = try_lower_best("record Tag(String name) {\n}\n", "Tag.java")["code"]

    assert out.startswith("import java.util.Objects;\n\nfinal class Tag {\n")


def test_compact_constructor_of_skipped_record_stays_compact():
    code = """record Box<T>(T value) {
    Box {
        record Seen(int n) {}
    }
}
"""
    result = try_lower_best(code, "Box.java")

    assert result["lowered"] == ["Box.Seen"]
    assert result["skipped"] == ["Box"]
    assert result["code"].startswith(
        "import java.util.Objects;\n\n"
        "record Box<T>(T value) {\n"
        "    Box {\n"
        "        final class Seen {\n"
        "            private final int n;\n"
    )
    assert result["code"].endswith("        }\n    }\n}\n")
