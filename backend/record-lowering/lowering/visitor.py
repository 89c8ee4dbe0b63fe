import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import config
from adapters.java_adapter import JavaAdapter
from adapters.java_printer import JavaPrinter
from cir.graph import CapabilityGraph
from cir.model import CompilationUnit, Constructor, Declaration, Field, Member, Method, NestedType, RawMember
from lowering.record_to_class import RecordInvariantError, RecordToClassLowering

logger = logging.getLogger(__name__)

_IMPORT_LINE = re.compile(r"^[ \t]*import\s+[^;]+;[^\n]*$", re.M)
_PACKAGE_LINE = re.compile(r"^[ \t]*package\s+[^;]+;[^\n]*$", re.M)


@dataclass
class LoweringReport:
    lowered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lowered": list(self.lowered),
            "skipped": list(self.skipped),
            "errors": list(self.errors),
            "estimated_effort_minutes": len(self.lowered) * config.EFFORT_MINUTES_PER_RECORD,
        }


class LoweringVisitor:
    """
    Walks every declaration of a compilation unit, nested types first, and
    lowers each record it meets. Records declared inside member text (local
    records, records in anonymous or local class bodies) are read out of that
    text, lowered the same way and printed back in place.

    A record the lowering rejects as inconsistent is logged, reported and
    left as it was; the rest of the unit is still processed.
    """

    def __init__(
        self,
        capabilities: Optional[CapabilityGraph] = None,
        reader: Optional[JavaAdapter] = None,
        printer: Optional[JavaPrinter] = None,
    ) -> None:
        self.capabilities = capabilities or CapabilityGraph()
        self.reader = reader or JavaAdapter()
        self.printer = printer or JavaPrinter()

    def visit_unit(
        self,
        unit: CompilationUnit,
        java_version: Optional[int] = None,
    ) -> Tuple[CompilationUnit, LoweringReport]:
        report = LoweringReport()

        if java_version is not None and java_version < config.MIN_JAVA_VERSION:
            logger.info(
                "Java %s predates records (need %s); leaving %s untouched",
                java_version, config.MIN_JAVA_VERSION, unit.source_file or "<code>",
            )
            return unit, report

        lowering = RecordToClassLowering(self.capabilities, objects_ref=_objects_ref(unit))
        types = tuple(self.visit_declaration(d, lowering, report) for d in unit.types)
        if all(new is old for new, old in zip(types, unit.types)):
            return unit, report

        result = replace(unit, types=types, source=None)
        for name in sorted({imp for d in types for imp in _required_imports(d)}):
            result = ensure_import(result, name)
        return result, report

    def visit_declaration(
        self,
        decl: Declaration,
        lowering: RecordToClassLowering,
        report: LoweringReport,
    ) -> Declaration:
        # nested and embedded types first
        members = []
        imports = list(decl.required_imports)
        changed = False
        for m in decl.members:
            if isinstance(m, NestedType):
                inner = self.visit_declaration(m.declaration, lowering, report)
                new = m if inner is m.declaration else NestedType(inner)
            else:
                new = self.visit_member(m, decl, lowering, report, imports)
            changed = changed or new is not m
            members.append(new)
        if changed:
            decl = replace(
                decl,
                members=tuple(members),
                required_imports=tuple(dict.fromkeys(imports)),
                source=None,
            )

        if decl.kind != "record":
            return decl

        try:
            lowered = lowering.lower(decl)
        except RecordInvariantError as e:
            logger.error("Cannot lower record %s: %s", decl.qualified_name, e)
            report.errors.append({"declaration": decl.qualified_name, "error": str(e)})
            return decl

        if lowered is decl:
            report.skipped.append(decl.qualified_name)
        else:
            report.lowered.append(decl.qualified_name)
        return lowered

    def visit_member(
        self,
        member: Member,
        owner: Declaration,
        lowering: RecordToClassLowering,
        report: LoweringReport,
        imports: List[str],
    ) -> Member:
        """
        Lower the records declared in a member's text. Only the text the
        printer will emit is rewritten: the exact source where there is one,
        the statements / initializer otherwise.
        """
        def lower_text(text: str) -> str:
            return self._lower_embedded(text, owner, lowering, report, imports)

        if isinstance(member, RawMember):
            source = lower_text(member.source)
            return member if source == member.source else replace(member, source=source)

        if isinstance(member, Constructor) and member.is_compact:
            # the record's lowering rebuilds a compact constructor from its statements
            body = tuple(lower_text(s) for s in member.body)
            return member if body == member.body else replace(member, body=body, source=None)

        if isinstance(member, (Field, Constructor, Method)) and member.source is not None:
            source = lower_text(member.source)
            return member if source == member.source else replace(member, source=source)

        if isinstance(member, Field) and member.initializer:
            initializer = lower_text(member.initializer)
            return member if initializer == member.initializer else replace(member, initializer=initializer)

        if isinstance(member, (Constructor, Method)) and member.body:
            body = tuple(lower_text(s) for s in member.body)
            return member if body == member.body else replace(member, body=body)

        return member

    def _lower_embedded(
        self,
        text: str,
        owner: Declaration,
        lowering: RecordToClassLowering,
        report: LoweringReport,
        imports: List[str],
    ) -> str:
        parts: List[str] = []
        pos = 0
        for found in self.reader.find_embedded_records(text, owner.package, owner.qualified_name):
            decl = self.visit_declaration(found.declaration, lowering, report)
            if decl is found.declaration:
                continue
            imports.extend(_required_imports(decl))
            parts.append(text[pos:found.start])
            parts.append(self.printer.print_declaration(decl)[len(found.line_indent):])
            pos = found.end
        if not parts:
            return text
        parts.append(text[pos:])
        return "".join(parts)


def lower_unit(
    unit: CompilationUnit,
    capabilities: Optional[CapabilityGraph] = None,
    java_version: Optional[int] = None,
    reader: Optional[JavaAdapter] = None,
    printer: Optional[JavaPrinter] = None,
) -> Tuple[CompilationUnit, LoweringReport]:
    return LoweringVisitor(capabilities, reader, printer).visit_unit(unit, java_version)

def _required_imports(decl: Declaration) -> List[str]:
    found = list(decl.required_imports)
    for m in decl.members:
        if isinstance(m, NestedType):
            found.extend(_required_imports(m.declaration))
    return found


def _objects_ref(unit: CompilationUnit) -> str:
    """
    Spell java.util.Objects fully qualified when another `Objects` is
    imported or declared in the unit.
    """
    clash = any(
        imp.endswith(".Objects") and imp != config.OBJECTS_IMPORT
        for imp in unit.imports
        if not imp.startswith("static ")
    )
    clash = clash or any(d.name == "Objects" for d in unit.types)
    return config.OBJECTS_IMPORT if clash else "Objects"


def ensure_import(unit: CompilationUnit, name: str) -> CompilationUnit:
    """Add `import <name>;` unless the unit already imports it (or its package with *)."""
    package = name.rsplit(".", 1)[0]
    if name in unit.imports or f"{package}.*" in unit.imports:
        return unit

    line = f"import {name};"
    preamble = unit.preamble
    imports = list(_IMPORT_LINE.finditer(preamble))
    if imports:
        pos = imports[-1].end()
        preamble = preamble[:pos] + "\n" + line + preamble[pos:]
    else:
        pkg = _PACKAGE_LINE.search(preamble)
        if pkg:
            pos = pkg.end()
            preamble = preamble[:pos] + "\n\n" + line + preamble[pos:]
        elif preamble.strip():
            # only header comments ahead of the types; they stay on top
            preamble = preamble.rstrip() + "\n\n" + line + "\n\n"
        else:
            preamble = line + "\n\n"

    logger.debug("Added import %s", name)
    return replace(unit, imports=unit.imports + (name,), preamble=preamble, source=None)
