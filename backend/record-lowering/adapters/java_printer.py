from typing import List, Optional, Sequence

import config
from cir.model import (
    CompilationUnit,
    Constructor,
    Declaration,
    Field,
    Member,
    Method,
    NestedType,
    Parameter,
    RawMember,
)


class JavaPrinter:
    """
    CompilationUnit -> Java source text.

    Anything still carrying its source text (units, declarations, members the
    lowering did not touch) is emitted byte for byte; everything else is
    rendered at the member indentation of its declaration. Layout beyond that
    is left to whatever formatter runs afterwards.
    """

    def print_unit(self, unit: CompilationUnit) -> str:
        if unit.source is not None:
            return unit.source

        parts: List[str] = []
        preamble = unit.preamble.rstrip()
        if preamble:
            parts.append(preamble)
        parts.extend(self.print_declaration(d) for d in unit.types)
        return "\n\n".join(parts) + "\n"

    def print_declaration(self, decl: Declaration) -> str:
        if decl.source is not None:
            return decl.source

        indent = decl.indent
        member_indent = decl.member_indent or indent + config.INDENT

        header = decl.header_source if decl.header_source is not None else self._header(decl)
        body = self._members(decl.members, member_indent)

        if not body:
            return header + "\n" + indent + "}"
        tail = decl.body_tail if decl.body_tail and "\n" in decl.body_tail else "\n" + indent + "}"
        return header + "\n" + body + tail

    # ---------------- Declarations ----------------

    def _header(self, decl: Declaration) -> str:
        indent = decl.indent
        lines: List[str] = []
        if decl.doc:
            lines.extend(_indent_lines(decl.doc, indent))
        lines.extend(indent + a for a in decl.annotations)

        keyword = "@interface" if decl.kind == "annotation" else decl.kind
        head = " ".join(list(decl.modifiers) + [keyword, decl.name])
        if decl.type_parameters:
            head += "<" + ", ".join(decl.type_parameters) + ">"
        if decl.components is not None:
            head += "(" + ", ".join(f"{c.raw_type} {c.name}" for c in decl.components) + ")"
        for keyword, types in (
            ("extends", decl.extends),
            ("implements", decl.implements),
            ("permits", decl.permits),
        ):
            if types:
                head += f" {keyword} " + ", ".join(types)
        lines.append(indent + head + " {")
        return "\n".join(lines)

    # ---------------- Members ----------------

    def _members(self, members: Sequence[Member], indent: str) -> str:
        out: List[str] = []
        prev: Optional[Member] = None
        for m in members:
            text = self.print_member(m, indent)
            if prev is not None:
                # consecutive fields stay together, everything else gets a blank line
                out.append("\n" if isinstance(prev, Field) and isinstance(m, Field) else "\n\n")
            out.append(text)
            prev = m
        return "".join(out)

    def print_member(self, member: Member, indent: str) -> str:
        if isinstance(member, NestedType):
            return self.print_declaration(member.declaration)
        if isinstance(member, RawMember):
            return member.source
        if member.source is not None:
            return member.source
        if isinstance(member, Field):
            return self._field(member, indent)
        if isinstance(member, Constructor):
            return self._callable(member, indent, None, member.doc)
        if isinstance(member, Method):
            return self._callable(member, indent, member.return_type, None)
        raise TypeError(f"Unsupported member: {type(member).__name__}")

    def _field(self, f: Field, indent: str) -> str:
        lines = [indent + a for a in f.annotations]
        text = " ".join(list(f.modifiers) + [f.raw_type, f.name])
        if f.initializer is not None:
            text += " = " + f.initializer
        lines.append(indent + text + ";")
        return "\n".join(lines)

    def _callable(self, m, indent: str, return_type: Optional[str], doc: Optional[str]) -> str:
        lines: List[str] = []
        if doc:
            lines.extend(_indent_lines(doc, indent))
        lines.extend(indent + a for a in m.annotations)

        head = list(m.modifiers)
        if m.type_parameters:
            head.append("<" + ", ".join(m.type_parameters) + ">")
        if return_type is not None:
            head.append(return_type)
        signature = " ".join(head + [m.name])
        if not getattr(m, "is_compact", False):
            signature += "(" + _parameters(m.parameters) + ")"
        if m.throws:
            signature += " throws " + ", ".join(m.throws)

        if m.body is None:
            lines.append(indent + signature + ";")
            return "\n".join(lines)

        lines.append(indent + signature + " {")
        body_indent = indent + config.INDENT
        for stmt in m.body:
            lines.extend(_indent_lines(stmt, body_indent))
        lines.append(indent + "}")
        return "\n".join(lines)


def _parameters(params: Sequence[Parameter]) -> str:
    return ", ".join(" ".join(list(p.modifiers) + [p.raw_type, p.name]) for p in params)


def _indent_lines(text: str, indent: str) -> List[str]:
    return [indent + line if line.strip() else "" for line in text.split("\n")]
