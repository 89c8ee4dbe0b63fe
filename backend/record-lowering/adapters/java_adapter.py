import logging
import re
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from lark import Lark, Token  # type: ignore
from lark.exceptions import LarkError, UnexpectedInput  # type: ignore

import config
from cir.graph import CapabilityGraph
from cir.model import (
    Capability,
    CompilationUnit,
    Component,
    Constructor,
    Declaration,
    Field,
    Member,
    Method,
    MethodSignature,
    NestedType,
    Parameter,
    RawMember,
    is_primitive_type,
)

logger = logging.getLogger(__name__)

# Token-level Java grammar. Structure is recovered by JavaAdapter itself;
# comments are skipped by the lexer but stay inside the sliced source text.
_JAVA_TOKENS = r'''
    start: _token*
    _token: TEXT_BLOCK | STRING | CHAR | NUMBER | IDENT
          | ELLIPSIS | ARROW | DCOLON | DOT | OP
          | LBRACE | RBRACE | LPAR | RPAR | LSQB | RSQB
          | SEMI | COMMA | AT

    TEXT_BLOCK.3: /"""[\s\S]*?"""/
    STRING.2: /"(?:\\.|[^"\\\n])*"/
    CHAR.2: /'(?:\\.|[^'\\\n])+'/
    NUMBER: /(?:0[xX][0-9a-fA-F_]+|0[bB][01_]+|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d+)?)[lLfFdD]?/
    IDENT: /(?:[^\W\d]|\$)[\w$]*/
    ELLIPSIS.2: "..."
    ARROW.2: "->"
    DCOLON.2: "::"
    DOT: "."
    OP: /[-+*\/%=<>!&|^~?:]/
    LBRACE: "{"
    RBRACE: "}"
    LPAR: "("
    RPAR: ")"
    LSQB: "["
    RSQB: "]"
    SEMI: ";"
    COMMA: ","
    AT: "@"

    LINE_COMMENT.4: /\/\/[^\n]*/
    BLOCK_COMMENT.4: /\/\*[\s\S]*?\*\//

    %import common.WS
    %ignore WS
    %ignore LINE_COMMENT
    %ignore BLOCK_COMMENT
'''

_LEXER = Lark(_JAVA_TOKENS, parser="lalr", lexer="basic")

MODIFIERS = {
    "public", "protected", "private", "static", "abstract", "final", "sealed",
    "strictfp", "transient", "volatile", "synchronized", "native", "default",
}
TYPE_KEYWORDS = {"class", "interface", "enum", "record"}
HEADER_KEYWORDS = {"extends", "implements", "permits"}

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}
_PUNCT = {"LPAR", "RPAR", "LSQB", "RSQB", "LBRACE", "RBRACE", "SEMI", "COMMA", "OP", "DOT", "AT"}
_TRAILING_COMMENT = re.compile(r"[ \t]*//[^\n]*")
_LEADING_SPACE = re.compile(r"\s*")
_LINE_INDENT = re.compile(r"[ \t]*")
_HEADER_GAP = re.compile(r"//[^\n]*|/\*[\s\S]*?\*/|\s+")


class _Cursor:
    """Token cursor with source-slicing helpers."""

    def __init__(self, code: str, tokens: List[Token]) -> None:
        self.code = code
        self.tokens = tokens
        self.i = 0

    def peek(self, offset: int = 0) -> Optional[Token]:
        j = self.i + offset
        return self.tokens[j] if 0 <= j < len(self.tokens) else None

    def at(self, value: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok is not None and tok.value == value and (tok.type in _PUNCT or tok.type in ("IDENT", "ELLIPSIS"))

    def at_ident(self, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok is not None and tok.type == "IDENT"

    def eof(self) -> bool:
        return self.i >= len(self.tokens)

    def next(self) -> Token:
        tok = self.peek()
        if tok is None:
            raise ValueError("Java syntax error: unexpected end of input")
        self.i += 1
        return tok

    def expect(self, value: str) -> Token:
        tok = self.next()
        if tok.value != value:
            raise ValueError(f"Java syntax error: expected '{value}' at line {tok.line}, got '{tok.value}'")
        return tok

    def expect_ident(self) -> Token:
        tok = self.next()
        if tok.type != "IDENT":
            raise ValueError(f"Java syntax error: expected identifier at line {tok.line}, got '{tok.value}'")
        return tok

    def skip_balanced(self, open_: str, close: str) -> Token:
        """Consume from the current `open_` to its matching `close`; return the closer."""
        self.expect(open_)
        depth = 1
        while True:
            tok = self.next()
            if tok.type in _PUNCT and tok.value == open_:
                depth += 1
            elif tok.type in _PUNCT and tok.value == close:
                depth -= 1
                if depth == 0:
                    return tok

    def text(self, first: Token, last: Token) -> str:
        return self.code[first.start_pos:last.end_pos]


class EmbeddedRecord(NamedTuple):
    """A record found inside member text; `text[start:end]` is its declaration."""
    start: int
    end: int
    declaration: Declaration
    # indentation the printed declaration carries but text[start:] does not
    line_indent: str


class JavaAdapter:
    """
    Java source -> CompilationUnit builder.

    Reads declarations down to member level:
      - records (header components, compact constructors), classes,
        interfaces, enums, annotation types, nested member types
      - fields (one Field per declarator), constructors, methods
      - initializer blocks / enum constants kept as RawMember
    Every member keeps its exact source text (leading comments included),
    so members the lowering does not touch print back unchanged.

    Also builds the CapabilityGraph from the interfaces it has read.
    """

    language = "java"

    # ---------------- Parsing entry points ----------------

    def parse_to_tokens(self, code: str) -> List[Token]:
        try:
            return list(_LEXER.lex(code))
        except UnexpectedInput as e:
            raise ValueError(f"Java syntax error: {e}")
        except LarkError as e:
            raise ValueError(f"Failed to lex Java code: {e}")

    def build_unit_for_code(self, code: str, filename: Optional[str] = None) -> CompilationUnit:
        """
        Single-compilation-unit helper (for /lower).
        """
        cur = _Cursor(code, self.parse_to_tokens(code))

        package: Optional[str] = None
        imports: List[str] = []
        prev_end = 0

        while cur.at("@") and not cur.at("interface", 1) and self._annotations_precede_package(cur):
            self._read_annotation(cur)
        if cur.at("package"):
            first = cur.next()
            semi = self._skip_to_semicolon(cur)
            package = _collapse(code[first.end_pos:semi.start_pos])
            prev_end = semi.end_pos

        while cur.at("import"):
            first = cur.next()
            semi = self._skip_to_semicolon(cur)
            imports.append(_collapse(code[first.end_pos:semi.start_pos]))
            prev_end = semi.end_pos

        while cur.at(";"):
            prev_end = cur.next().end_pos

        if not cur.eof():
            prev_end = _header_end(code, prev_end, cur.peek().start_pos)
        preamble_end = _line_start(code, _leading_start(code, prev_end)) if not cur.eof() else len(code)
        types: List[Declaration] = []
        while not cur.eof():
            if cur.at(";"):
                prev_end = cur.next().end_pos
                continue
            decl, prev_end = self._read_type_declaration(cur, prev_end, package, package, is_member=False)
            types.append(decl)

        logger.debug("Read %d type declaration(s) from %s", len(types), filename or "<code>")
        return CompilationUnit(
            package=package,
            imports=tuple(imports),
            types=tuple(types),
            preamble=code[:preamble_end],
            source_file=filename,
            source=code,
        )

    def build_unit_for_files(self, files: List[str]) -> Tuple[List[CompilationUnit], List[Dict[str, str]]]:
        """
        Multi-file helper.
        Skips unreadable / invalid Java files but continues with the rest.
        """
        units: List[CompilationUnit] = []
        errors: List[Dict[str, str]] = []

        for path in files:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    code = f.read()
                units.append(self.build_unit_for_code(code, filename=path))
            except (OSError, ValueError) as e:
                logger.warning("Skipping %s: %s", path, e)
                errors.append({"file": path, "error": str(e)})
                continue

        return units, errors

    def build_capability_graph(self, units: Sequence[CompilationUnit]) -> CapabilityGraph:
        """Every interface in `units` (nested ones too) becomes a capability."""
        graph = CapabilityGraph()
        for unit in units:
            for decl in _walk(unit.types):
                if decl.kind != "interface":
                    continue
                methods = tuple(
                    MethodSignature(m.name, tuple(p.type_name for p in m.parameters))
                    for m in decl.members
                    if isinstance(m, Method)
                )
                graph.add_capability(
                    Capability(
                        id=f"capability:{decl.qualified_name}",
                        name=decl.name,
                        qualified_name=decl.qualified_name,
                        package=decl.package,
                        methods=methods,
                        extends=decl.extends,
                    )
                )
        graph.link_extends()
        return graph

    def find_embedded_records(
        self,
        text: str,
        package: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> List[EmbeddedRecord]:
        """
        Records declared inside member text (method / constructor bodies,
        initializer blocks, field initializers): local records, and records
        declared in anonymous or local class bodies.

        Only the outermost ones are returned; anything declared inside them is
        reached through the returned declarations.
        """
        if "record" not in text:
            return []

        cur = _Cursor(text, self.parse_to_tokens(text))
        found: List[EmbeddedRecord] = []
        # one entry per open brace: True when it opens a class body
        braces: List[bool] = []

        while not cur.eof():
            tok = cur.peek()
            if tok.type == "LBRACE":
                braces.append(_opens_class_body(cur.tokens, cur.i))
            elif tok.type == "RBRACE":
                if braces:
                    braces.pop()
            elif _starts_record(cur.tokens, cur.i):
                start = _declaration_start(cur.tokens, cur.i)
                prev_end = cur.tokens[start - 1].end_pos if start > 0 else 0
                cur.i = start
                in_class_body = bool(braces) and braces[-1]
                decl, end = self._read_type_declaration(cur, prev_end, package, scope, is_member=in_class_body)

                lead = _leading_start(text, prev_end)
                line_start = _line_start(text, lead)
                if text[line_start:lead].strip():
                    # shares its line with other code: lay it out at that line's indentation
                    line_indent = _LINE_INDENT.match(text, line_start).group()
                    decl.indent = line_indent
                    decl.member_indent = line_indent + config.INDENT
                    decl.header_source = line_indent + decl.header_source[lead - line_start:]
                    found.append(EmbeddedRecord(lead, end, decl, line_indent))
                else:
                    found.append(EmbeddedRecord(line_start, end, decl, ""))
                continue
            cur.next()

        logger.debug("Found %d record(s) declared in member text of %s", len(found), scope or "<code>")
        return found

    # ---------------- Type declarations ----------------

    def _read_type_declaration(
        self,
        cur: _Cursor,
        prev_end: int,
        package: Optional[str],
        scope: Optional[str],
        is_member: bool,
    ) -> Tuple[Declaration, int]:
        code = cur.code
        lead = _leading_start(code, prev_end)
        first = cur.peek()
        annotations, modifiers = self._read_modifiers(cur)

        if cur.at("@") and cur.at("interface", 1):
            cur.next()
            cur.next()
            kind = "annotation"
        else:
            kw = cur.next()
            if kw.value not in TYPE_KEYWORDS:
                raise ValueError(f"Java syntax error: expected a type declaration at line {kw.line}, got '{kw.value}'")
            kind = kw.value
        name = cur.expect_ident().value
        qualified_name = f"{scope}.{name}" if scope else name

        type_parameters: Tuple[str, ...] = ()
        if cur.at("<"):
            open_index = cur.i
            cur.skip_balanced("<", ">")
            type_parameters = tuple(
                _collapse(code[g[0].start_pos:g[-1].end_pos])
                for g in _split_top_level(cur.tokens[open_index + 1:cur.i - 1], angles=True)
            )

        components: Optional[Tuple[Component, ...]] = None
        if kind == "record":
            components = tuple(
                Component(name=p.name, raw_type=p.raw_type, is_primitive=is_primitive_type(p.raw_type))
                for p in self._read_parameters(cur)
            )

        clauses: Dict[str, Tuple[str, ...]] = {}
        while not cur.at("{"):
            kw = cur.next()
            if kw.value not in HEADER_KEYWORDS:
                raise ValueError(f"Java syntax error: unexpected '{kw.value}' at line {kw.line}")
            clauses[kw.value] = self._read_type_list(cur)

        lbrace = cur.expect("{")
        src_start = _line_start(code, lead)
        indent = _indent_at(code, lead)

        members, last_end, first_member_lead = self._read_members(cur, kind, name, lbrace.end_pos, package, qualified_name)
        rbrace = cur.expect("}")
        end = _extend_trailing_comment(code, rbrace.end_pos)

        member_indent = _indent_at(code, first_member_lead) if first_member_lead is not None else None
        decl = Declaration(
            id=f"type:{qualified_name}",
            name=name,
            kind=kind,
            qualified_name=qualified_name,
            package=package,
            modifiers=tuple(modifiers),
            annotations=tuple(annotations),
            type_parameters=type_parameters,
            components=components,
            extends=clauses.get("extends", ()),
            implements=clauses.get("implements", ()),
            permits=clauses.get("permits", ()),
            members=tuple(members),
            is_member=is_member,
            indent=indent,
            member_indent=member_indent or indent + config.INDENT,
            doc=_doc(code, lead, first.start_pos),
            header_source=code[src_start:lbrace.end_pos],
            body_tail=code[last_end:rbrace.end_pos] if members else None,
            source=code[src_start:end],
        )
        return decl, end

    def _read_type_list(self, cur: _Cursor) -> Tuple[str, ...]:
        start = cur.i
        depth = 0
        while True:
            tok = cur.peek()
            if tok is None:
                raise ValueError("Java syntax error: unexpected end of input in type header")
            if depth == 0 and (cur.at("{") or (tok.type == "IDENT" and tok.value in HEADER_KEYWORDS)):
                break
            if cur.at("<"):
                depth += 1
            elif cur.at(">"):
                depth -= 1
            cur.next()
        return tuple(
            _collapse(cur.code[g[0].start_pos:g[-1].end_pos])
            for g in _split_top_level(cur.tokens[start:cur.i], angles=True)
        )

    # ---------------- Members ----------------

    def _read_members(
        self,
        cur: _Cursor,
        kind: str,
        type_name: str,
        body_start: int,
        package: Optional[str],
        scope: str,
    ) -> Tuple[List[Member], int, Optional[int]]:
        code = cur.code
        members: List[Member] = []
        prev_end = body_start
        first_lead: Optional[int] = None

        if kind == "enum":
            member, end = self._read_enum_constants(cur, prev_end)
            if member is not None:
                members.append(member)
                first_lead = _leading_start(code, prev_end)
                prev_end = end

        while not cur.at("}"):
            if cur.eof():
                raise ValueError(f"Java syntax error: unterminated body of {type_name}")
            if cur.at(";"):
                prev_end = cur.next().end_pos
                continue

            lead = _leading_start(code, prev_end)
            if first_lead is None:
                first_lead = lead
            new_members, end = self._read_member(cur, kind, type_name, prev_end, package, scope)
            members.extend(new_members)
            prev_end = end

        return members, prev_end, first_lead

    def _read_enum_constants(self, cur: _Cursor, prev_end: int) -> Tuple[Optional[RawMember], int]:
        first = cur.peek()
        depth = 0
        last: Optional[Token] = None
        while True:
            tok = cur.peek()
            if tok is None:
                raise ValueError("Java syntax error: unterminated enum body")
            if depth == 0 and cur.at("}"):
                break
            cur.next()
            if tok.type in _PUNCT and tok.value in _OPENERS:
                depth += 1
            elif tok.type in _PUNCT and tok.value in _CLOSERS:
                depth -= 1
            last = tok
            if depth == 0 and tok.value == ";" and tok.type == "SEMI":
                break
        if last is None or first is None:
            return None, prev_end
        end = _extend_trailing_comment(cur.code, last.end_pos)
        return RawMember(source=_member_source(cur.code, prev_end, end), kind="enum_constants"), end

    def _read_member(
        self,
        cur: _Cursor,
        kind: str,
        type_name: str,
        prev_end: int,
        package: Optional[str],
        scope: str,
    ) -> Tuple[List[Member], int]:
        code = cur.code
        start_index = cur.i
        lead = _leading_start(code, prev_end)
        annotations, modifiers = self._read_modifiers(cur)

        # initializer block
        if cur.at("{"):
            close = cur.skip_balanced("{", "}")
            end = _extend_trailing_comment(code, close.end_pos)
            return [RawMember(source=_member_source(code, prev_end, end))], end

        # member type
        if self._at_type_declaration(cur):
            cur.i = start_index
            decl, end = self._read_type_declaration(cur, prev_end, package, scope, is_member=True)
            return [NestedType(decl)], end

        type_parameters: Tuple[str, ...] = ()
        if cur.at("<"):
            open_index = cur.i
            cur.skip_balanced("<", ">")
            type_parameters = tuple(
                _collapse(code[g[0].start_pos:g[-1].end_pos])
                for g in _split_top_level(cur.tokens[open_index + 1:cur.i - 1], angles=True)
            )

        # constructors
        tok = cur.peek()
        if tok is not None and tok.type == "IDENT" and tok.value == type_name and (cur.at("(", 1) or cur.at("{", 1)):
            cur.next()
            is_compact = cur.at("{")
            if is_compact and kind != "record":
                raise ValueError(f"Java syntax error: constructor without parameters at line {tok.line}")
            parameters = () if is_compact else self._read_parameters(cur)
            throws = self._read_throws(cur)
            body, close = self._read_body(cur)
            end = _extend_trailing_comment(code, close.end_pos)
            return [Constructor(
                name=type_name,
                parameters=parameters,
                body=body,
                modifiers=tuple(modifiers),
                annotations=tuple(annotations),
                type_parameters=type_parameters,
                throws=throws,
                is_compact=is_compact,
                doc=_doc(code, lead, cur.tokens[start_index].start_pos),
                source=_member_source(code, prev_end, end),
            )], end

        type_first, type_last = self._read_type(cur)
        raw_type = _collapse(cur.text(type_first, type_last))
        name_tok = cur.expect_ident()

        # methods
        if cur.at("("):
            parameters = self._read_parameters(cur)
            while cur.at("[") and cur.at("]", 1):
                cur.next()
                cur.next()
            throws = self._read_throws(cur)
            if cur.at("default"):
                self._skip_to_semicolon(cur, consume=False)
            if cur.at("{"):
                body, close = self._read_body(cur)
                method_body: Optional[Tuple[str, ...]] = body
            else:
                close = cur.expect(";")
                method_body = None
            end = _extend_trailing_comment(code, close.end_pos)
            return [Method(
                name=name_tok.value,
                return_type=raw_type,
                parameters=parameters,
                body=method_body,
                modifiers=tuple(modifiers),
                annotations=tuple(annotations),
                type_parameters=type_parameters,
                throws=throws,
                source=_member_source(code, prev_end, end),
            )], end

        # fields: one Field per declarator
        decl_start = cur.i - 1
        semi = self._skip_to_semicolon(cur)
        end = _extend_trailing_comment(code, semi.end_pos)
        declarators = _split_declarators(cur.tokens[decl_start:cur.i - 1])
        fields: List[Member] = []
        for group in declarators:
            fname = group[0].value
            dims = ""
            j = 1
            while j + 1 < len(group) and group[j].value == "[" and group[j + 1].value == "]":
                dims += "[]"
                j += 2
            initializer = None
            if j < len(group) and group[j].value == "=":
                initializer = code[group[j + 1].start_pos:group[-1].end_pos] if j + 1 < len(group) else ""
            fields.append(Field(
                name=fname,
                raw_type=raw_type + dims,
                modifiers=tuple(modifiers),
                annotations=tuple(annotations),
                initializer=initializer,
                source=None,
            ))
        if len(fields) == 1:
            fields[0].source = _member_source(code, prev_end, end)
        return fields, end

    def _at_type_declaration(self, cur: _Cursor) -> bool:
        if cur.at("@") and cur.at("interface", 1):
            return True
        tok = cur.peek()
        if tok is None or tok.type != "IDENT" or tok.value not in TYPE_KEYWORDS:
            return False
        if tok.value == "record":
            # contextual keyword: `record Name(` / `record Name<`
            return cur.at_ident(1) and (cur.at("(", 2) or cur.at("<", 2))
        return cur.at_ident(1)

    # ---------------- Pieces ----------------

    def _annotations_precede_package(self, cur: _Cursor) -> bool:
        j = cur.i
        depth = 0
        while j < len(cur.tokens):
            tok = cur.tokens[j]
            if tok.type == "LPAR":
                depth += 1
            elif tok.type == "RPAR":
                depth -= 1
            elif depth == 0 and tok.type == "IDENT" and tok.value == "package":
                return True
            elif depth == 0 and tok.type == "IDENT" and (tok.value in TYPE_KEYWORDS or tok.value in MODIFIERS):
                return False
            j += 1
        return False

    def _read_annotation(self, cur: _Cursor) -> str:
        first = cur.expect("@")
        last = cur.expect_ident()
        while cur.at(".") and cur.at_ident(1):
            cur.next()
            last = cur.next()
        if cur.at("("):
            last = cur.skip_balanced("(", ")")
        return cur.text(first, last)

    def _read_modifiers(self, cur: _Cursor) -> Tuple[List[str], List[str]]:
        annotations: List[str] = []
        modifiers: List[str] = []
        while True:
            if cur.at("@") and not cur.at("interface", 1):
                annotations.append(self._read_annotation(cur))
            elif cur.at_ident() and cur.peek().value in MODIFIERS:
                modifiers.append(cur.next().value)
            elif cur.at("non") and cur.at("-", 1) and cur.at("sealed", 2):
                cur.next()
                cur.next()
                cur.next()
                modifiers.append("non-sealed")
            else:
                return annotations, modifiers

    def _read_type(self, cur: _Cursor) -> Tuple[Token, Token]:
        first = cur.peek()
        while cur.at("@"):
            self._read_annotation(cur)
        last = cur.expect_ident()
        while True:
            if cur.at("<"):
                last = cur.skip_balanced("<", ">")
            elif cur.at(".") and cur.at_ident(1):
                cur.next()
                last = cur.next()
            else:
                break
        while cur.at("[") and cur.at("]", 1):
            cur.next()
            last = cur.next()
        if cur.at("..."):
            last = cur.next()
        return first, last

    def _read_parameters(self, cur: _Cursor) -> Tuple[Parameter, ...]:
        open_index = cur.i
        cur.skip_balanced("(", ")")
        inner = cur.tokens[open_index + 1:cur.i - 1]
        params: List[Parameter] = []
        for group in _split_top_level(inner, angles=True):
            params.append(self._parameter_from_tokens(cur, group))
        return tuple(params)

    def _parameter_from_tokens(self, cur: _Cursor, group: List[Token]) -> Parameter:
        sub = _Cursor(cur.code, group)
        annotations, modifiers = self._read_modifiers(sub)
        first, last = self._read_type(sub)
        name_tok = sub.expect_ident()
        raw_type = _collapse(sub.text(first, last))
        while sub.at("[") and sub.at("]", 1):
            sub.next()
            sub.next()
            raw_type += "[]"
        return Parameter(name=name_tok.value, raw_type=raw_type, modifiers=tuple(annotations + modifiers))

    def _read_throws(self, cur: _Cursor) -> Tuple[str, ...]:
        if not cur.at("throws"):
            return ()
        cur.next()
        start = cur.i
        while not (cur.at("{") or cur.at(";") or cur.at("default")):
            cur.next()
        return tuple(
            _collapse(cur.code[g[0].start_pos:g[-1].end_pos])
            for g in _split_top_level(cur.tokens[start:cur.i], angles=True)
        )

    def _read_body(self, cur: _Cursor) -> Tuple[Tuple[str, ...], Token]:
        """Read a `{ ... }` block; return its top-level statements and the closing brace."""
        open_index = cur.i
        close = cur.skip_balanced("{", "}")
        return tuple(_split_statements(cur.code, cur.tokens, open_index, cur.i - 1)), close

    def _skip_to_semicolon(self, cur: _Cursor, consume: bool = True) -> Token:
        depth = 0
        while True:
            tok = cur.peek()
            if tok is None:
                raise ValueError("Java syntax error: missing ';'")
            if tok.type in ("LPAR", "LSQB", "LBRACE"):
                depth += 1
            elif tok.type in ("RPAR", "RSQB", "RBRACE"):
                depth -= 1
            elif tok.type == "SEMI" and depth == 0:
                if consume:
                    cur.next()
                return tok
            cur.next()


# ---------------- Module helpers ----------------

def _walk(decls: Sequence[Declaration]) -> Iterator[Declaration]:
    for d in decls:
        yield d
        yield from _walk([m.declaration for m in d.members if isinstance(m, NestedType)])


def _starts_record(tokens: Sequence[Token], i: int) -> bool:
    """`record Name(` / `record Name<`; `record` is only a keyword there."""
    if i + 2 >= len(tokens):
        return False
    tok, name, nxt = tokens[i], tokens[i + 1], tokens[i + 2]
    if tok.type != "IDENT" or tok.value != "record" or name.type != "IDENT":
        return False
    if i > 0 and tokens[i - 1].type == "DOT":
        return False
    return nxt.type == "LPAR" or (nxt.type == "OP" and nxt.value == "<")


def _declaration_start(tokens: Sequence[Token], i: int) -> int:
    """Step back from the type keyword at `i` over its modifiers and annotations."""
    start = i
    j = i - 1
    while j >= 0:
        tok = tokens[j]
        if tok.type == "IDENT" and tok.value in MODIFIERS:
            start = j
            j -= 1
            continue
        k = j
        if tok.type == "RPAR":
            k = _matching_open(tokens, j) - 1
        # @Name / @qualified.Name
        while k >= 2 and tokens[k].type == "IDENT" and tokens[k - 1].type == "DOT":
            k -= 2
        if k >= 1 and tokens[k].type == "IDENT" and tokens[k - 1].type == "AT":
            start = k - 1
            j = k - 2
            continue
        break
    return start


def _matching_open(tokens: Sequence[Token], close_index: int) -> int:
    closer = tokens[close_index].type
    opener = {"RPAR": "LPAR", "RSQB": "LSQB", "RBRACE": "LBRACE"}[closer]
    depth = 0
    for j in range(close_index, -1, -1):
        if tokens[j].type == closer:
            depth += 1
        elif tokens[j].type == opener:
            depth -= 1
            if depth == 0:
                return j
    return 0


def _opens_class_body(tokens: Sequence[Token], i: int) -> bool:
    """
    Whether the `{` at `i` opens a class body: `new Type(...) {` or a local
    `class` / `interface` / `enum` declaration. Anything else is a block.
    """
    if i == 0:
        return False
    prev = tokens[i - 1]

    if prev.type == "RPAR":
        j = _matching_open(tokens, i - 1) - 1
        while j >= 0:
            tok = tokens[j]
            if tok.type == "IDENT" and tok.value == "new":
                return True
            if tok.type in ("IDENT", "DOT", "COMMA", "LSQB", "RSQB", "AT") or (
                tok.type == "OP" and tok.value in "<>?"
            ):
                j -= 1
                continue
            return False
        return False

    j = i - 1
    depth = 0
    while j >= 0:
        tok = tokens[j]
        if tok.type in ("RPAR", "RSQB"):
            depth += 1
        elif tok.type in ("LPAR", "LSQB"):
            depth -= 1
        elif depth == 0 and tok.type in ("SEMI", "LBRACE", "RBRACE"):
            return False
        elif depth == 0 and tok.type == "IDENT" and tok.value in ("class", "interface", "enum"):
            return j == 0 or tokens[j - 1].type != "DOT"
        j -= 1
    return False


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _line_start(code: str, pos: int) -> int:
    return code.rfind("\n", 0, pos) + 1


def _leading_start(code: str, pos: int) -> int:
    """First non-whitespace position at or after `pos` (start of comments or tokens)."""
    return _LEADING_SPACE.match(code, pos).end()


def _header_end(code: str, start: int, first_token: int) -> int:
    """
    End of the comment block that heads the file (license text and the like):
    comments in front of the first type that are set off from it by a blank
    line belong to the unit, not to the declaration.
    """
    end = start
    for m in _HEADER_GAP.finditer(code, start, first_token):
        if not m.group().strip() and m.group().count("\n") >= 2:
            end = m.end()
    return end


def _indent_at(code: str, pos: int) -> str:
    prefix = code[_line_start(code, pos):pos]
    return prefix if prefix.strip() == "" else ""


def _extend_trailing_comment(code: str, end: int) -> int:
    m = _TRAILING_COMMENT.match(code, end)
    return m.end() if m else end


def _member_source(code: str, prev_end: int, end: int) -> str:
    lead = _leading_start(code, prev_end)
    start = lead - len(_indent_at(code, lead))
    return code[start:end]


def _doc(code: str, lead: int, first_token: int) -> Optional[str]:
    text = code[lead:first_token].rstrip()
    return _dedent(code, lead, text) if text else None


def _dedent(code: str, start: int, text: str) -> str:
    indent = _indent_at(code, start)
    if not indent:
        return text
    lines = text.split("\n")
    return "\n".join([lines[0]] + [ln[len(indent):] if ln.startswith(indent) else ln for ln in lines[1:]])


def _split_top_level(tokens: Sequence[Token], angles: bool = False) -> List[List[Token]]:
    """Split on commas that are not nested in (), [], {} (and <> when `angles`)."""
    groups: List[List[Token]] = []
    current: List[Token] = []
    depth = 0
    for tok in tokens:
        is_punct = tok.type in _PUNCT
        if is_punct and (tok.value in _OPENERS or (angles and tok.value == "<")):
            depth += 1
        elif is_punct and (tok.value in _CLOSERS or (angles and tok.value == ">")):
            depth -= 1
        elif tok.type == "COMMA" and depth == 0:
            groups.append(current)
            current = []
            continue
        current.append(tok)
    if current:
        groups.append(current)
    return [g for g in groups if g]


def _split_declarators(tokens: Sequence[Token]) -> List[List[Token]]:
    """
    `a = 1, b[] , c = new HashMap<K, V>()` -> one token group per declarator.
    A comma starts a new declarator only when followed by `name =`, `name ,`,
    `name ;`-position or `name [`.
    """
    groups: List[List[Token]] = [[]]
    depth = 0
    for idx, tok in enumerate(tokens):
        if tok.type in ("LPAR", "LSQB", "LBRACE"):
            depth += 1
        elif tok.type in ("RPAR", "RSQB", "RBRACE"):
            depth -= 1
        elif tok.type == "COMMA" and depth == 0 and idx + 1 < len(tokens) and tokens[idx + 1].type == "IDENT":
            after = tokens[idx + 2] if idx + 2 < len(tokens) else None
            if after is None or after.value in ("=", ",", "["):
                groups.append([])
                continue
        groups[-1].append(tok)
    return [g for g in groups if g]


def _split_statements(code: str, tokens: Sequence[Token], open_index: int, close_index: int) -> List[str]:
    """
    Top-level statements of the block tokens[open_index] .. tokens[close_index].
    Each statement carries the comments in front of it; comments after the last
    statement become a trailing chunk of their own.
    """
    statements: List[str] = []
    pos = tokens[open_index].end_pos
    depth = 0
    stmt_first: Optional[int] = None

    j = open_index + 1
    while j < close_index:
        tok = tokens[j]
        if stmt_first is None:
            stmt_first = j
        ends = False
        if tok.type in ("LPAR", "LSQB", "LBRACE"):
            depth += 1
        elif tok.type in ("RPAR", "RSQB", "RBRACE"):
            depth -= 1
            if tok.type == "RBRACE" and depth == 0:
                nxt = tokens[j + 1]
                continues = nxt.value in (";", ",", ")", ".", "else", "catch", "finally") or (
                    nxt.value == "while" and tokens[stmt_first].value == "do"
                )
                ends = not continues or j + 1 == close_index
        elif tok.type == "SEMI" and depth == 0:
            ends = True

        if ends:
            end = _extend_trailing_comment(code, tok.end_pos)
            statements.append(_statement_text(code, pos, end))
            pos = end
            stmt_first = None
        j += 1

    if stmt_first is not None:
        end = tokens[close_index - 1].end_pos
        statements.append(_statement_text(code, pos, end))
        pos = end

    rest = code[pos:tokens[close_index].start_pos]
    if rest.strip():
        statements.append(_statement_text(code, pos, tokens[close_index].start_pos))
    return statements


def _statement_text(code: str, start: int, end: int) -> str:
    lead = _leading_start(code, start)
    return _dedent(code, lead, code[lead:end].rstrip())
