import re
from dataclasses import dataclass
from typing import Literal, Optional, Tuple, Union

DeclKind = Literal["class", "interface", "enum", "record", "annotation"]

PRIMITIVE_TYPES = frozenset(
    {"boolean", "byte", "short", "int", "long", "char", "float", "double"}
)

_GENERIC_ARGS = re.compile(r"<[^<>]*>")
_TYPE_ANNOTATION = re.compile(r"@[\w.$]+(\([^()]*\))?\s*")


def erase_type(raw_type: str) -> str:
    """
    Declared type text -> name used for signature matching.
      java.util.List<Item>  -> List
      String...             -> String[]
      java.lang.Object      -> Object
    Declared names are compared, not resolved types.
    """
    t = _TYPE_ANNOTATION.sub("", raw_type)
    t = re.sub(r"\s+", "", t)
    prev = None
    while prev != t:
        prev = t
        t = _GENERIC_ARGS.sub("", t)
    t = t.replace("...", "[]")

    dims = ""
    if "[" in t:
        t, dims = t[: t.index("[")], t[t.index("[") :]
    if "." in t:
        t = t.split(".")[-1]
    return t + dims


def is_primitive_type(raw_type: str) -> bool:
    return erase_type(raw_type) in PRIMITIVE_TYPES


@dataclass(frozen=True)
class Parameter:
    name: str
    raw_type: str               # declared type text (e.g. List<Item>)
    modifiers: Tuple[str, ...] = ()  # final / annotations, in source order

    @property
    def type_name(self) -> str:
        return erase_type(self.raw_type)


@dataclass(frozen=True)
class Component:
    name: str
    raw_type: str
    is_primitive: bool

    @property
    def type_name(self) -> str:
        return erase_type(self.raw_type)

    @property
    def field_type(self) -> str:
        """Type of the backing field and accessor: `T...` becomes `T[]`."""
        if self.raw_type.endswith("..."):
            return self.raw_type[:-3].rstrip() + "[]"
        return self.raw_type

    def as_parameter(self) -> Parameter:
        return Parameter(name=self.name, raw_type=self.raw_type)


@dataclass
class Field:
    name: str
    raw_type: str
    modifiers: Tuple[str, ...] = ()
    annotations: Tuple[str, ...] = ()
    initializer: Optional[str] = None
    source: Optional[str] = None   # exact source text when read from a file

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers


@dataclass
class Constructor:
    name: str
    parameters: Tuple[Parameter, ...] = ()
    body: Tuple[str, ...] = ()     # top-level statements, in order
    modifiers: Tuple[str, ...] = ()
    annotations: Tuple[str, ...] = ()
    type_parameters: Tuple[str, ...] = ()
    throws: Tuple[str, ...] = ()
    is_compact: bool = False
    doc: Optional[str] = None
    source: Optional[str] = None


@dataclass
class Method:
    name: str
    return_type: str
    parameters: Tuple[Parameter, ...] = ()
    body: Optional[Tuple[str, ...]] = None  # None for abstract / interface methods
    modifiers: Tuple[str, ...] = ()
    annotations: Tuple[str, ...] = ()
    type_parameters: Tuple[str, ...] = ()
    throws: Tuple[str, ...] = ()
    source: Optional[str] = None


@dataclass
class RawMember:
    """Initializer blocks, enum constant lists and other members kept verbatim."""
    source: str
    kind: str = "initializer"


@dataclass
class NestedType:
    declaration: "Declaration"


Member = Union[Field, Constructor, Method, RawMember, NestedType]


@dataclass
class Declaration:
    id: str
    name: str
    kind: DeclKind
    qualified_name: str
    package: Optional[str] = None
    modifiers: Tuple[str, ...] = ()
    annotations: Tuple[str, ...] = ()
    type_parameters: Tuple[str, ...] = ()
    components: Optional[Tuple[Component, ...]] = None   # record header only
    extends: Tuple[str, ...] = ()
    implements: Tuple[str, ...] = ()
    permits: Tuple[str, ...] = ()
    members: Tuple[Member, ...] = ()
    is_member: bool = False        # declared inside another type
    required_imports: Tuple[str, ...] = ()
    # layout carried from the source so untouched text prints back unchanged
    indent: str = ""
    member_indent: Optional[str] = None
    doc: Optional[str] = None
    header_source: Optional[str] = None
    body_tail: Optional[str] = None
    source: Optional[str] = None


@dataclass
class CompilationUnit:
    package: Optional[str] = None
    imports: Tuple[str, ...] = ()   # e.g. "java.util.List", "static java.lang.Math.max"
    types: Tuple[Declaration, ...] = ()
    preamble: str = ""              # text ahead of the first type declaration
    source_file: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class MethodSignature:
    name: str
    parameter_types: Tuple[str, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.parameter_types)


@dataclass
class Capability:
    id: str
    name: str
    qualified_name: str
    package: Optional[str] = None
    methods: Tuple[MethodSignature, ...] = ()
    extends: Tuple[str, ...] = ()
