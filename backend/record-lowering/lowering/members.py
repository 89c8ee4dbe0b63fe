from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from cir.model import Constructor, Member, Method, erase_type

CONSTRUCTOR = "<constructor>"


@dataclass(frozen=True)
class Signature:
    """
    Shape used by the idempotence checks.
    Constructors match by parameter type list, methods by name and
    parameter type list. Types compare by erased declared name.
    """
    name: str
    parameter_types: Tuple[str, ...] = ()

    @classmethod
    def constructor(cls, parameter_types: Sequence[str]) -> "Signature":
        return cls(CONSTRUCTOR, tuple(erase_type(t) for t in parameter_types))

    @classmethod
    def method(cls, name: str, parameter_types: Sequence[str] = ()) -> "Signature":
        return cls(name, tuple(erase_type(t) for t in parameter_types))

    def matches(self, member: Member) -> bool:
        if isinstance(member, Constructor):
            if self.name != CONSTRUCTOR:
                return False
        elif isinstance(member, Method):
            if self.name != member.name:
                return False
        else:
            return False
        return tuple(p.type_name for p in member.parameters) == self.parameter_types

    def __str__(self) -> str:
        return f"{self.name}({', '.join(self.parameter_types)})"


class MemberList:
    """
    Ordered member sequence threaded through every synthesis step.

    Anchors are member objects, not indices: positions are looked up by
    identity at insertion time so they stay valid while the list grows.
    """
    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._members: List[Member] = list(members)

    def __iter__(self) -> Iterator[Member]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def index_of(self, anchor: Member) -> int:
        for i, member in enumerate(self._members):
            if member is anchor:
                return i
        raise LookupError(f"Anchor member is not part of the list: {anchor!r}")

    def insert_before(self, anchor: Member, member: Member) -> None:
        self._members.insert(self.index_of(anchor), member)

    def insert_after(self, anchor: Member, member: Member) -> None:
        self._members.insert(self.index_of(anchor) + 1, member)

    def append(self, member: Member) -> None:
        self._members.append(member)

    def replace(self, old: Member, new: Member) -> None:
        self._members[self.index_of(old)] = new

    def has_member(self, signature: Signature) -> bool:
        return any(signature.matches(m) for m in self._members)

    def constructors(self) -> List[Constructor]:
        return [m for m in self._members if isinstance(m, Constructor)]

    def to_tuple(self) -> Tuple[Member, ...]:
        return tuple(self._members)


@dataclass
class Anchors:
    first_constructor: Optional[Constructor] = None
    last_constructor: Optional[Constructor] = None
    first_method: Optional[Method] = None


def classify(members: MemberList) -> Anchors:
    """Scan once for the first/last constructor and the first method."""
    anchors = Anchors()
    for member in members:
        if isinstance(member, Constructor):
            if anchors.first_constructor is None:
                anchors.first_constructor = member
            anchors.last_constructor = member
        elif isinstance(member, Method) and anchors.first_method is None:
            anchors.first_method = member
    return anchors
