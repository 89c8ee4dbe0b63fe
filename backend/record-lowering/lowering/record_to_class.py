"""
Record -> class lowering.

Turns a record declaration into an equivalent final class: private final
fields, a canonical constructor, accessors, equals / hashCode / toString.
Hand-written members are kept as they are; a member is only synthesized when
no member of the same shape exists yet.

Member order of the result:
  1) static fields (left in place)
  2) instance fields            -> before the first constructor
  3) canonical constructor      -> before the first constructor, else before
                                   the first method, else at the end
  4) other constructors (left in place)
  5) accessors                  -> after the last constructor
  6) other methods (left in place)
  7) equals(), 8) hashCode(), 9) toString() -> appended at the end
"""

import logging
from dataclasses import replace
from typing import Optional, Sequence, Tuple

import config
from cir.graph import CapabilityGraph
from cir.model import Component, Constructor, Declaration, Field, Method, Parameter
from lowering.members import Anchors, MemberList, Signature, classify

logger = logging.getLogger(__name__)


class RecordInvariantError(RuntimeError):
    """The record handed to the lowering is inconsistent (parser defect)."""


class RecordToClassLowering:
    """
    Lowers one record declaration at a time. Stateless between calls, so a
    single instance can serve any number of declarations.
    """

    name = "record-to-class"

    def __init__(
        self,
        capabilities: Optional[CapabilityGraph] = None,
        objects_ref: str = "Objects",
    ) -> None:
        self.capabilities = capabilities or CapabilityGraph()
        # how generated bodies spell java.util.Objects
        self.objects_ref = objects_ref

    # ---------------- Entry point ----------------

    def lower(self, decl: Declaration) -> Declaration:
        if decl.kind != "record":
            return decl

        # Generic records are not supported
        if decl.type_parameters:
            logger.debug("Skipping generic record %s", decl.qualified_name)
            return decl

        components = self.extract_components(decl)

        members = MemberList(decl.members)
        self._upgrade_compact_constructor(decl, components, members)

        anchors = classify(members)
        self._add_canonical_constructor(decl, components, members, anchors)
        self._add_fields(components, members, anchors)
        self._add_accessors(decl, components, members, anchors)
        uses_objects = self._add_object_contract(decl, components, members)

        modifiers = tuple(decl.modifiers)
        if decl.is_member and "static" not in modifiers:
            # records nested in a type are implicitly static
            modifiers += ("static",)
        if "final" not in modifiers:
            modifiers += ("final",)

        required_imports = tuple(decl.required_imports)
        if uses_objects and self.objects_ref == "Objects" and config.OBJECTS_IMPORT not in required_imports:
            required_imports += (config.OBJECTS_IMPORT,)

        logger.info("Lowered record %s (%d components)", decl.qualified_name, len(components))
        return replace(
            decl,
            kind="class",
            components=None,
            modifiers=modifiers,
            members=members.to_tuple(),
            required_imports=required_imports,
            header_source=None,
            source=None,
        )

    # ---------------- Component extraction ----------------

    def extract_components(self, decl: Declaration) -> Tuple[Component, ...]:
        if decl.components is None:
            raise RecordInvariantError(f"Record {decl.qualified_name} has no component list")
        return tuple(decl.components)

    # ---------------- Canonical constructor ----------------

    def _upgrade_compact_constructor(
        self,
        decl: Declaration,
        components: Sequence[Component],
        members: MemberList,
    ) -> None:
        """
        A compact constructor takes the component list implicitly. Give it the
        explicit parameters and assign every field after the author's own
        statements, so validation still runs before assignment.
        """
        compact = [c for c in members.constructors() if c.is_compact]
        if len(compact) > 1:
            raise RecordInvariantError(
                f"Record {decl.qualified_name} declares {len(compact)} compact constructors"
            )
        if not compact:
            return

        ctor = compact[0]
        if ctor.parameters and len(ctor.parameters) != len(components):
            raise RecordInvariantError(
                f"Compact constructor of {decl.qualified_name} has {len(ctor.parameters)} "
                f"parameters but the record declares {len(components)} components"
            )

        upgraded = replace(
            ctor,
            is_compact=False,
            parameters=tuple(c.as_parameter() for c in components),
            body=tuple(ctor.body) + tuple(_field_assignment(c) for c in components),
            source=None,
        )
        members.replace(ctor, upgraded)
        logger.debug("Upgraded compact constructor of %s", decl.qualified_name)

    def _add_canonical_constructor(
        self,
        decl: Declaration,
        components: Sequence[Component],
        members: MemberList,
        anchors: Anchors,
    ) -> None:
        signature = Signature.constructor([c.raw_type for c in components])
        if members.has_member(signature):
            return

        ctor = Constructor(
            name=decl.name,
            parameters=tuple(c.as_parameter() for c in components),
            body=tuple(_field_assignment(c) for c in components),
            modifiers=("public",),
        )
        # 1) before the first constructor, 2) before the first method, 3) last
        if anchors.first_constructor is not None:
            members.insert_before(anchors.first_constructor, ctor)
        elif anchors.first_method is not None:
            members.insert_before(anchors.first_method, ctor)
        else:
            members.append(ctor)

        anchors.first_constructor = ctor
        if anchors.last_constructor is None:
            anchors.last_constructor = ctor
        logger.debug("Added canonical constructor %s%s", decl.name, signature)

    # ---------------- Fields ----------------

    def _add_fields(
        self,
        components: Sequence[Component],
        members: MemberList,
        anchors: Anchors,
    ) -> None:
        assert anchors.first_constructor is not None
        for c in components:
            members.insert_before(
                anchors.first_constructor,
                Field(name=c.name, raw_type=c.field_type, modifiers=("private", "final")),
            )

    # ---------------- Accessors ----------------

    def _add_accessors(
        self,
        decl: Declaration,
        components: Sequence[Component],
        members: MemberList,
        anchors: Anchors,
    ) -> None:
        assert anchors.last_constructor is not None
        # reverse order: each accessor lands right after the last constructor
        for c in reversed(components):
            if members.has_member(Signature.method(c.name)):
                logger.debug("Keeping hand-written accessor %s.%s()", decl.name, c.name)
                continue

            overrides = self.capabilities.declares_method(
                decl.implements,
                c.name,
                0,
                package=decl.package,
                exclude=(f"capability:{decl.qualified_name}",),
            )
            accessor = Method(
                name=c.name,
                return_type=c.field_type,
                body=(f"return {c.name};",),
                modifiers=("public",),
                annotations=("@Override",) if overrides else (),
            )
            members.insert_after(anchors.last_constructor, accessor)

    # ---------------- equals / hashCode / toString ----------------

    def _add_object_contract(
        self,
        decl: Declaration,
        components: Sequence[Component],
        members: MemberList,
    ) -> bool:
        """Append equals, hashCode and toString; True when Objects is referenced."""
        uses_objects = False

        if not members.has_member(Signature.method("equals", ["Object"])):
            members.append(self._equals_method(decl, components))
            uses_objects = uses_objects or any(not c.is_primitive for c in components)

        if not members.has_member(Signature.method("hashCode")):
            members.append(self._hash_code_method(components))
            uses_objects = True

        if not members.has_member(Signature.method("toString")):
            members.append(self._to_string_method(decl, components))

        return uses_objects

    def _equals_method(self, decl: Declaration, components: Sequence[Component]) -> Method:
        comparisons = []
        for c in components:
            own = _own_field(c.name)
            if c.is_primitive:
                comparisons.append(f"{own} == other.{c.name}")
            else:
                comparisons.append(f"{self.objects_ref}.equals({own}, other.{c.name})")

        return Method(
            name="equals",
            return_type="boolean",
            parameters=(Parameter(name="obj", raw_type="Object"),),
            body=(
                "if (this == obj) {\n" + config.INDENT + "return true;\n}",
                "if (obj == null || getClass() != obj.getClass()) {\n"
                + config.INDENT + "return false;\n}",
                f"{decl.name} other = ({decl.name}) obj;",
                f"return {' && '.join(comparisons) or 'true'};",
            ),
            modifiers=("public",),
            annotations=("@Override",),
        )

    def _hash_code_method(self, components: Sequence[Component]) -> Method:
        names = ", ".join(c.name for c in components)
        return Method(
            name="hashCode",
            return_type="int",
            body=(f"return {self.objects_ref}.hash({names});",),
            modifiers=("public",),
            annotations=("@Override",),
        )

    def _to_string_method(self, decl: Declaration, components: Sequence[Component]) -> Method:
        printed = ", ".join(f'{c.name}=" + {c.name} + "' for c in components)
        return Method(
            name="toString",
            return_type="String",
            body=(f'return "{decl.name}[{printed}]";',),
            modifiers=("public",),
            annotations=("@Override",),
        )


def _field_assignment(c: Component) -> str:
    return f"this.{c.name} = {c.name};"


def _own_field(name: str) -> str:
    # `obj` and `other` are locals of the generated equals()
    return f"this.{name}" if name in ("obj", "other") else name
