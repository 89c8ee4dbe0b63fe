import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import networkx as nx  # type: ignore

from cir.model import Capability

logger = logging.getLogger(__name__)


def _strip_type_arguments(reference: str) -> str:
    name = re.sub(r"\s+", "", reference)
    return name.split("<", 1)[0]


class CapabilityGraph:
    """
    Directed graph of capabilities (interfaces).
    Nodes: Capability payloads keyed by id ("capability:<qualified name>")
    Edges: EXTENDS (sub-interface -> super-interface)

    Only ever read by the lowering; closures are memoized and the memo is
    dropped whenever the graph changes.
    """
    def __init__(self) -> None:
        self.g = nx.MultiDiGraph()
        self._memo: Dict[Tuple[Any, ...], bool] = {}

    def add_capability(self, capability: Capability) -> None:
        self.g.add_node(capability.id, kind="Capability", payload=capability)
        self._memo.clear()

    def add_extends(self, src: str, dst: str) -> None:
        self.g.add_edge(src, dst, etype="EXTENDS")
        self._memo.clear()

    def capability(self, node_id: str) -> Capability:
        return self.g.nodes[node_id]["payload"]

    def link_extends(self) -> None:
        """Resolve every capability's `extends` list into EXTENDS edges."""
        for node_id, data in list(self.g.nodes(data=True)):
            cap: Capability = data["payload"]
            for base in cap.extends:
                target = self.resolve(base, cap.package)
                if target and target != node_id:
                    self.add_extends(node_id, target)
                elif target is None:
                    logger.debug("Unresolved super-interface %s of %s", base, cap.qualified_name)

    def resolve(self, reference: str, package: Optional[str] = None) -> Optional[str]:
        """
        Capability reference -> node id.
        Full name first, then simple name; with several simple-name
        candidates prefer the one in the same package.
        """
        name = _strip_type_arguments(reference)
        full_id = f"capability:{name}"
        if full_id in self.g:
            return full_id

        short = name.split(".")[-1]
        candidates = sorted(
            nid for nid, data in self.g.nodes(data=True) if data["payload"].name == short
        )
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        same_pkg = [nid for nid in candidates if self.capability(nid).package == package]
        if len(same_pkg) == 1:
            return same_pkg[0]
        return None

    def closure(
        self,
        references: Iterable[str],
        package: Optional[str] = None,
        exclude: Iterable[str] = (),
    ) -> List[str]:
        """
        Transitive closure of the referenced capabilities over EXTENDS edges.
        Excluded ids (the querying type itself) never appear in the result.
        """
        excluded = set(exclude)
        seen = set()
        for ref in references:
            root = self.resolve(ref, package)
            if root is None:
                continue
            seen.add(root)
            seen |= nx.descendants(self.g, root)
        return sorted(seen - excluded)

    def declares_method(
        self,
        references: Iterable[str],
        name: str,
        arity: int,
        package: Optional[str] = None,
        exclude: Iterable[str] = (),
    ) -> bool:
        refs = tuple(references)
        excluded = tuple(sorted(exclude))
        key = (refs, name, arity, package, excluded)
        if key in self._memo:
            return self._memo[key]

        found = any(
            sig.name == name and sig.arity == arity
            for cap_id in self.closure(refs, package, excluded)
            for sig in self.capability(cap_id).methods
        )
        self._memo[key] = found
        return found

    def to_debug_json(self) -> Dict[str, Any]:
        """
        Convert graph to JSON-like dict for debugging / API responses.
        """
        nodes = []
        for node_id, data in self.g.nodes(data=True):
            cap: Capability = data["payload"]
            nodes.append({
                "id": node_id,
                "kind": data.get("kind"),
                "attrs": {
                    "name": cap.name,
                    "qualified_name": cap.qualified_name,
                    "methods": [
                        f"{sig.name}({', '.join(sig.parameter_types)})" for sig in cap.methods
                    ],
                },
            })

        edges = []
        for src, dst, data in self.g.edges(data=True):
            edges.append({
                "src": src,
                "dst": dst,
                "type": data.get("etype"),
            })

        return {"nodes": nodes, "edges": edges}
