import logging
from typing import Any, Dict, Optional, Sequence

from adapters.java_adapter import JavaAdapter
from adapters.java_printer import JavaPrinter
from lowering.visitor import lower_unit

logger = logging.getLogger(__name__)

java_adapter = JavaAdapter()
java_printer = JavaPrinter()


def try_lower_best(
    code: str,
    filename: Optional[str] = None,
    java_version: Optional[int] = None,
    capability_sources: Sequence[str] = (),
) -> Dict[str, Any]:
    if filename and not filename.endswith(".java"):
        return {"error": "Unsupported file type for record lowering"}

    try:
        unit = java_adapter.build_unit_for_code(code, filename)
        extra = [java_adapter.build_unit_for_code(src) for src in capability_sources]
        graph = java_adapter.build_capability_graph([unit, *extra])
        # member text is read on demand while lowering
        lowered, report = lower_unit(unit, graph, java_version, java_adapter, java_printer)
    except ValueError as e:
        logger.warning("Cannot read %s: %s", filename or "<code>", e)
        return {"error": str(e)}

    return {
        "code": java_printer.print_unit(lowered),
        **report.to_dict(),
        "capabilities": graph.to_debug_json(),
    }
