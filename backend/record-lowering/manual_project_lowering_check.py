import glob
import os
import sys

import requests

from adapters.java_adapter import JavaAdapter
from cir.model import NestedType

PROJECT_SRC_DIR = sys.argv[1] if len(sys.argv) > 1 else os.getenv("PROJECT_SRC_DIR", ".")

LOWER_URL = "http://127.0.0.1:7070/lower"


def collect_java_files(root_dir: str):
    """
    Find all .java files under root_dir (recursively).
    """
    pattern = os.path.join(root_dir, "**", "*.java")
    return sorted(p for p in glob.glob(pattern, recursive=True) if not p.endswith(".lowered.java"))


def _kinds(decls):
    kinds = set()
    for d in decls:
        kinds.add(d.kind)
        kinds |= _kinds([m.declaration for m in d.members if isinstance(m, NestedType)])
    return kinds


def main():
    print(f"Scanning Java files under: {PROJECT_SRC_DIR}")
    java_files = collect_java_files(PROJECT_SRC_DIR)
    if not java_files:
        print("No .java files found. Check PROJECT_SRC_DIR.")
        return

    adapter = JavaAdapter()
    units, errors = adapter.build_unit_for_files(java_files)
    for err in errors:
        print(f"[SKIP] {err['file']}: {err['error']}")

    # every file declaring an interface is sent along as capability source
    interface_sources = []
    record_files = []
    for unit in units:
        kinds = _kinds(unit.types)
        if "interface" in kinds:
            interface_sources.append(unit.source)
        if "record" in kinds:
            record_files.append(unit)

    print(f"Found {len(record_files)} file(s) with records, {len(interface_sources)} with interfaces")

    for unit in record_files:
        payload = {
            "code": unit.source,
            "filename": os.path.basename(unit.source_file),
            "capability_sources": interface_sources,
        }
        resp = requests.post(LOWER_URL, json=payload)
        resp.raise_for_status()
        data = resp.json()

        out_name = unit.source_file[: -len(".java")] + ".lowered.java"
        with open(out_name, "w", encoding="utf-8") as f:
            f.write(data["code"])
        print(f"[OK] {unit.source_file}: lowered={data['lowered']} skipped={data['skipped']} errors={data['errors']}")
        print(f"     saved {out_name}")


if __name__ == "__main__":
    main()
