from __future__ import annotations

import os

from dotenv import load_dotenv  # type: ignore

load_dotenv()

# Records exist from Java 14 on; units declaring an older level are left alone.
MIN_JAVA_VERSION = int(os.getenv("RECORD_LOWERING_MIN_JAVA_VERSION", "14"))

INDENT = " " * int(os.getenv("RECORD_LOWERING_INDENT_WIDTH", "4"))

OBJECTS_IMPORT = "java.util.Objects"

EFFORT_MINUTES_PER_RECORD = 30

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
