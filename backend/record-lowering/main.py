import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException  # type: ignore
from pydantic import BaseModel, Field  # type: ignore

import config
from registry import try_lower_best

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Record Lowering (record -> final class)")


class LowerRequest(BaseModel):
    code: str
    filename: Optional[str] = None
    java_version: Optional[int] = Field(default=None, ge=1)
    # extra sources whose interfaces the records may implement
    capability_sources: List[str] = Field(default_factory=list)


class LowerResponse(BaseModel):
    code: str
    lowered: List[str]
    skipped: List[str]
    errors: List[Dict[str, str]]
    estimated_effort_minutes: int
    capabilities: Dict[str, Any]


@app.get("/health")
def health():
    return {"status": "ok", "min_java_version": config.MIN_JAVA_VERSION}


@app.post("/lower", response_model=LowerResponse)
def lower(req: LowerRequest):
    result = try_lower_best(req.code, req.filename, req.java_version, req.capability_sources)
    if "error" in result:
        raise HTTPException(status_code=400, detail=result["error"])
    return LowerResponse(**result)
