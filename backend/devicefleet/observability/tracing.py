from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def create_trace_id() -> str:
    return str(uuid.uuid4())


def trace_dir() -> str:
    configured = os.getenv("FLEET_TRACE_DIR", "").strip()
    if configured:
        return configured
    return os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
        "logs",
        "traces",
    )


def trace_event(
    trace_id: str,
    step_name: str,
    inputs_ref: Optional[Dict[str, Any]] = None,
    outputs_ref: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
) -> None:
    event = {
        "trace_id": trace_id,
        "step_name": step_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "inputs_ref": inputs_ref or {},
        "outputs_ref": outputs_ref or {},
        "notes": notes or "",
    }

    log_dir = trace_dir()
    try:
        os.makedirs(log_dir, exist_ok=True)
        path = os.path.join(log_dir, f"{trace_id}.jsonl")
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    except OSError as exc:
        logger.warning("Could not write trace event %s/%s: %s", trace_id, step_name, exc)


def read_trace(trace_id: str) -> List[Dict[str, Any]]:
    path = os.path.join(trace_dir(), f"{trace_id}.jsonl")
    if not os.path.exists(path):
        return []
    events: List[Dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return events
