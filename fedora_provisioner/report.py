from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict

import yaml

from .pipeline import RunResult

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"yaml", "yml"}:
        return "yaml"
    # Default to JSON for unknown extensions.
    return "json"


def report_dict(result: RunResult, *, finished_at: float | None = None) -> Dict[str, Any]:
    finished = time.time() if finished_at is None else finished_at
    return {
        "finished_at": time.strftime("%Y-%m-%dT%H:%M:%S%z", time.localtime(finished)),
        "ok": result.ok,
        "aborted": result.aborted,
        "abort_reason": result.abort_reason,
        "steps": [r.as_dict() for r in result.results],
    }


def save_report(path: str, result: RunResult) -> Dict[str, Any]:
    """Write the run outcome as JSON or YAML (by file extension)."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = report_dict(result)

    if _detect_format(p) == "yaml":
        p.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.info("Run report written to %s", p)
    return data


def load_report(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    if _detect_format(p) == "yaml":
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)

    if not isinstance(data, dict):
        raise ValueError(f"Report file must be an object/dict, got {type(data)}")
    return data
