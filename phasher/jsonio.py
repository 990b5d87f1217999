# phasher/jsonio.py
from __future__ import annotations
import json, logging, sys
from typing import Any, Dict, IO, Optional

def enable_json_logging():
    """Send logs to stderr and suppress info noise when emitting JSON to stdout."""
    # Drop existing handlers to avoid duplicate logs
    for h in logging.root.handlers[:]:
        logging.root.removeHandler(h)
    logging.basicConfig(stream=sys.stderr, level=logging.ERROR)

def record(data: Dict[str, Any], stream: Optional[IO[str]] = None) -> None:
    """Write one JSON object per line (used for per-image results)."""
    out = stream if stream is not None else sys.stdout
    out.write(json.dumps(data, ensure_ascii=False) + "\n")
    out.flush()

def success(command: str, data: Dict[str, Any] | list | None = None,
            meta: Optional[Dict[str, Any]] = None, code: int = 0) -> int:
    payload = {"result": "success", "command": command, "data": data if data is not None else {}}
    if meta:
        payload["meta"] = meta
    record(payload)
    return code

def error(command: str, message: str, debug: Optional[Dict[str, Any]] = None, code: int = 1) -> int:
    payload = {"result": "error", "command": command, "error": message}
    if debug:
        payload["debug"] = debug
    record(payload)
    return code
