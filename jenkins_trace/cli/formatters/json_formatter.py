"""Machine-readable output for ``--json`` mode.

One-shot results and errors are wrapped in ``{"success": ..., ...}``
objects; streamed log chunks are printed as one JSON object per line.
"""

import json
from typing import Any, Dict, Optional


def format_json(data: Any, success: bool = True) -> str:
    """Wrap a command result as ``{"success": ..., "data": ...}``."""
    return json.dumps({"success": success, "data": data}, indent=2, ensure_ascii=False)


def format_json_event(event: str, **fields: Any) -> str:
    """Format one streaming event as a single JSON line."""
    payload: Dict[str, Any] = {"event": event}
    payload.update(fields)
    return json.dumps(payload, ensure_ascii=False)


def format_json_error(error_type: str, message: str, code: int = 1, hint: Optional[str] = None) -> str:
    """Describe a failed command.

    Args:
        error_type: Exception class name, e.g. "TransportError"
        message: What went wrong
        code: Process exit code
        hint: Suggested fix, omitted when None
    """
    error: Dict[str, Any] = {"type": error_type, "code": code, "message": message}
    if hint:
        error["hint"] = hint
    return json.dumps({"success": False, "error": error}, indent=2, ensure_ascii=False)
