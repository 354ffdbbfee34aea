"""Turn arbitrary objects into JSON-safe structures before logging them.

Error objects raised deep inside the ORM can hold cycles, huge payloads or
driver internals. Internal errors are logged through ``sanitize_for_log`` and
clients only ever see a generic message.
"""
import json
import logging
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from itertools import islice
from typing import Any
from uuid import UUID

CIRCULAR_MARKER = "[Circular]"
DEPTH_MARKER = "[MaxDepth]"
MAX_DEPTH = 6
MAX_ITEMS = 50
MAX_STRING_LENGTH = 1000


def _truncate(text: str) -> str:
    if len(text) <= MAX_STRING_LENGTH:
        return text
    return f"{text[:MAX_STRING_LENGTH]}...[truncated {len(text) - MAX_STRING_LENGTH} chars]"


def sanitize_for_log(value: Any, *, _depth: int = 0, _seen: set[int] | None = None) -> Any:
    """Return a JSON-serializable copy of ``value``.

    Exceptions become ``{"type", "message"}`` without traceback, cycles become
    ``"[Circular]"``, and nesting or collection sizes beyond the limits above
    are cut off.
    """
    if _seen is None:
        _seen = set()

    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": _truncate(str(value))}
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _truncate(value)
    if isinstance(value, Enum):
        return sanitize_for_log(value.value, _depth=_depth, _seen=_seen)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"

    if _depth >= MAX_DEPTH:
        return DEPTH_MARKER

    marker = id(value)
    if marker in _seen:
        return CIRCULAR_MARKER

    if isinstance(value, Mapping):
        _seen.add(marker)
        result = {
            str(key): sanitize_for_log(item, _depth=_depth + 1, _seen=_seen)
            for key, item in islice(value.items(), MAX_ITEMS)
        }
        if len(value) > MAX_ITEMS:
            result["..."] = f"{len(value) - MAX_ITEMS} more"
        _seen.discard(marker)
        return result

    if isinstance(value, (list, tuple, set, frozenset)):
        _seen.add(marker)
        result = [sanitize_for_log(item, _depth=_depth + 1, _seen=_seen) for item in islice(value, MAX_ITEMS)]
        if len(value) > MAX_ITEMS:
            result.append(f"... {len(value) - MAX_ITEMS} more")
        _seen.discard(marker)
        return result

    return _truncate(repr(value))


def log_internal_error(logger: logging.Logger, context: str, error: Any, /, **details: Any) -> None:
    """Log an internal error in sanitized form."""
    payload = {"error": sanitize_for_log(error)}
    if details:
        payload["details"] = sanitize_for_log(details)
    logger.error(f"{context}: {json.dumps(payload, default=str)}")
