"""Tests for log sanitization of internal errors."""
import json
import logging
import uuid
from datetime import datetime, UTC

from superoptimised.utils.log_sanitizer import (
    CIRCULAR_MARKER,
    DEPTH_MARKER,
    MAX_ITEMS,
    MAX_STRING_LENGTH,
    log_internal_error,
    sanitize_for_log,
)


def test_circular_dict_is_marked():
    payload = {"name": "loop"}
    payload["self"] = payload

    result = sanitize_for_log(payload)

    assert result == {"name": "loop", "self": CIRCULAR_MARKER}
    json.dumps(result)


def test_exception_has_no_traceback():
    try:
        raise ValueError("database exploded")
    except ValueError as exc:
        result = sanitize_for_log(exc)

    assert result == {"type": "ValueError", "message": "database exploded"}
    assert "Traceback" not in json.dumps(result)


def test_shared_reference_is_not_treated_as_cycle():
    shared = {"id": 1}
    result = sanitize_for_log({"a": shared, "b": shared})

    assert result == {"a": {"id": 1}, "b": {"id": 1}}


def test_deep_nesting_is_cut_off():
    nested: dict = {}
    current = nested
    for _ in range(20):
        current["child"] = {}
        current = current["child"]

    serialized = json.dumps(sanitize_for_log(nested))

    assert DEPTH_MARKER in serialized


def test_long_values_are_truncated():
    result = sanitize_for_log({"text": "x" * (MAX_STRING_LENGTH + 500), "items": list(range(MAX_ITEMS + 10))})

    assert len(result["text"]) < MAX_STRING_LENGTH + 100
    assert "truncated 500 chars" in result["text"]
    assert len(result["items"]) == MAX_ITEMS + 1
    assert result["items"][-1] == "... 10 more"


def test_special_types_become_strings():
    value = uuid.uuid4()
    moment = datetime(2025, 10, 19, 8, 30, tzinfo=UTC)

    result = sanitize_for_log({"id": value, "at": moment, "blob": b"\x00\x01", "obj": object()})

    assert result["id"] == str(value)
    assert result["at"] == moment.isoformat()
    assert result["blob"] == "<2 bytes>"
    assert result["obj"].startswith("<object object")


def test_log_internal_error_writes_one_json_line(caplog):
    logger = logging.getLogger("tests.sanitizer")
    context = {"ip": "10.0.0.1"}
    context["again"] = context

    with caplog.at_level(logging.ERROR, logger="tests.sanitizer"):
        log_internal_error(logger, "Vote insert failed", RuntimeError("boom"), context=context)

    assert len(caplog.records) == 1
    message = caplog.records[0].getMessage()
    assert message.startswith("Vote insert failed: ")
    payload = json.loads(message.split(": ", 1)[1])
    assert payload["error"] == {"type": "RuntimeError", "message": "boom"}
    assert payload["details"]["context"]["again"] == CIRCULAR_MARKER
