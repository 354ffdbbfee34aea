"""Tests for the shared schema serialization rules."""
from datetime import datetime, timedelta, timezone, UTC
from typing import Optional

from superoptimised.schemas.base import BaseSchema, serialize_datetime_utc


class _Stamped(BaseSchema):
    created_at: datetime
    published_at: Optional[datetime] = None


class _Wrapper(BaseSchema):
    items: list[_Stamped]


def test_serialize_naive_datetime_as_utc():
    assert serialize_datetime_utc(datetime(2025, 10, 19, 9, 46, 6)) == "2025-10-19T09:46:06Z"


def test_json_dump_marks_naive_datetimes_utc():
    """Values read back from SQLite carry no tzinfo."""
    payload = _Stamped(created_at=datetime(2025, 10, 19, 9, 46, 6, 765990)).model_dump(mode="json", by_alias=True)

    assert payload == {"createdAt": "2025-10-19T09:46:06.765990Z", "publishedAt": None}


def test_json_dump_converts_other_offsets():
    plus_two = timezone(timedelta(hours=2))
    stamped = _Stamped(created_at=datetime(2025, 10, 19, 11, 0, tzinfo=plus_two))

    assert stamped.model_dump(mode="json")["created_at"] == "2025-10-19T09:00:00Z"


def test_nested_models_are_converted():
    wrapper = _Wrapper(items=[_Stamped(created_at=datetime(2025, 1, 1))])

    assert wrapper.model_dump_json(by_alias=True) == '{"items":[{"createdAt":"2025-01-01T00:00:00Z","publishedAt":null}]}'


def test_python_dump_keeps_datetime_objects():
    moment = datetime(2025, 10, 19, tzinfo=UTC)

    assert _Stamped(created_at=moment).model_dump()["created_at"] == moment
