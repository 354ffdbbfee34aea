"""Base schemas with common configuration."""
from pydantic import BaseModel, ConfigDict, FieldSerializationInfo, SerializerFunctionWrapHandler, field_serializer
from pydantic.alias_generators import to_camel
from datetime import datetime, UTC


def serialize_datetime_utc(dt: datetime) -> str:
    """
    Serialize datetime to ISO 8601 with explicit UTC timezone.

    SQLite stores datetimes as naive strings, so naive values are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace('+00:00', 'Z')


class BaseSchema(BaseModel):
    """Base schema for API payloads.

    Fields are declared in snake_case and travel as camelCase on the wire;
    requests may use either spelling.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    def serialize_datetimes(
        self,
        value,
        handler: SerializerFunctionWrapHandler,
        info: FieldSerializationInfo,
    ):
        """Emit datetimes as UTC ``Z`` strings in JSON output."""
        if isinstance(value, datetime) and info.mode_is_json():
            return serialize_datetime_utc(value)
        return handler(value)
