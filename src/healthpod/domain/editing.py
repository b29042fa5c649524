"""
Edit buffer for interactive record editing.

A table editor holds one ``EditBuffer`` while a row is being edited. Each
keystroke produces a new buffer through ``apply_field_change``; saving turns
the buffer into a validated record with ``build_record``.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from healthpod.domain.observations import HealthRecord, record_model
from healthpod.domain.schemas import RecordType, get_schema
from healthpod.utils.exceptions import TimestampFormatError, ValidationError
from healthpod.utils.timestamps import format_iso, normalise


class EditBuffer(BaseModel):
    """Raw text values of the record being edited."""

    record_type: RecordType
    values: dict[str, str] = Field(default_factory=dict)
    is_new: bool = True
    original: HealthRecord | None = None

    model_config = ConfigDict(frozen=True)


def _as_text(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def start_edit(record: HealthRecord) -> EditBuffer:
    """Open an edit buffer on an existing record."""
    schema = record.field_schema()
    values = {schema.timestamp_field: format_iso(record.timestamp)}
    values.update({field: _as_text(value) for field, value in record.responses().items()})

    return EditBuffer(
        record_type=record.record_type, values=values, is_new=False, original=record
    )


def new_buffer(record_type: RecordType, now: datetime | None = None) -> EditBuffer:
    """Open an edit buffer for a new record stamped with ``now``."""
    schema = get_schema(record_type)
    values = {schema.timestamp_field: format_iso(now or datetime.now(timezone.utc))}
    values.update({field: _as_text(v) for field, v in schema.default_responses().items()})

    return EditBuffer(record_type=record_type, values=values, is_new=True)


def apply_field_change(buffer: EditBuffer, field: str, value: str) -> EditBuffer:
    """
    Return a new buffer with one field changed.

    Raises:
        ValidationError: If the field is not part of the record type.
    """
    schema = get_schema(buffer.record_type)
    if field not in schema.all_fields:
        raise ValidationError(f"Unknown field for {buffer.record_type.value}: {field}")

    return buffer.model_copy(update={"values": {**buffer.values, field: value}})


def build_record(buffer: EditBuffer, timezone_str: str = "UTC") -> HealthRecord:
    """
    Validate the buffer and build the record it describes.

    Raises:
        ValidationError: Listing every invalid field.
    """
    schema = get_schema(buffer.record_type)
    problems: list[str] = []

    raw_timestamp = buffer.values.get(schema.timestamp_field, "").strip()
    timestamp = ""
    try:
        timestamp = normalise(raw_timestamp, to_iso=True, timezone_str=timezone_str)
    except TimestampFormatError as e:
        problems.append(f"{schema.timestamp_field}: {e}")

    fields: dict[str, object] = {}
    for field, validator in schema.validators.items():
        raw = buffer.values.get(field, "").strip()
        try:
            fields[field] = validator(raw)
        except ValueError as e:
            problems.append(f"{field}: {e}")

    if problems:
        raise ValidationError("Invalid record: " + "; ".join(problems))

    return record_model(buffer.record_type)(timestamp=timestamp, **fields)
