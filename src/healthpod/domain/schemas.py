"""
Field schema registry.

Declares, for every record type, the canonical field names used as CSV
headers and as keys inside persisted record JSON, which of them are required,
and how each raw CSV value is validated.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RECORD_SUFFIX = ".json.enc.ttl"
ENCRYPTED_SUFFIX = ".enc.ttl"


class RecordType(str, Enum):
    """Enumeration of health record types."""

    BLOOD_PRESSURE = "blood_pressure"
    MEDICATION = "medication"
    VACCINATION = "vaccination"
    APPOINTMENT = "appointment"

    @classmethod
    def from_name(cls, name: str) -> "RecordType":
        """
        Resolve a record type from a user-supplied name.

        Accepts the canonical values plus the aliases ``bp`` and ``diary``.

        Raises:
            ValueError: If the name is not a known record type.
        """
        key = name.strip().lower().replace("-", "_")
        aliases = {"bp": cls.BLOOD_PRESSURE, "diary": cls.APPOINTMENT}
        if key in aliases:
            return aliases[key]
        return cls(key)


class FieldKind(str, Enum):
    """How a raw CSV value is interpreted."""

    NUMBER = "number"
    TEXT = "text"


def parse_number(value: str) -> float:
    """Parse a numeric CSV value. Raises ValueError on failure."""
    return float(value.strip())


def require_text(value: str) -> str:
    """Accept a non-empty text value. Raises ValueError on empty input."""
    if not value:
        raise ValueError("value is required")
    return value


def optional_text(value: str) -> str:
    return value


class FieldSchema(BaseModel):
    """
    Static field layout of one record type.

    ``all_fields`` is the header order used for CSV export; the timestamp
    column always comes first.
    """

    record_type: RecordType
    folder: str = Field(description="Pod directory holding the record files")
    file_prefix: str = Field(description="Filename prefix of the record files")
    timestamp_field: str = Field(description="CSV column carrying the record timestamp")
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()
    field_kinds: dict[str, FieldKind] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def all_fields(self) -> tuple[str, ...]:
        return self.required_fields + self.optional_fields

    @property
    def response_fields(self) -> tuple[str, ...]:
        """Fields stored under ``responses`` in record JSON."""
        return tuple(f for f in self.all_fields if f != self.timestamp_field)

    def kind_of(self, field: str) -> FieldKind:
        return self.field_kinds.get(field, FieldKind.TEXT)

    def is_required(self, field: str) -> bool:
        return field in self.required_fields

    @property
    def validators(self) -> dict[str, Callable[[str], Any]]:
        """Map of field name to validator for every non-timestamp field."""
        result: dict[str, Callable[[str], Any]] = {}
        for field in self.response_fields:
            if self.kind_of(field) == FieldKind.NUMBER:
                result[field] = parse_number
            elif self.is_required(field):
                result[field] = require_text
            else:
                result[field] = optional_text
        return result

    def default_responses(self) -> dict[str, Any]:
        """Default response map: numeric fields are 0, text fields are empty."""
        return {
            field: 0 if self.kind_of(field) == FieldKind.NUMBER else ""
            for field in self.response_fields
        }


BLOOD_PRESSURE_SCHEMA = FieldSchema(
    record_type=RecordType.BLOOD_PRESSURE,
    folder="blood_pressure",
    file_prefix="blood_pressure",
    timestamp_field="timestamp",
    required_fields=("timestamp", "systolic", "diastolic", "heart_rate"),
    optional_fields=("feeling", "notes"),
    field_kinds={
        "systolic": FieldKind.NUMBER,
        "diastolic": FieldKind.NUMBER,
        "heart_rate": FieldKind.NUMBER,
    },
)

MEDICATION_SCHEMA = FieldSchema(
    record_type=RecordType.MEDICATION,
    folder="medication",
    file_prefix="medication",
    timestamp_field="timestamp",
    required_fields=("timestamp", "name", "dosage", "frequency", "start_date"),
    optional_fields=("notes",),
)

VACCINATION_SCHEMA = FieldSchema(
    record_type=RecordType.VACCINATION,
    folder="vaccination",
    file_prefix="vaccination",
    timestamp_field="date",
    required_fields=("date", "vaccine", "provider"),
    optional_fields=("professional", "cost", "notes"),
)

APPOINTMENT_SCHEMA = FieldSchema(
    record_type=RecordType.APPOINTMENT,
    folder="diary",
    file_prefix="appointment",
    timestamp_field="date",
    required_fields=("date", "title", "description"),
    optional_fields=("location",),
)

FIELD_SCHEMAS: dict[RecordType, FieldSchema] = {
    RecordType.BLOOD_PRESSURE: BLOOD_PRESSURE_SCHEMA,
    RecordType.MEDICATION: MEDICATION_SCHEMA,
    RecordType.VACCINATION: VACCINATION_SCHEMA,
    RecordType.APPOINTMENT: APPOINTMENT_SCHEMA,
}


def get_schema(record_type: RecordType | str) -> FieldSchema:
    """Return the field schema of a record type (enum or name)."""
    if not isinstance(record_type, RecordType):
        record_type = RecordType.from_name(record_type)
    return FIELD_SCHEMAS[record_type]
