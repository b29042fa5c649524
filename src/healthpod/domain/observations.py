"""
Health record domain models.

One model per record type. Every model serialises to the persisted record
shape ``{"timestamp": "<ISO8601>", "responses": {<field>: <value>, ...}}``
and can be rebuilt from it, including the legacy shapes found in older pods.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from healthpod.domain.schemas import FieldSchema, RecordType, get_schema
from healthpod.utils.exceptions import TimestampFormatError, ValidationError
from healthpod.utils.timestamps import format_iso, parse_timestamp


class HealthRecord(BaseModel):
    """
    Base model for a single health observation.

    The timestamp is the natural key of a record within its type: it is stored
    in UTC at whole-second precision and encoded into the pod filename.
    """

    record_type: ClassVar[RecordType]

    timestamp: datetime = Field(description="Observation timestamp (UTC, whole seconds)")

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _canonical_timestamp(cls, value: Any) -> datetime:
        try:
            return parse_timestamp(value).replace(microsecond=0)
        except TimestampFormatError as e:
            raise ValueError(str(e)) from e

    @classmethod
    def field_schema(cls) -> FieldSchema:
        return get_schema(cls.record_type)

    def responses(self) -> dict[str, Any]:
        """Field values keyed by canonical field name, in schema order."""
        return {field: getattr(self, field) for field in self.field_schema().response_fields}

    def to_json(self) -> dict[str, Any]:
        """Convert to the persisted record shape."""
        return {"timestamp": format_iso(self.timestamp), "responses": self.responses()}

    @classmethod
    def from_json(cls, data: dict[str, Any], timezone_str: str = "UTC") -> "HealthRecord":
        """
        Build a record from persisted JSON.

        Args:
            data: Decoded record JSON.
            timezone_str: Timezone assumed for naive stored timestamps.

        Returns:
            Record instance.

        Raises:
            ValidationError: If the data lacks a timestamp or has invalid fields.
        """
        schema = cls.field_schema()

        responses = data.get("responses")
        if not isinstance(responses, dict):
            responses = data

        raw_timestamp = (
            data.get("timestamp")
            or data.get(schema.timestamp_field)
            or responses.get(schema.timestamp_field)
        )
        if not raw_timestamp:
            raise ValidationError(f"{schema.record_type.value} record has no timestamp")

        try:
            timestamp = parse_timestamp(str(raw_timestamp), timezone_str)
        except TimestampFormatError as e:
            raise ValidationError(f"Invalid {schema.record_type.value} record: {e}") from e

        values = {
            field: responses[field]
            for field in schema.response_fields
            if responses.get(field) is not None
        }

        try:
            return cls(timestamp=timestamp, **values)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {schema.record_type.value} record: {e}") from e


class BloodPressureObservation(HealthRecord):
    """Blood pressure reading."""

    record_type: ClassVar[RecordType] = RecordType.BLOOD_PRESSURE

    systolic: float = Field(description="Systolic pressure in mmHg")
    diastolic: float = Field(description="Diastolic pressure in mmHg")
    heart_rate: float = Field(description="Heart rate in beats per minute")
    feeling: str = ""
    notes: str = ""


class MedicationObservation(HealthRecord):
    """Medication entry."""

    record_type: ClassVar[RecordType] = RecordType.MEDICATION

    name: str
    dosage: str
    frequency: str
    start_date: str
    notes: str = ""


class VaccinationObservation(HealthRecord):
    """Vaccination received."""

    record_type: ClassVar[RecordType] = RecordType.VACCINATION

    vaccine: str
    provider: str
    professional: str = ""
    cost: str = ""
    notes: str = ""


class AppointmentObservation(HealthRecord):
    """Diary appointment."""

    record_type: ClassVar[RecordType] = RecordType.APPOINTMENT

    title: str
    description: str
    location: str = ""

    @property
    def is_past(self) -> bool:
        return self.timestamp < datetime.now(timezone.utc)


RECORD_MODELS: dict[RecordType, type[HealthRecord]] = {
    RecordType.BLOOD_PRESSURE: BloodPressureObservation,
    RecordType.MEDICATION: MedicationObservation,
    RecordType.VACCINATION: VaccinationObservation,
    RecordType.APPOINTMENT: AppointmentObservation,
}


def record_model(record_type: RecordType) -> type[HealthRecord]:
    """Return the model class for a record type."""
    return RECORD_MODELS[record_type]
