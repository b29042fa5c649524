"""Unit tests for record file location."""

import pytest

from healthpod.domain.schemas import RecordType
from healthpod.services.locator import RecordLocator, resolve_save_dir


@pytest.mark.parametrize(
    ("dir_path", "expected"),
    [
        ("", "blood_pressure"),
        ("blood_pressure", "blood_pressure"),
        ("healthpod/data/blood_pressure", "blood_pressure"),
        ("healthpod/data", ""),
        ("healthpod/data/archive/2024", "archive/2024"),
        ("custom", "custom"),
    ],
)
def test_resolve_save_dir(dir_path: str, expected: str) -> None:
    """Test derivation of the pod directory from the caller directory."""
    result = resolve_save_dir(dir_path, "blood_pressure")

    if result != expected:
        raise AssertionError(f"resolve_save_dir({dir_path!r}) gave {result!r}, expected {expected!r}")


def test_filename() -> None:
    """Test canonical filename of a record."""
    locator = RecordLocator(RecordType.BLOOD_PRESSURE)

    name = locator.filename("2025-01-01T09:00:00Z")
    if name != "blood_pressure_2025-01-01T09-00-00.json.enc.ttl":
        raise AssertionError(f"Unexpected filename: {name}")

    appointment = RecordLocator(RecordType.APPOINTMENT).filename("2025-02-03 14:30:00")
    if appointment != "appointment_2025-02-03T14-30-00.json.enc.ttl":
        raise AssertionError(f"Unexpected appointment filename: {appointment}")


def test_candidates_are_ranked() -> None:
    """Test candidate order: dash, underscore, millisecond, Z."""
    candidates = RecordLocator(RecordType.MEDICATION).candidates("2025-01-01T09:00:00Z")

    expected = [
        "medication_2025-01-01T09-00-00.json.enc.ttl",
        "medication_2025-01-01_09-00-00.json.enc.ttl",
        "medication_2025-01-01T09-00-00-000Z.json.enc.ttl",
        "medication_2025-01-01T09-00-00Z.json.enc.ttl",
    ]
    if candidates != expected:
        raise AssertionError(f"Unexpected candidates: {candidates}")


def test_resolve_prefers_exact_candidates() -> None:
    """Test that an exact legacy name wins over same-day files."""
    locator = RecordLocator(RecordType.BLOOD_PRESSURE)
    files = [
        "blood_pressure_2025-01-01T08-00-00.json.enc.ttl",
        "blood_pressure_2025-01-01_09-00-00.json.enc.ttl",
    ]

    result = locator.resolve("2025-01-01T09:00:00Z", files)
    if result != "blood_pressure_2025-01-01_09-00-00.json.enc.ttl":
        raise AssertionError(f"Expected underscore legacy file, got {result}")


def test_resolve_falls_back_to_same_day() -> None:
    """Test same-day and loose date fallbacks."""
    locator = RecordLocator(RecordType.BLOOD_PRESSURE)

    same_day = locator.resolve(
        "2025-01-01T09:00:00Z", ["blood_pressure_2025-01-01T08-30-00.json.enc.ttl"]
    )
    if same_day != "blood_pressure_2025-01-01T08-30-00.json.enc.ttl":
        raise AssertionError(f"Expected same-day fallback, got {same_day}")

    loose = locator.resolve("2025-01-01T09:00:00Z", ["bp_2025-01-01.enc.ttl", "notes.txt"])
    if loose != "bp_2025-01-01.enc.ttl":
        raise AssertionError(f"Expected loose date fallback, got {loose}")

    missing = locator.resolve("2025-01-02T09:00:00Z", ["blood_pressure_2025-01-01T08-30-00.json.enc.ttl"])
    if missing is not None:
        raise AssertionError(f"Expected no match, got {missing}")


def test_existing_ignores_other_readings_on_the_same_day() -> None:
    """Test that only files stored under the exact timestamp are reported."""
    locator = RecordLocator(RecordType.BLOOD_PRESSURE)
    files = [
        "blood_pressure_2025-01-01T08-00-00.json.enc.ttl",
        "blood_pressure_2025-01-01T09-00-00.json.enc.ttl",
        "blood_pressure_2025-01-01T09-00-00Z.json.enc.ttl",
    ]

    result = locator.existing("2025-01-01T09:00:00Z", files)
    if result != [
        "blood_pressure_2025-01-01T09-00-00.json.enc.ttl",
        "blood_pressure_2025-01-01T09-00-00Z.json.enc.ttl",
    ]:
        raise AssertionError(f"Unexpected existing files: {result}")
