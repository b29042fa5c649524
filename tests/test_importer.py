"""Unit tests for the CSV import service."""

import json
from pathlib import Path

import pytest

from healthpod.domain.schemas import BLOOD_PRESSURE_SCHEMA, VACCINATION_SCHEMA
from healthpod.infrastructure.pod_client.base import CallStatus
from healthpod.infrastructure.pod_client.local import LocalPodClient
from healthpod.services.importer import CSVImporter
from healthpod.utils.exceptions import MissingColumnsError, ParsingError
from healthpod.utils.parameters import ProcessingConfig

BP_HEADER = "timestamp,systolic,diastolic,heart_rate,feeling,notes\n"


def stored_files(pod_root: Path) -> list[str]:
    return sorted(p.name for p in pod_root.rglob("*.enc.ttl"))


def read_record(pod: LocalPodClient, path: str) -> dict:
    content = pod.read_encrypted(path)
    if isinstance(content, CallStatus):
        raise AssertionError(f"Could not read {path}: {content}")
    return json.loads(content)


def test_import_writes_one_file_per_row(pod: LocalPodClient, pod_root: Path) -> None:
    """Test that each valid row becomes one encrypted record file."""
    content = (
        BP_HEADER
        + "2025-01-01T09:00:00Z,120,80,70,Good,Morning\n"
        + "2025-01-02 10:30:00,130,85,72,,\n"
    )
    importer = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod)

    outcome = importer.import_text(content)

    if not outcome.success or outcome.saved_count != 2:
        raise AssertionError(f"Expected 2 saved records, got {outcome.to_dict()}")

    expected = [
        "blood_pressure_2025-01-01T09-00-00.json.enc.ttl",
        "blood_pressure_2025-01-02T10-30-00.json.enc.ttl",
    ]
    if stored_files(pod_root) != expected:
        raise AssertionError(f"Unexpected files: {stored_files(pod_root)}")

    record = read_record(pod, "blood_pressure/blood_pressure_2025-01-01T09-00-00.json.enc.ttl")
    if record["timestamp"] != "2025-01-01T09:00:00Z":
        raise AssertionError(f"Unexpected timestamp: {record['timestamp']}")
    if record["responses"] != {
        "systolic": 120.0,
        "diastolic": 80.0,
        "heart_rate": 70.0,
        "feeling": "Good",
        "notes": "Morning",
    }:
        raise AssertionError(f"Unexpected responses: {record['responses']}")


def test_header_is_case_and_space_insensitive(pod: LocalPodClient, pod_root: Path) -> None:
    """Test header normalisation and that unknown columns are ignored."""
    content = " Timestamp ,SYSTOLIC,Diastolic,Heart_Rate,device\n2025-01-01T09:00:00Z,120,80,70,cuff\n"

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text(content)

    if outcome.saved_count != 1:
        raise AssertionError(f"Expected 1 saved record, got {outcome.saved_count}")
    record = read_record(pod, "blood_pressure/blood_pressure_2025-01-01T09-00-00.json.enc.ttl")
    if "device" in record["responses"]:
        raise AssertionError("Unknown columns must not be stored")
    if record["responses"]["notes"] != "":
        raise AssertionError("Absent optional columns default to empty text")


def test_duplicate_timestamps_after_rounding(pod: LocalPodClient, pod_root: Path) -> None:
    """Test that rows differing only in milliseconds collapse to one file and one warning."""
    content = (
        BP_HEADER
        + "2025-01-01T09:00:00.100Z,120,80,70,,first\n"
        + "2025-01-01T09:00:00.900Z,125,82,71,,second\n"
    )

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text(content)

    if stored_files(pod_root) != ["blood_pressure_2025-01-01T09-00-00.json.enc.ttl"]:
        raise AssertionError(f"Expected exactly one file, got {stored_files(pod_root)}")
    if outcome.duplicate_timestamps != ["2025-01-01T09:00:00Z"]:
        raise AssertionError(f"Unexpected duplicates: {outcome.duplicate_timestamps}")
    if outcome.warning is None or "2025-01-01 09:00:00" not in outcome.warning:
        raise AssertionError(f"Expected aggregated duplicate warning, got {outcome.warning!r}")

    record = read_record(pod, "blood_pressure/blood_pressure_2025-01-01T09-00-00.json.enc.ttl")
    if record["responses"]["notes"] != "second":
        raise AssertionError("The last entry for a timestamp should win")


def test_missing_required_column_writes_nothing(pod: LocalPodClient, pod_root: Path) -> None:
    """Test that a missing required column aborts before any write."""
    content = "timestamp,systolic,heart_rate\n2025-01-01T09:00:00Z,120,70\n"

    with pytest.raises(MissingColumnsError) as exc_info:
        CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text(content)

    if exc_info.value.missing != ["diastolic"]:
        raise AssertionError(f"Unexpected missing columns: {exc_info.value.missing}")
    message = str(exc_info.value)
    if "diastolic" not in message or "feeling" not in message:
        raise AssertionError(f"Message should list missing and optional columns: {message}")
    if stored_files(pod_root):
        raise AssertionError("No file should be written")


def test_invalid_row_is_skipped(pod: LocalPodClient, pod_root: Path) -> None:
    """Test that one bad row out of ten is skipped and the import still succeeds."""
    lines = [BP_HEADER]
    for day in range(1, 11):
        systolic = "abc" if day == 5 else "120"
        lines.append(f"2025-01-{day:02d}T09:00:00Z,{systolic},80,70,,\n")

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text("".join(lines))

    if outcome.saved_count != 9:
        raise AssertionError(f"Expected 9 saved records, got {outcome.saved_count}")
    if outcome.skipped_rows != [5]:
        raise AssertionError(f"Expected row 5 skipped, got {outcome.skipped_rows}")
    if not outcome.success:
        raise AssertionError(f"Import should succeed: {outcome.to_dict()}")
    if len(stored_files(pod_root)) != 9:
        raise AssertionError(f"Expected 9 files, got {len(stored_files(pod_root))}")


def test_invalid_timestamp_marks_row_as_error(pod: LocalPodClient) -> None:
    """Test that an unparseable timestamp fails the row but not the rest."""
    content = (
        BP_HEADER
        + "not a timestamp,120,80,70,,\n"
        + "2025-01-02T09:00:00Z,120,80,70,,\n"
        + ",120,80,70,,\n"
    )

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text(content)

    if outcome.error_rows != [1]:
        raise AssertionError(f"Expected row 1 as error, got {outcome.error_rows}")
    if outcome.skipped_rows != [3]:
        raise AssertionError(f"Expected row 3 skipped for empty timestamp, got {outcome.skipped_rows}")
    if outcome.saved_count != 1:
        raise AssertionError(f"Expected 1 saved record, got {outcome.saved_count}")
    if outcome.success:
        raise AssertionError("Row errors should mark the import as unsuccessful")


def test_empty_csv_raises(pod: LocalPodClient) -> None:
    """Test that a file without rows raises ParsingError."""
    with pytest.raises(ParsingError):
        CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text("")


def test_header_only_saves_nothing(pod: LocalPodClient) -> None:
    """Test that a header without data rows is not a success."""
    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text(BP_HEADER)

    if outcome.saved_count != 0 or outcome.success:
        raise AssertionError(f"Expected nothing saved, got {outcome.to_dict()}")


def test_import_file_with_vaccination_date_column(
    tmp_path: Path, pod: LocalPodClient, pod_root: Path
) -> None:
    """Test importing a vaccination file keyed by its date column."""
    csv_file = tmp_path / "vaccinations.csv"
    csv_file.write_text("date,vaccine,provider,cost\n2025-03-01,Influenza,City Clinic,25\n")

    outcome = CSVImporter(VACCINATION_SCHEMA, pod).import_file(csv_file)

    if not outcome.success:
        raise AssertionError(f"Import failed: {outcome.to_dict()}")
    record = read_record(pod, "vaccination/vaccination_2025-03-01T00-00-00.json.enc.ttl")
    if record["timestamp"] != "2025-03-01T00:00:00Z":
        raise AssertionError(f"Unexpected timestamp: {record['timestamp']}")
    if record["responses"] != {
        "vaccine": "Influenza",
        "provider": "City Clinic",
        "professional": "",
        "cost": "25",
        "notes": "",
    }:
        raise AssertionError(f"Unexpected responses: {record['responses']}")


def test_base_path_prefix_is_stripped(pod: LocalPodClient, pod_root: Path) -> None:
    """Test that the app base path is removed from the target directory."""
    content = BP_HEADER + "2025-01-01T09:00:00Z,120,80,70,,\n"
    importer = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod, ProcessingConfig(base_path="healthpod/data"))

    importer.import_text(content, dir_path="healthpod/data/archive")

    if not (pod_root / "archive" / "blood_pressure_2025-01-01T09-00-00.json.enc.ttl").is_file():
        raise AssertionError("Record should be written below the stripped directory")


def test_failed_writes_are_counted(memory_pod) -> None:
    """Test that failed and refused writes count as failures."""
    memory_pod.write_status = CallStatus.NOT_LOGGED_IN
    content = BP_HEADER + "2025-01-01T09:00:00Z,120,80,70,,\n"

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, memory_pod).import_text(content)

    if outcome.failed_count != 1 or outcome.saved_count != 0:
        raise AssertionError(f"Expected one failed write, got {outcome.to_dict()}")
    if outcome.success:
        raise AssertionError("Failed writes should mark the import as unsuccessful")


def test_overwrite_declined_aborts(memory_pod) -> None:
    """Test that declining the overwrite leaves the pod untouched."""
    existing = "blood_pressure/blood_pressure_2025-01-01T09-00-00.json.enc.ttl"
    memory_pod.files[existing] = '{"timestamp": "2025-01-01T09:00:00Z", "responses": {}}'
    content = BP_HEADER + "2025-01-01T09:00:00Z,120,80,70,,\n2025-01-02T09:00:00Z,121,81,71,,\n"
    asked: list[list[str]] = []

    def decline(files: list[str]) -> bool:
        asked.append(files)
        return False

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, memory_pod).import_text(
        content, confirm_overwrite=decline
    )

    if not outcome.aborted or outcome.success:
        raise AssertionError(f"Expected aborted import, got {outcome.to_dict()}")
    if asked != [["blood_pressure_2025-01-01T09-00-00.json.enc.ttl"]]:
        raise AssertionError(f"Unexpected confirmation request: {asked}")
    if list(memory_pod.files) != [existing]:
        raise AssertionError(f"Pod should be unchanged, got {list(memory_pod.files)}")


def test_overwrite_confirmed_replaces_matching_files_only(memory_pod) -> None:
    """Test that confirmed overwrites delete exact matches and keep other same-day readings."""
    legacy = "blood_pressure/blood_pressure_2025-01-01T09-00-00Z.json.enc.ttl"
    other = "blood_pressure/blood_pressure_2025-01-01T08-00-00.json.enc.ttl"
    memory_pod.files[legacy] = "{}"
    memory_pod.files[other] = "{}"
    content = BP_HEADER + "2025-01-01T09:00:00Z,120,80,70,,\n"

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, memory_pod).import_text(
        content, confirm_overwrite=lambda files: True
    )

    if outcome.overwritten_files != ["blood_pressure_2025-01-01T09-00-00Z.json.enc.ttl"]:
        raise AssertionError(f"Unexpected overwritten files: {outcome.overwritten_files}")
    if legacy in memory_pod.files:
        raise AssertionError("Legacy file should have been deleted")
    if other not in memory_pod.files:
        raise AssertionError("Other readings on the same day must be kept")
    if "blood_pressure/blood_pressure_2025-01-01T09-00-00.json.enc.ttl" not in memory_pod.files:
        raise AssertionError("New record should have been written")


def test_progress_callback(memory_pod) -> None:
    """Test that progress is reported once per data row."""
    content = BP_HEADER + "2025-01-01T09:00:00Z,120,80,70,,\n2025-01-02T09:00:00Z,121,81,71,,\n"
    progress: list[float] = []

    CSVImporter(BLOOD_PRESSURE_SCHEMA, memory_pod).import_text(
        content, on_progress=lambda message, fraction: progress.append(fraction)
    )

    if progress != [0.5, 1.0]:
        raise AssertionError(f"Unexpected progress values: {progress}")


@pytest.mark.parametrize("raw", ["5", "10:30", "Jan"])
def test_incomplete_timestamp_is_an_error_row(raw: str, pod: LocalPodClient, pod_root: Path) -> None:
    """Test that a timestamp missing its date is rejected instead of dated from the clock."""
    content = BP_HEADER + f"{raw},120,80,70,,\n"

    outcome = CSVImporter(BLOOD_PRESSURE_SCHEMA, pod).import_text(content)

    if outcome.error_rows != [1] or outcome.saved_count != 0:
        raise AssertionError(f"Expected row 1 as error and nothing saved, got {outcome.to_dict()}")
    if outcome.success:
        raise AssertionError("Import of an unparseable timestamp must not succeed")
    if stored_files(pod_root):
        raise AssertionError(f"No file should be written, got {stored_files(pod_root)}")
