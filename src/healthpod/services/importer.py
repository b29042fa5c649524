"""
CSV import service.

Turns a local CSV file into individually persisted, encrypted pod records.
One generic pipeline serves every record type; the record's ``FieldSchema``
decides which columns are required and how each value is validated.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from healthpod.domain.schemas import FieldSchema, RecordType
from healthpod.infrastructure.parsers.csv_parser import CSVParser
from healthpod.infrastructure.pod_client.base import CallStatus, PodClient, join_pod_path
from healthpod.services.locator import RecordLocator, resolve_save_dir
from healthpod.utils.exceptions import (
    MissingColumnsError,
    ParsingError,
    PodClientError,
    PodFileNotFoundError,
    TimestampFormatError,
)
from healthpod.utils.parameters import CSVConfig, ProcessingConfig
from healthpod.utils.timestamps import is_valid, normalise, round_to_second, to_display

logger = logging.getLogger(__name__)

ConfirmOverwrite = Callable[[list[str]], bool]
ProgressCallback = Callable[[str, float], None]


class ImportOutcome:
    """Result of one CSV import run."""

    def __init__(self, record_type: RecordType) -> None:
        self.record_type = record_type
        self.saved_count = 0
        self.failed_count = 0
        self.saved_files: list[str] = []
        self.skipped_rows: list[int] = []
        self.error_rows: list[int] = []
        self.duplicate_timestamps: list[str] = []
        self.overwritten_files: list[str] = []
        self.aborted = False
        self.warning: str | None = None

    @property
    def success(self) -> bool:
        """True if at least one record was saved and no row errored or failed to save."""
        return (
            not self.aborted
            and self.failed_count == 0
            and not self.error_rows
            and self.saved_count > 0
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "record_type": self.record_type.value,
            "success": self.success,
            "saved_count": self.saved_count,
            "failed_count": self.failed_count,
            "skipped_rows": self.skipped_rows,
            "error_rows": self.error_rows,
            "duplicate_timestamps": self.duplicate_timestamps,
            "overwritten_files": self.overwritten_files,
            "aborted": self.aborted,
            "warning": self.warning,
        }


class CSVImporter:
    """
    Import service for health record CSV files.

    Rows are processed strictly in file order; each valid row is written as
    ``<prefix>_<timestamp>.json.enc.ttl`` before the next row is read.
    """

    def __init__(
        self,
        schema: FieldSchema,
        client: PodClient,
        processing_config: ProcessingConfig | None = None,
        csv_config: CSVConfig | None = None,
    ) -> None:
        """
        Initialize CSV importer.

        Args:
            schema: Field schema of the record type being imported.
            client: Pod client records are written to.
            processing_config: Processing configuration (timezone, base path).
            csv_config: CSV parsing configuration.
        """
        self.schema = schema
        self.client = client
        self.processing_config = processing_config or ProcessingConfig()
        self.parser = CSVParser(csv_config or CSVConfig())
        self.locator = RecordLocator(schema.record_type)
        self.validators = schema.validators
        self._fields_by_header = {field.lower(): field for field in self.validators}

    def _check_columns(self, headers: list[str]) -> None:
        """
        Verify the header carries every required column.

        Raises:
            MissingColumnsError: If any required column is absent.
        """
        missing = [
            col for col in self.schema.required_fields if col.lower() not in headers
        ]
        if missing:
            raise MissingColumnsError(
                missing, list(self.schema.required_fields), list(self.schema.optional_fields)
            )

    def _canonical_timestamp(self, value: str, row_index: int) -> str:
        timestamp = normalise(
            round_to_second(value), to_iso=True, timezone_str=self.processing_config.timezone
        )
        if not is_valid(timestamp):
            raise TimestampFormatError(f"Row {row_index}: Invalid timestamp format: {value}")
        return timestamp

    def _process_row(
        self,
        row_index: int,
        row: list[str],
        headers: list[str],
        seen_timestamps: set[str],
        outcome: ImportOutcome,
    ) -> dict[str, Any] | None:
        """
        Validate one data row and build its record JSON.

        Returns:
            Record JSON, or None if a required field is missing or invalid.

        Raises:
            TimestampFormatError: If the row's timestamp cannot be parsed.
        """
        cells = list(row) + [""] * (len(headers) - len(row))
        responses = self.schema.default_responses()
        timestamp = ""
        has_required_fields = True
        timestamp_header = self.schema.timestamp_field.lower()

        for header, raw_value in zip(headers, cells):
            value = raw_value.strip()

            if header == timestamp_header:
                if not value:
                    logger.warning(f"Row {row_index}: Missing required timestamp")
                    has_required_fields = False
                    continue

                timestamp = self._canonical_timestamp(value, row_index)
                if timestamp in seen_timestamps:
                    outcome.duplicate_timestamps.append(timestamp)
                else:
                    seen_timestamps.add(timestamp)
                continue

            field = self._fields_by_header.get(header)
            if field is None:
                continue

            try:
                responses[field] = self.validators[field](value)
            except ValueError:
                if self.schema.is_required(field):
                    logger.warning(f"Row {row_index}: Invalid or missing {field} value: {value!r}")
                    has_required_fields = False

        if not has_required_fields:
            return None

        return {"timestamp": timestamp, "responses": responses}

    def _collect_timestamps(self, rows: list[list[str]], headers: list[str]) -> list[str]:
        column = headers.index(self.schema.timestamp_field.lower())
        timestamps: list[str] = []

        for row_index, row in enumerate(rows[1:], start=1):
            if column >= len(row) or not row[column].strip():
                continue
            try:
                timestamps.append(self._canonical_timestamp(row[column].strip(), row_index))
            except TimestampFormatError:
                continue

        return timestamps

    def _handle_existing_files(
        self,
        save_dir: str,
        rows: list[list[str]],
        headers: list[str],
        confirm_overwrite: ConfirmOverwrite,
        outcome: ImportOutcome,
    ) -> bool:
        """
        Ask before replacing records already stored under incoming timestamps.

        Returns:
            False if the caller declined the overwrite, True otherwise.
        """
        timestamps = self._collect_timestamps(rows, headers)
        if not timestamps:
            return True

        try:
            listing = self.client.list_directory(self.client.resolve_directory(save_dir))
        except PodClientError as e:
            logger.warning(f"Unable to check for existing files in {save_dir}: {e}")
            return True

        existing: list[str] = []
        for timestamp in timestamps:
            for name in self.locator.existing(timestamp, listing.files):
                if name not in existing:
                    existing.append(name)

        if not existing:
            logger.debug("No existing files would be overwritten")
            return True

        logger.info(f"Found {len(existing)} existing files that would be overwritten")
        if not confirm_overwrite(existing):
            logger.info("Overwrite declined, aborting import")
            return False

        for name in existing:
            try:
                self.client.delete_file(join_pod_path(save_dir, name))
            except PodFileNotFoundError:
                logger.debug(f"Existing file already gone: {name}")
                continue
            outcome.overwritten_files.append(name)

        return True

    def _save(self, save_dir: str, record: dict[str, Any], row_index: int, outcome: ImportOutcome) -> None:
        filename = self.locator.filename(record["timestamp"])
        status = self.client.write_encrypted(join_pod_path(save_dir, filename), json.dumps(record))

        if status == CallStatus.SUCCESS:
            outcome.saved_count += 1
            outcome.saved_files.append(filename)
        else:
            outcome.failed_count += 1
            logger.warning(f"Failed to save file for row {row_index}: {status.value}")

    def import_text(
        self,
        content: str,
        dir_path: str = "",
        confirm_overwrite: ConfirmOverwrite | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ImportOutcome:
        """
        Import records from CSV text.

        Args:
            content: CSV text, header row first.
            dir_path: Target directory (the app base path prefix is stripped).
            confirm_overwrite: Called with the existing files that incoming rows
                would replace; returning False aborts the import. If None, no
                check is made.
            on_progress: Called with a message and a completion fraction per row.

        Returns:
            Import outcome.

        Raises:
            ParsingError: If the CSV is empty or cannot be parsed.
            MissingColumnsError: If a required column is missing.
        """
        rows = self.parser.parse_text(content)
        if not rows:
            raise ParsingError("CSV file is empty")

        headers = [str(h).strip().lower() for h in rows[0]]
        self._check_columns(headers)

        record_type = self.schema.record_type.value
        save_dir = resolve_save_dir(dir_path, self.schema.folder, self.processing_config.base_path)
        outcome = ImportOutcome(self.schema.record_type)

        if confirm_overwrite is not None and not self._handle_existing_files(
            save_dir, rows, headers, confirm_overwrite, outcome
        ):
            outcome.aborted = True
            return outcome

        seen_timestamps: set[str] = set()
        total = max(len(rows) - 1, 1)

        for row_index in range(1, len(rows)):
            if on_progress:
                on_progress(f"Converting row {row_index}", row_index / total)

            try:
                record = self._process_row(
                    row_index, rows[row_index], headers, seen_timestamps, outcome
                )
            except TimestampFormatError as e:
                logger.warning(f"Error processing row {row_index}: {e}")
                outcome.error_rows.append(row_index)
                continue

            if record is None:
                logger.debug(f"Skipping row {row_index} due to missing or invalid required fields")
                outcome.skipped_rows.append(row_index)
                continue

            self._save(save_dir, record, row_index, outcome)

        if outcome.duplicate_timestamps:
            listed = "\n".join(to_display(ts) for ts in outcome.duplicate_timestamps)
            outcome.warning = (
                f"Warning: Multiple entries found for these timestamps:\n{listed}\n\n"
                "Only the last entry for each timestamp will be saved."
            )
            logger.warning(outcome.warning)

        logger.info(
            f"Imported {outcome.saved_count} {record_type} records into '{save_dir}' "
            f"({len(outcome.skipped_rows)} skipped, {len(outcome.error_rows)} errors, "
            f"{outcome.failed_count} failed writes)"
        )
        return outcome

    def import_file(
        self,
        file_path: str | Path,
        dir_path: str = "",
        confirm_overwrite: ConfirmOverwrite | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ImportOutcome:
        """
        Import records from a CSV file.

        Raises:
            ParsingError: If the file cannot be read, is empty, or cannot be parsed.
            MissingColumnsError: If a required column is missing.
        """
        content = self.parser.read_text(Path(file_path))
        logger.info(f"Importing {self.schema.record_type.value} records from {file_path}")
        return self.import_text(content, dir_path, confirm_overwrite, on_progress)
