"""
CSV export service.

Reads every record file of one type from the pod and writes them to a single
local CSV file, one row per record in ascending timestamp order.
"""

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from healthpod.domain.schemas import FieldSchema
from healthpod.infrastructure.pod_client.base import CallStatus, PodClient, join_pod_path
from healthpod.services.locator import RecordLocator, resolve_save_dir
from healthpod.utils.exceptions import ExportError, HealthPodError, PodClientError
from healthpod.utils.parameters import ProcessingConfig
from healthpod.utils.timestamps import normalise

logger = logging.getLogger(__name__)


class ExportOutcome:
    """Result of one CSV export run."""

    def __init__(
        self,
        success: bool,
        path: Path | None = None,
        record_count: int = 0,
        skipped_files: list[str] | None = None,
        error: str | None = None,
    ) -> None:
        self.success = success
        self.path = path
        self.record_count = record_count
        self.skipped_files = skipped_files or []
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "success": self.success,
            "path": str(self.path) if self.path else None,
            "record_count": self.record_count,
            "skipped_files": self.skipped_files,
            "error": self.error,
        }


class RecordExporter:
    """
    Export service for one record type.

    Unreadable or malformed files are skipped; the export fails only when the
    directory holds no record files or none of them yields a valid record.
    """

    def __init__(
        self,
        schema: FieldSchema,
        client: PodClient,
        processing_config: ProcessingConfig | None = None,
    ) -> None:
        """
        Initialize record exporter.

        Args:
            schema: Field schema of the record type being exported.
            client: Pod client records are read from.
            processing_config: Processing configuration (base path, timezone).
        """
        self.schema = schema
        self.client = client
        self.processing_config = processing_config or ProcessingConfig()
        self.locator = RecordLocator(schema.record_type)

    def _to_row(self, content: str) -> dict[str, Any]:
        """
        Project one record JSON onto the export columns.

        Raises:
            ValueError: If the content is not a JSON object.
            HealthPodError: If the timestamp cannot be parsed.
        """
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("record content is not a JSON object")

        responses = data.get("responses")
        if not isinstance(responses, dict):
            responses = data

        timestamp_field = self.schema.timestamp_field
        raw_timestamp = data.get("timestamp") or responses.get(timestamp_field) or ""

        timestamp = normalise(
            str(raw_timestamp), to_iso=True, timezone_str=self.processing_config.timezone
        )
        row: dict[str, Any] = {timestamp_field: timestamp}
        for field in self.schema.response_fields:
            value = responses.get(field)
            row[field] = "" if value is None else value
        return row

    def _collect_rows(self, dir_path: str, files: list[str], skipped: list[str]) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []

        for name in files:
            content = self.client.read_encrypted(join_pod_path(dir_path, name))
            if isinstance(content, CallStatus):
                logger.warning(f"Skipping {name}: read returned {content.value}")
                skipped.append(name)
                continue

            try:
                rows.append(self._to_row(content))
            except (ValueError, HealthPodError) as e:
                logger.warning(f"Skipping {name}: {e}")
                skipped.append(name)

        return rows

    def export_to_csv(self, save_path: str | Path, dir_path: str = "") -> ExportOutcome:
        """
        Export all records of this type to a CSV file.

        Args:
            save_path: Local path of the CSV file to write.
            dir_path: Pod directory holding the records (defaults to the type folder).

        Returns:
            Export outcome. On failure no file is written.
        """
        record_type = self.schema.record_type.value
        save_path = Path(save_path)
        source_dir = resolve_save_dir(dir_path, self.schema.folder, self.processing_config.base_path)
        skipped: list[str] = []

        try:
            listing = self.client.list_directory(self.client.resolve_directory(source_dir))
            files = [name for name in listing.files if self.locator.is_record_file(name)]
            if not files:
                raise ExportError(f"No {record_type} data files found in directory")

            rows = self._collect_rows(source_dir, files, skipped)
            if not rows:
                raise ExportError(f"No valid {record_type} records found")

            timestamp_field = self.schema.timestamp_field
            rows.sort(key=lambda row: row[timestamp_field])

            df = pd.DataFrame(rows, columns=list(self.schema.all_fields))
            save_path.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(save_path, index=False, encoding="utf-8")

        except (ExportError, PodClientError, OSError) as e:
            logger.error(f"Failed to export {record_type} records: {e}")
            return ExportOutcome(success=False, skipped_files=skipped, error=str(e))

        logger.info(f"Exported {len(rows)} {record_type} records to {save_path}")
        return ExportOutcome(
            success=True, path=save_path, record_count=len(rows), skipped_files=skipped
        )
