"""
Record observation service.

Loads, saves and deletes the individual records of one type, as used by a
table view: every record lives in its own encrypted file named after its
timestamp.
"""

import json
import logging

from healthpod.domain.observations import HealthRecord, record_model
from healthpod.domain.schemas import RecordType
from healthpod.infrastructure.pod_client.base import CallStatus, PodClient, join_pod_path
from healthpod.services.locator import RecordLocator, resolve_save_dir
from healthpod.utils.exceptions import (
    PodClientError,
    PodFileNotFoundError,
    ValidationError,
)
from healthpod.utils.parameters import ProcessingConfig

logger = logging.getLogger(__name__)


class ObservationService:
    """Per-record persistence for one record type."""

    def __init__(
        self,
        record_type: RecordType,
        client: PodClient,
        processing_config: ProcessingConfig | None = None,
    ) -> None:
        """
        Initialize observation service.

        Args:
            record_type: Record type handled by this service.
            client: Pod client.
            processing_config: Processing configuration (base path, timezone).
        """
        self.record_type = record_type
        self.client = client
        self.processing_config = processing_config or ProcessingConfig()
        self.model = record_model(record_type)
        self.locator = RecordLocator(record_type)
        self.dir_path = resolve_save_dir(
            "", self.locator.schema.folder, self.processing_config.base_path
        )

    def _list_files(self) -> list[str]:
        listing = self.client.list_directory(self.client.resolve_directory(self.dir_path))
        return listing.files

    def load_all(self) -> list[HealthRecord]:
        """
        Load every readable record of this type.

        Files that cannot be read, decoded or validated are logged and skipped,
        as are RDF metadata files (Turtle) stored alongside the records.

        Raises:
            PodClientError: If the directory cannot be listed.
        """
        records: list[HealthRecord] = []

        for name in self._list_files():
            if not self.locator.is_record_file(name):
                continue

            content = self.client.read_encrypted(join_pod_path(self.dir_path, name))
            if isinstance(content, CallStatus):
                logger.warning(f"Skipping {name}: read returned {content.value}")
                continue

            if content.lstrip().startswith("@prefix"):
                logger.debug(f"Skipping metadata file {name}")
                continue

            try:
                data = json.loads(content)
                if not isinstance(data, dict):
                    raise ValidationError("record content is not a JSON object")
                records.append(self.model.from_json(data, self.processing_config.timezone))
            except (ValueError, ValidationError) as e:
                logger.warning(f"Skipping {name}: {e}")

        logger.info(f"Loaded {len(records)} {self.record_type.value} records")
        return records

    def _delete_resolved(self, record: HealthRecord) -> bool:
        name = self.locator.resolve(record.timestamp, self._list_files())
        if name is None:
            return False

        try:
            self.client.delete_file(join_pod_path(self.dir_path, name))
        except PodFileNotFoundError:
            logger.debug(f"File already gone: {name}")
            return False

        logger.debug(f"Deleted {name}")
        return True

    def save(
        self, record: HealthRecord, is_new: bool, previous: HealthRecord | None = None
    ) -> str:
        """
        Persist one record.

        When an existing record is saved under a new timestamp, the file of the
        previous version is removed first.

        Args:
            record: Record to save.
            is_new: Whether the record is new or an edit of an existing one.
            previous: The record as it was before editing.

        Returns:
            Filename written.

        Raises:
            PodClientError: If the write fails.
        """
        if not is_new and previous is not None and previous.timestamp != record.timestamp:
            if not self._delete_resolved(previous):
                logger.debug(f"No previous file found for {previous.timestamp.isoformat()}")

        filename = self.locator.filename(record.timestamp)
        status = self.client.write_encrypted(
            join_pod_path(self.dir_path, filename), json.dumps(record.to_json())
        )
        if status != CallStatus.SUCCESS:
            raise PodClientError(f"Failed to save {self.record_type.value} record: {status.value}")

        logger.info(f"Saved {self.record_type.value} record {filename}")
        return filename

    def delete(self, record: HealthRecord) -> bool:
        """
        Delete the file holding a record.

        Returns:
            True if a file was deleted, False if none matched the record.

        Raises:
            PodClientError: If listing or deletion fails.
        """
        if self._delete_resolved(record):
            return True

        logger.warning(
            f"No {self.record_type.value} file found for {record.timestamp.isoformat()}"
        )
        return False

    @staticmethod
    def sorted_for_display(records: list[HealthRecord]) -> list[HealthRecord]:
        """Newest first."""
        return sorted(records, key=lambda r: r.timestamp, reverse=True)
