"""
Record file location.

A record's identity in the pod is its timestamp, encoded into the filename
``<prefix>_<YYYY-MM-DDTHH-MM-SS>.json.enc.ttl``. Older pods used other
encodings of the same timestamp, so finding the file of an existing record is
a ranked search rather than a single lookup.
"""

import logging
from datetime import datetime

from healthpod.domain.schemas import (
    ENCRYPTED_SUFFIX,
    RECORD_SUFFIX,
    FieldSchema,
    RecordType,
    get_schema,
)
from healthpod.utils.timestamps import date_part, parse_timestamp, to_filename_safe

logger = logging.getLogger(__name__)


def resolve_save_dir(dir_path: str, folder: str, base_path: str = "healthpod/data") -> str:
    """
    Derive the pod directory to write records into.

    Args:
        dir_path: Directory supplied by the caller (may carry the app base path).
        folder: Record type folder, used when ``dir_path`` is empty or ends with it.
        base_path: Known base path prefix to strip.

    Returns:
        Pod-relative directory path ("" for the pod root).
    """
    dir_path = dir_path.strip().strip("/")
    base = base_path.strip("/")

    if not dir_path or dir_path == folder or dir_path.endswith(f"/{folder}"):
        return folder
    if dir_path == base:
        return ""
    if base and dir_path.startswith(f"{base}/"):
        return dir_path[len(base) + 1 :]
    return dir_path


class RecordLocator:
    """
    Filename policy for one record type.

    ``candidates`` ranks the exact filenames a timestamp may have been stored
    under; ``resolve`` adds the same-day fallbacks.
    """

    def __init__(self, record_type: RecordType) -> None:
        self.schema: FieldSchema = get_schema(record_type)
        self.prefix = self.schema.file_prefix

    def filename(self, timestamp: str | datetime) -> str:
        """Canonical filename of the record with this timestamp."""
        canonical = parse_timestamp(timestamp)
        return f"{self.prefix}_{to_filename_safe(canonical)}{RECORD_SUFFIX}"

    def candidates(self, timestamp: str | datetime) -> list[str]:
        """
        Exact filenames to probe, most likely first.

        Order: canonical dash form, underscore form, millisecond form, ``Z`` form.
        """
        dt = parse_timestamp(timestamp)
        dash = dt.strftime("%Y-%m-%dT%H-%M-%S")
        stems = [
            dash,
            dt.strftime("%Y-%m-%d_%H-%M-%S"),
            f"{dash}-{dt.microsecond // 1000:03d}Z",
            f"{dash}Z",
        ]

        names: list[str] = []
        for stem in stems:
            name = f"{self.prefix}_{stem}{RECORD_SUFFIX}"
            if name not in names:
                names.append(name)
        return names

    def is_record_file(self, name: str) -> bool:
        """True for encrypted record files of any naming generation."""
        return name.endswith(ENCRYPTED_SUFFIX)

    def resolve(self, timestamp: str | datetime, files: list[str]) -> str | None:
        """
        Find the stored file of a record.

        Args:
            timestamp: Record timestamp.
            files: Filenames present in the record directory.

        Returns:
            First exact candidate present, else the first file of this type on the
            same date, else the first record file mentioning that date, else None.
        """
        present = set(files)
        for name in self.candidates(timestamp):
            if name in present:
                return name

        day = date_part(timestamp)
        same_day = [f for f in files if f.startswith(f"{self.prefix}_{day}")]
        if same_day:
            logger.debug(f"Using same-day fallback {same_day[0]} for {timestamp}")
            return same_day[0]

        loose = [f for f in files if day in f and self.is_record_file(f)]
        if loose:
            logger.debug(f"Using loose date fallback {loose[0]} for {timestamp}")
            return loose[0]

        return None

    def existing(self, timestamp: str | datetime, files: list[str]) -> list[str]:
        """Exact candidate filenames of a timestamp that are present in ``files``."""
        present = set(files)
        return [name for name in self.candidates(timestamp) if name in present]
