"""
Local filesystem pod.

Stores the pod as a directory tree under a root folder, with every file
encrypted by a ``RecordCipher``. Useful for offline use and as the reference
implementation of the pod contract.
"""

import logging
from pathlib import Path

from healthpod.infrastructure.pod_client.base import CallStatus, DirectoryListing
from healthpod.infrastructure.pod_client.encryption import RecordCipher
from healthpod.utils.exceptions import PodClientError, PodFileNotFoundError

logger = logging.getLogger(__name__)


class LocalPodClient:
    """
    Pod backed by a local directory.

    Without a cipher (no security key) every read and write reports
    ``CallStatus.NOT_LOGGED_IN``.
    """

    def __init__(self, root_dir: str | Path, cipher: RecordCipher | None) -> None:
        """
        Initialize local pod client.

        Args:
            root_dir: Directory holding the pod.
            cipher: Cipher for file contents, or None when not logged in.
        """
        self.root_dir = Path(root_dir).resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.cipher = cipher

    def _resolve(self, path: str) -> Path:
        """
        Map a pod path to a local path inside the root.

        Raises:
            PodClientError: If the path escapes the pod root.
        """
        local_path = (self.root_dir / path.strip("/")).resolve()
        if local_path != self.root_dir and self.root_dir not in local_path.parents:
            raise PodClientError(f"Path outside pod root: {path}")
        return local_path

    def write_encrypted(self, path: str, content: str) -> CallStatus:
        if self.cipher is None:
            return CallStatus.NOT_LOGGED_IN

        try:
            local_path = self._resolve(path)
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(self.cipher.encrypt(content))
        except (OSError, PodClientError) as e:
            logger.error(f"Failed to write {path}: {e}")
            return CallStatus.FAIL

        logger.debug(f"Wrote {path}")
        return CallStatus.SUCCESS

    def read_encrypted(self, path: str) -> str | CallStatus:
        if self.cipher is None:
            return CallStatus.NOT_LOGGED_IN

        try:
            local_path = self._resolve(path)
            return self.cipher.decrypt(local_path.read_bytes())
        except (OSError, PodClientError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return CallStatus.FAIL

    def delete_file(self, path: str) -> None:
        """
        Delete a pod file.

        Raises:
            PodFileNotFoundError: If the file does not exist.
            PodClientError: If deletion fails.
        """
        local_path = self._resolve(path)
        if not local_path.is_file():
            raise PodFileNotFoundError(f"File not found: {path}")

        try:
            local_path.unlink()
        except OSError as e:
            raise PodClientError(f"Failed to delete {path}: {e}") from e

        logger.debug(f"Deleted {path}")

    def resolve_directory(self, dir_path: str) -> Path:
        return self._resolve(dir_path)

    def list_directory(self, handle: Path) -> DirectoryListing:
        """List a directory. A missing directory lists as empty."""
        if not handle.is_dir():
            logger.debug(f"Directory not found: {handle}")
            return DirectoryListing()

        files = sorted(p.name for p in handle.iterdir() if p.is_file())
        sub_dirs = sorted(p.name for p in handle.iterdir() if p.is_dir())
        return DirectoryListing(files=files, sub_dirs=sub_dirs)
