"""
Pod store contract.

The importer, exporter and observation services talk to the personal data
store only through this contract. Paths are relative to the pod root and use
``/`` as separator.
"""

from enum import Enum
from typing import Any, Protocol


class CallStatus(str, Enum):
    """Outcome of a pod read or write call."""

    SUCCESS = "success"
    FAIL = "fail"
    NOT_LOGGED_IN = "not_logged_in"


class DirectoryListing:
    """Files and sub-directories contained in a pod directory."""

    def __init__(self, files: list[str] | None = None, sub_dirs: list[str] | None = None) -> None:
        self.files = files or []
        self.sub_dirs = sub_dirs or []

    def __repr__(self) -> str:
        return f"DirectoryListing(files={self.files!r}, sub_dirs={self.sub_dirs!r})"


class PodClient(Protocol):
    """Capabilities the core needs from a personal data store."""

    def write_encrypted(self, path: str, content: str) -> CallStatus: ...

    def read_encrypted(self, path: str) -> str | CallStatus: ...

    def delete_file(self, path: str) -> None: ...

    def resolve_directory(self, dir_path: str) -> Any: ...

    def list_directory(self, handle: Any) -> DirectoryListing: ...


def join_pod_path(*parts: str) -> str:
    """Join pod path segments, dropping empty ones and stray separators."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def split_pod_path(path: str) -> tuple[str, str]:
    """Split a pod path into (directory, filename)."""
    path = path.strip("/")
    if "/" not in path:
        return "", path
    directory, _, name = path.rpartition("/")
    return directory, name
