"""Shared fixtures for HealthPod tests."""

from pathlib import Path

import pytest

from healthpod.infrastructure.pod_client.base import CallStatus, DirectoryListing, split_pod_path
from healthpod.infrastructure.pod_client.encryption import RecordCipher
from healthpod.infrastructure.pod_client.local import LocalPodClient
from healthpod.utils.exceptions import PodFileNotFoundError


class MemoryPodClient:
    """In-memory pod holding plaintext contents, with injectable failures."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.write_status = CallStatus.SUCCESS
        self.read_failures: dict[str, CallStatus] = {}
        self.deleted: list[str] = []

    def write_encrypted(self, path: str, content: str) -> CallStatus:
        if self.write_status != CallStatus.SUCCESS:
            return self.write_status
        self.files[path.strip("/")] = content
        return CallStatus.SUCCESS

    def read_encrypted(self, path: str) -> str | CallStatus:
        path = path.strip("/")
        if path in self.read_failures:
            return self.read_failures[path]
        if path not in self.files:
            return CallStatus.FAIL
        return self.files[path]

    def delete_file(self, path: str) -> None:
        path = path.strip("/")
        if path not in self.files:
            raise PodFileNotFoundError(f"File not found: {path}")
        del self.files[path]
        self.deleted.append(path)

    def resolve_directory(self, dir_path: str) -> str:
        return dir_path.strip("/")

    def list_directory(self, handle: str) -> DirectoryListing:
        names = sorted(name for directory, name in map(split_pod_path, self.files) if directory == handle)
        return DirectoryListing(files=names)


@pytest.fixture
def cipher() -> RecordCipher:
    return RecordCipher("test-security-key", iterations=1000)


@pytest.fixture
def pod_root(tmp_path: Path) -> Path:
    return tmp_path / "pod"


@pytest.fixture
def pod(pod_root: Path, cipher: RecordCipher) -> LocalPodClient:
    return LocalPodClient(pod_root, cipher)


@pytest.fixture
def memory_pod() -> MemoryPodClient:
    return MemoryPodClient()
