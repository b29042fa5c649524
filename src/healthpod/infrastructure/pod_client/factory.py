"""Pod client construction from configuration."""

import logging

from healthpod.infrastructure.pod_client.base import PodClient
from healthpod.infrastructure.pod_client.encryption import RecordCipher
from healthpod.utils.exceptions import ConfigurationError
from healthpod.utils.parameters import StoreConfig

logger = logging.getLogger(__name__)


def create_pod_client(config: StoreConfig, cipher: RecordCipher | None) -> PodClient:
    """
    Create the pod client selected by ``config.backend``.

    Raises:
        ConfigurationError: If the Drive backend is selected without Drive settings.
    """
    if config.backend == "drive":
        if config.drive is None:
            raise ConfigurationError("store.backend is 'drive' but store.drive is not configured")

        from healthpod.infrastructure.pod_client.drive import DrivePodClient

        logger.info("Using Google Drive pod")
        return DrivePodClient(config.drive, cipher)

    from healthpod.infrastructure.pod_client.local import LocalPodClient

    logger.info(f"Using local pod at {config.local.root_dir}")
    return LocalPodClient(config.local.root_dir, cipher)
