"""
Encryption of pod file contents.

Record files are encrypted with Fernet (AES-128-CBC + HMAC-SHA256). The key is
derived from the user's security key with PBKDF2-SHA256, so the same security
key always opens the same pod.
"""

import base64
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from healthpod.utils.exceptions import ConfigurationError, PodClientError
from healthpod.utils.parameters import EncryptionConfig

logger = logging.getLogger(__name__)


class RecordCipher:
    """Symmetric cipher for record file contents."""

    def __init__(
        self, security_key: str, salt: str = "healthpod-salt", iterations: int = 100_000
    ) -> None:
        """
        Initialize the cipher.

        Args:
            security_key: User security key (passphrase).
            salt: Key derivation salt.
            iterations: PBKDF2 iteration count.

        Raises:
            ConfigurationError: If the security key is empty.
        """
        if not security_key:
            raise ConfigurationError("Security key must not be empty")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode("utf-8"),
            iterations=iterations,
        )
        key = base64.urlsafe_b64encode(kdf.derive(security_key.encode("utf-8")))
        self.cipher = Fernet(key)

    @classmethod
    def from_config(
        cls, config: EncryptionConfig, security_key: str | None = None
    ) -> "RecordCipher | None":
        """
        Build a cipher from configuration.

        Args:
            config: Encryption configuration.
            security_key: Overrides the configured key when given.

        Returns:
            Cipher, or None when no security key is available (not logged in).
        """
        key = security_key
        if key is None and config.security_key is not None:
            key = config.security_key.get_secret_value()
        if not key:
            logger.warning("No security key configured; pod access will be refused")
            return None
        return cls(key, config.salt, config.iterations)

    def encrypt(self, content: str) -> bytes:
        return self.cipher.encrypt(content.encode("utf-8"))

    def decrypt(self, token: bytes) -> str:
        """
        Decrypt file contents.

        Raises:
            PodClientError: If the token is invalid, the key is wrong or the
                plaintext is not UTF-8.
        """
        try:
            plaintext = self.cipher.decrypt(token)
        except InvalidToken as e:
            raise PodClientError("Unable to decrypt content (wrong security key?)") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PodClientError("Decrypted content is not valid UTF-8 text") from e
