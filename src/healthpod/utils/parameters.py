"""
Configuration and parameter loading using Pydantic.

This module provides centralized configuration management for the entire application.
All parameters are loaded from YAML and validated using Pydantic models.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from healthpod.utils.exceptions import ConfigurationError


class OAuth2Config(BaseModel):
    """OAuth2 authentication configuration."""

    credentials_path: str
    token_path: str
    scopes: list[str] = Field(default_factory=lambda: ["https://www.googleapis.com/auth/drive"])


class ServiceAccountConfig(BaseModel):
    """Service account authentication configuration."""

    credentials_path: str
    scopes: list[str] = Field(default_factory=lambda: ["https://www.googleapis.com/auth/drive"])


class DriveConfig(BaseModel):
    """Google Drive pod configuration."""

    auth_method: str = Field("oauth2", pattern="^(oauth2|service_account)$")
    oauth2: OAuth2Config | None = None
    service_account: ServiceAccountConfig | None = None
    root_folder_id: str = "root"


class LocalStoreConfig(BaseModel):
    """Local filesystem pod configuration."""

    root_dir: str = "pod"


class StoreConfig(BaseModel):
    """Pod store configuration."""

    backend: str = Field("local", pattern="^(local|drive)$")
    local: LocalStoreConfig = Field(default_factory=LocalStoreConfig)
    drive: DriveConfig | None = None


class EncryptionConfig(BaseModel):
    """Encryption configuration for pod file contents."""

    security_key: SecretStr | None = None
    salt: str = "healthpod-salt"
    iterations: int = 100_000


class ProcessingConfig(BaseModel):
    """Data processing configuration."""

    timezone: str = "UTC"
    base_path: str = "healthpod/data"


class CSVConfig(BaseModel):
    """CSV parsing configuration."""

    encodings: list[str] = Field(default_factory=lambda: ["utf-8-sig", "utf-8", "latin-1"])
    delimiter: str = ","
    quotechar: str = '"'


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    console: bool = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    csv: CSVConfig = Field(default_factory=CSVConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="HEALTHPOD_", env_nested_delimiter="__", case_sensitive=False
    )


class ParameterLoader:
    """
    Centralized parameter loader for the application.

    Loads and validates configuration from YAML files using Pydantic models.
    Provides type-safe access to all configuration parameters.
    """

    def __init__(self, config_path: str = "config/config.yaml") -> None:
        """
        Initialize parameter loader.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        self.config_path = Path(config_path)
        self.config: AppConfig
        self._load_config()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            self.config = AppConfig(**config_dict)

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def get_store_config(self) -> StoreConfig:
        """Get pod store configuration."""
        return self.config.store

    def get_encryption_config(self) -> EncryptionConfig:
        """Get encryption configuration."""
        return self.config.encryption

    def get_processing_config(self) -> ProcessingConfig:
        """Get data processing configuration."""
        return self.config.processing

    def get_csv_config(self) -> CSVConfig:
        """Get CSV parsing configuration."""
        return self.config.csv

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.config.logging
