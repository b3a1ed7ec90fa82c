# src/attachgc/core/config.py
"""
Configuration schema and loading for the attachment collector.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from attachgc.plugins.azure.auth import AzureAuthConfig


class IndexSettings(BaseModel):
    """Index database connection configuration."""

    model_config = {"frozen": True}

    url: str = Field(
        default="sqlite:///./attachgc.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")


class BlobStoreSettings(BaseModel):
    """Blob store configuration.

    Example YAML (filesystem):
        blob_store:
          backend: filesystem
          base_path: ./data/blobs

    Example YAML (Azure):
        blob_store:
          backend: azure
          container: attachments
          azure:
            connection_string: "${AZURE_STORAGE_CONNECTION_STRING}"
    """

    model_config = {"frozen": True}

    backend: Literal["filesystem", "azure"] = Field(
        default="filesystem", description="Storage backend type"
    )
    base_path: Path = Field(
        default=Path(".attachgc/blobs"),
        description="Base path for filesystem backend",
    )
    container: str | None = Field(
        default=None, description="Container name for azure backend"
    )
    azure: AzureAuthConfig | None = Field(
        default=None, description="Credentials for azure backend"
    )

    @model_validator(mode="after")
    def validate_backend_requirements(self) -> "BlobStoreSettings":
        if self.backend == "azure":
            if self.azure is None:
                raise ValueError("azure credentials are required when backend='azure'")
            if not self.container:
                raise ValueError("container is required when backend='azure'")
        return self


class TriggerSettings(BaseModel):
    """Trigger journal delivery configuration."""

    model_config = {"frozen": True}

    max_workers: int = Field(
        default=4, gt=0, description="Events handled concurrently"
    )
    batch_size: int = Field(
        default=100, gt=0, description="Events leased per claim"
    )
    lease_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long a claimed event is hidden before redelivery",
    )
    poll_interval_seconds: float = Field(
        default=1.0, gt=0, description="Sleep between empty polls in serve mode"
    )


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["console", "json"] = "console"


class GcSettings(BaseModel):
    """Top-level collector configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    index: IndexSettings = Field(
        default_factory=IndexSettings,
        description="Index database configuration",
    )
    blob_store: BlobStoreSettings = Field(
        default_factory=BlobStoreSettings,
        description="Blob store configuration",
    )
    trigger: TriggerSettings = Field(
        default_factory=TriggerSettings,
        description="Trigger delivery configuration",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )


def _lowercase_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> GcSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (ATTACHGC_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: ATTACHGC_INDEX__URL for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated GcSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="ATTACHGC",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    # Also filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES", "MERGE_ENABLED"}
    raw_config = {
        k.lower(): _lowercase_keys(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return GcSettings(**raw_config)
