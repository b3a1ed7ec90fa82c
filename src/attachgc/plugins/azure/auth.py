# src/attachgc/plugins/azure/auth.py
"""Azure authentication configuration for the Azure blob backend.

Supports two authentication methods (mutually exclusive):
1. Connection string - simple shared-key auth
2. Managed Identity - for Azure-hosted collectors

Connection strings should come from the environment
(ATTACHGC_BLOB_STORE__AZURE__CONNECTION_STRING), not from a checked-in file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, model_validator

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient


class AzureAuthConfig(BaseModel):
    """Azure authentication configuration.

    Example configurations:

        # Option 1: Connection string
        connection_string: "${AZURE_STORAGE_CONNECTION_STRING}"

        # Option 2: Managed Identity
        use_managed_identity: true
        account_url: "https://mystorageaccount.blob.core.windows.net"
    """

    model_config = {"extra": "forbid", "frozen": True}

    connection_string: str | None = None
    use_managed_identity: bool = False
    account_url: str | None = None

    @model_validator(mode="after")
    def validate_auth_method(self) -> Self:
        """Ensure exactly one auth method is configured.

        Raises:
            ValueError: If zero or both auth methods are configured, or
                managed identity is missing its account_url.
        """
        has_conn_string = bool(self.connection_string and self.connection_string.strip())

        if self.use_managed_identity and not self.account_url:
            raise ValueError(
                "Managed Identity auth requires account_url. "
                "Example: https://mystorageaccount.blob.core.windows.net"
            )
        if has_conn_string and self.use_managed_identity:
            raise ValueError(
                "Multiple authentication methods configured. Provide exactly one of: "
                "connection_string or managed identity (use_managed_identity + account_url)"
            )
        if not has_conn_string and not self.use_managed_identity:
            raise ValueError(
                "No authentication method configured. Provide one of: "
                "connection_string or managed identity (use_managed_identity + account_url)"
            )
        return self

    def create_blob_service_client(self) -> BlobServiceClient:
        """Create BlobServiceClient using the configured auth method.

        Raises:
            ImportError: If azure-storage-blob or azure-identity is not installed.
        """
        try:
            from azure.storage.blob import BlobServiceClient
        except ImportError as e:
            raise ImportError(
                "azure-storage-blob is required for the Azure backend. "
                "Install with: pip install 'attachgc[azure]'"
            ) from e

        if self.connection_string:
            return BlobServiceClient.from_connection_string(self.connection_string)

        try:
            from azure.identity import DefaultAzureCredential
        except ImportError as e:
            raise ImportError(
                "azure-identity is required for Managed Identity auth. "
                "Install with: pip install 'attachgc[azure]'"
            ) from e

        assert self.account_url is not None  # Validated by model_validator
        return BlobServiceClient(self.account_url, credential=DefaultAzureCredential())

    @property
    def auth_method(self) -> str:
        """Return 'connection_string' or 'managed_identity'."""
        if self.connection_string:
            return "connection_string"
        return "managed_identity"
