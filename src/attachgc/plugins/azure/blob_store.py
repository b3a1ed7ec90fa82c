# src/attachgc/plugins/azure/blob_store.py
"""Azure Blob Storage backend for attachment blobs.

Blobs are stored at ``users/<owner_id>/blobs/<sha256>`` inside one
container. A 404 on delete is reported as "already absent", which is
what makes collector retries safe.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)

from attachgc.contracts import (
    AttachmentKey,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)
from attachgc.core.blob_store import guess_content_type
from attachgc.core.paths import blob_path, content_hash, make_key

if TYPE_CHECKING:
    from azure.storage.blob import ContainerClient

    from attachgc.plugins.azure.auth import AzureAuthConfig

# Throttling and server-side failures clear on their own
_TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def _translate_azure_error(exc: Exception, operation: str, key: AttachmentKey) -> StoreError:
    message = f"Azure {operation} failed for {blob_path(key)}: {exc}"
    if isinstance(exc, (ServiceRequestError, ServiceResponseError)):
        return TransientStoreError(message, operation=operation)
    if isinstance(exc, ClientAuthenticationError):
        return PermanentStoreError(message, operation=operation)
    if isinstance(exc, HttpResponseError) and exc.status_code in _TRANSIENT_STATUS_CODES:
        return TransientStoreError(message, operation=operation)
    return PermanentStoreError(message, operation=operation)


class AzureBlobStore:
    """Blob store backed by one Azure Blob Storage container."""

    def __init__(self, container_client: ContainerClient) -> None:
        """Initialize with a container client.

        Args:
            container_client: Client for the container holding all blobs
        """
        self._container = container_client

    @classmethod
    def from_config(cls, auth: AzureAuthConfig, container: str) -> AzureBlobStore:
        """Build a store from auth settings and a container name."""
        service_client = auth.create_blob_service_client()
        return cls(service_client.get_container_client(container))

    def put(
        self,
        owner_id: str,
        content: bytes,
        *,
        filename: str | None = None,
    ) -> AttachmentKey:
        """Upload content unless an identical blob already exists."""
        from azure.storage.blob import ContentSettings

        key = make_key(owner_id, content_hash(content))
        blob_client = self._container.get_blob_client(blob_path(key))
        try:
            blob_client.upload_blob(
                content,
                overwrite=False,
                content_settings=ContentSettings(content_type=guess_content_type(filename)),
            )
        except ResourceExistsError:
            # Same hash, same bytes
            pass
        except (ServiceRequestError, ServiceResponseError, HttpResponseError) as e:
            raise _translate_azure_error(e, "put", key) from e
        return key

    def retrieve(self, key: AttachmentKey) -> bytes:
        blob_client = self._container.get_blob_client(blob_path(key))
        try:
            downloader: Any = blob_client.download_blob()
            return bytes(downloader.readall())
        except ResourceNotFoundError:
            raise KeyError(f"Blob not found: {key}") from None
        except (ServiceRequestError, ServiceResponseError, HttpResponseError) as e:
            raise _translate_azure_error(e, "retrieve", key) from e

    def exists(self, key: AttachmentKey) -> bool:
        blob_client = self._container.get_blob_client(blob_path(key))
        try:
            return bool(blob_client.exists())
        except (ServiceRequestError, ServiceResponseError, HttpResponseError) as e:
            raise _translate_azure_error(e, "exists", key) from e

    def delete(self, key: AttachmentKey) -> bool:
        """Delete a blob and its snapshots.

        Returns:
            True if the blob was deleted, False if it was already absent
        """
        try:
            self._container.delete_blob(blob_path(key), delete_snapshots="include")
        except ResourceNotFoundError:
            return False
        except (ServiceRequestError, ServiceResponseError, HttpResponseError) as e:
            raise _translate_azure_error(e, "delete", key) from e
        return True
