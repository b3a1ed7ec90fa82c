# src/attachgc/core/blob_store.py
"""
Blob store for attachment payloads.

Uses content-addressable storage scoped per owner:
- Identical bytes uploaded twice by one owner collapse to one blob
- The blob key matches the index record key, so the collector can
  address it without a lookup
- Deletes are idempotent: deleting an absent blob is not an error
"""

import mimetypes
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from attachgc.contracts import (
    AttachmentKey,
    PermanentStoreError,
    TransientStoreError,
)
from attachgc.core.paths import blob_path, content_hash, make_key


@runtime_checkable
class BlobStore(Protocol):
    """Protocol for blob storage backends.

    All implementations must store blobs under (owner_id, sha256 of content)
    and translate backend failures into StoreError subclasses.
    """

    def put(
        self,
        owner_id: str,
        content: bytes,
        *,
        filename: str | None = None,
    ) -> AttachmentKey:
        """Store content for an owner and return its key.

        Args:
            owner_id: Owner the blob is scoped to
            content: Raw bytes to store
            filename: Original filename, used to derive the content type

        Returns:
            Key addressing the stored blob
        """
        ...

    def retrieve(self, key: AttachmentKey) -> bytes:
        """Retrieve content by key.

        Raises:
            KeyError: If content not found
        """
        ...

    def exists(self, key: AttachmentKey) -> bool:
        """Check if a blob exists."""
        ...

    def delete(self, key: AttachmentKey) -> bool:
        """Delete a blob by key.

        Returns:
            True if the blob was deleted, False if it was already absent

        Raises:
            StoreError: If the backend failed
        """
        ...


def guess_content_type(filename: str | None) -> str:
    """Derive a content type from a filename extension."""
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed is not None:
            return guessed
    return "application/octet-stream"


def _translate_os_error(exc: OSError, operation: str, key: AttachmentKey) -> Exception:
    message = f"{operation} failed for {blob_path(key)}: {exc}"
    if isinstance(exc, PermissionError):
        return PermanentStoreError(message, operation=operation)
    return TransientStoreError(message, operation=operation)


class FilesystemBlobStore:
    """Filesystem-based blob store.

    Mirrors the object layout used by remote buckets.

    Structure: base_path/users/<owner_id>/blobs/<sha256>
    """

    def __init__(self, base_path: Path) -> None:
        """Initialize filesystem store.

        Args:
            base_path: Root directory for blob storage
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for_key(self, key: AttachmentKey) -> Path:
        """Get filesystem path for a key, refusing paths outside the root."""
        root = self.base_path.resolve()
        candidate = (root / blob_path(key)).resolve()
        if not candidate.is_relative_to(root):
            raise PermanentStoreError(
                f"Blob key {key} resolves outside store root", operation="resolve"
            )
        return candidate

    def put(
        self,
        owner_id: str,
        content: bytes,
        *,
        filename: str | None = None,
    ) -> AttachmentKey:
        """Store content and return its key."""
        key = make_key(owner_id, content_hash(content))
        path = self._path_for_key(key)

        # Idempotent: skip if already exists
        if not path.exists():
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
                tmp_path.write_bytes(content)
                tmp_path.replace(path)
            except OSError as e:
                raise _translate_os_error(e, "put", key) from e

        return key

    def retrieve(self, key: AttachmentKey) -> bytes:
        """Retrieve content by key."""
        path = self._path_for_key(key)
        if not path.exists():
            raise KeyError(f"Blob not found: {key}")
        return path.read_bytes()

    def exists(self, key: AttachmentKey) -> bool:
        """Check if a blob exists."""
        return self._path_for_key(key).exists()

    def delete(self, key: AttachmentKey) -> bool:
        """Delete a blob by key.

        Returns:
            True if the blob was deleted, False if not found
        """
        path = self._path_for_key(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise _translate_os_error(e, "delete", key) from e
        return True
