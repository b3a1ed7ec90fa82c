# src/attachgc/core/paths.py
"""Storage path conventions shared by the index and blob stores.

Index records live at ``users/{owner_id}/attachments_index/{content_hash}``
and their blobs at ``users/{owner_id}/blobs/{content_hash}``. Both stores
are keyed by the same (owner, hash) pair, so a key extracted from an index
path addresses the blob directly.
"""

import hashlib
import re

from attachgc.contracts import AttachmentKey, InvalidKeyError

USERS_ROOT = "users"
INDEX_COLLECTION = "attachments_index"
BLOB_COLLECTION = "blobs"

_INDEX_PATH_PATTERN = re.compile(
    rf"^{USERS_ROOT}/(?P<owner_id>[^/]+)/{INDEX_COLLECTION}/(?P<content_hash>[^/]+)$"
)


def _validate_segment(value: str, field: str) -> str:
    """Reject values that cannot be a single path segment."""
    if not isinstance(value, str) or not value:
        raise InvalidKeyError(f"{field} must be a non-empty string")
    if "/" in value or "\\" in value or "\x00" in value:
        raise InvalidKeyError(f"{field} must not contain separators: {value!r}")
    if value in (".", ".."):
        raise InvalidKeyError(f"{field} must not be a relative path segment: {value!r}")
    return value


def make_key(owner_id: str, content_hash: str) -> AttachmentKey:
    """Build a validated AttachmentKey."""
    return AttachmentKey(
        owner_id=_validate_segment(owner_id, "owner_id"),
        content_hash=_validate_segment(content_hash, "content_hash"),
    )


def parse_index_path(path: str) -> AttachmentKey:
    """Extract the key from an index record path.

    Raises:
        InvalidKeyError: If the path does not match the index layout
    """
    match = _INDEX_PATH_PATTERN.match(path.strip("/"))
    if match is None:
        raise InvalidKeyError(f"Not an attachment index path: {path!r}")
    return make_key(match["owner_id"], match["content_hash"])


def index_path(key: AttachmentKey) -> str:
    return f"{USERS_ROOT}/{key.owner_id}/{INDEX_COLLECTION}/{key.content_hash}"


def blob_path(key: AttachmentKey) -> str:
    return f"{USERS_ROOT}/{key.owner_id}/{BLOB_COLLECTION}/{key.content_hash}"


def content_hash(content: bytes) -> str:
    """SHA-256 hex digest used as the content address of a blob."""
    return hashlib.sha256(content).hexdigest()
