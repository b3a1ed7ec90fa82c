# src/attachgc/core/__init__.py
"""Core infrastructure: configuration, logging, paths and the two stores."""

from attachgc.core.blob_store import (
    BlobStore,
    FilesystemBlobStore,
)
from attachgc.core.config import (
    BlobStoreSettings,
    GcSettings,
    IndexSettings,
    LoggingSettings,
    TriggerSettings,
    load_settings,
)
from attachgc.core.logging import (
    configure_logging,
    get_logger,
)
from attachgc.core.paths import (
    blob_path,
    content_hash,
    index_path,
    make_key,
    parse_index_path,
)
from attachgc.core.refcount import is_orphaned, read_refcount

__all__ = [
    "BlobStore",
    "BlobStoreSettings",
    "FilesystemBlobStore",
    "GcSettings",
    "IndexSettings",
    "LoggingSettings",
    "TriggerSettings",
    "blob_path",
    "configure_logging",
    "content_hash",
    "get_logger",
    "index_path",
    "is_orphaned",
    "load_settings",
    "make_key",
    "parse_index_path",
    "read_refcount",
]
