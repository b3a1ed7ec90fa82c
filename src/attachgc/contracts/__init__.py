"""Shared contracts for cross-boundary data types.

Import pattern:
    from attachgc.contracts import AttachmentKey, IndexSnapshot, WriteEvent
"""

from attachgc.contracts.enums import (
    ActionType,
    DeleteOutcome,
    ErrorKind,
    EventStatus,
    WriteKind,
)
from attachgc.contracts.data import (
    AttachmentKey,
    IndexSnapshot,
    WriteEvent,
)
from attachgc.contracts.errors import (
    AttachGcError,
    InvalidKeyError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
    classify_error,
)
from attachgc.contracts.results import (
    CollectionResult,
    DeleteResult,
    DrainResult,
    GcAction,
)

__all__ = [
    # enums
    "ActionType",
    "DeleteOutcome",
    "ErrorKind",
    "EventStatus",
    "WriteKind",
    # data
    "AttachmentKey",
    "IndexSnapshot",
    "WriteEvent",
    # errors
    "AttachGcError",
    "InvalidKeyError",
    "PermanentStoreError",
    "StoreError",
    "TransientStoreError",
    "classify_error",
    # results
    "CollectionResult",
    "DeleteResult",
    "DrainResult",
    "GcAction",
]
