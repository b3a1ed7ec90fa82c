# src/attachgc/contracts/enums.py
"""Status codes and kinds shared across the collector, stores and journal."""

from enum import Enum


class WriteKind(str, Enum):
    """Kind of write observed on an index record.

    Derived from which of the before/after snapshots exist.
    Uses (str, Enum) because this IS stored in the database (index_events.write_kind).
    """

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EventStatus(str, Enum):
    """Delivery status of a trigger event in the journal.

    Uses (str, Enum) for database serialization to index_events.status.
    """

    PENDING = "pending"
    DELIVERED = "delivered"


class ErrorKind(str, Enum):
    """Classification of a store failure.

    TRANSIENT: network/service hiccup, a later delivery will likely succeed
    PERMANENT: configuration or permission problem, will keep failing
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class DeleteOutcome(Enum):
    """Result of one idempotent delete against a store.

    NOT_FOUND is a success: the resource is absent either way.
    SKIPPED means a conditional delete saw a live record and left it alone.
    Plain Enum: outcomes are reported and logged, never persisted.
    """

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    FAILED = "failed"


class ActionType(Enum):
    """Side effect planned by the collector for an orphaned key."""

    DELETE_BLOB = "delete_blob"
    DELETE_INDEX_RECORD = "delete_index_record"
