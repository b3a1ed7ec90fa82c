# src/attachgc/contracts/errors.py
"""Typed errors for attachgc.

Store backends translate their native exceptions into ``StoreError``
subclasses so the collector can classify failures without knowing which
SDK raised them.
"""

from attachgc.contracts.enums import ErrorKind


class AttachGcError(Exception):
    """Base exception for all attachgc errors."""


class InvalidKeyError(AttachGcError, ValueError):
    """Raised when an owner id, content hash or record path is malformed."""


class StoreError(AttachGcError):
    """Raised when a blob or index store operation fails."""

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message)


class TransientStoreError(StoreError):
    """Backend failure expected to clear on a later attempt."""

    kind = ErrorKind.TRANSIENT


class PermanentStoreError(StoreError):
    """Backend failure that retrying will not fix."""

    kind = ErrorKind.PERMANENT


_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    InterruptedError,
)


def classify_error(exc: BaseException) -> ErrorKind:
    """Classify an arbitrary exception raised by a store call.

    StoreError carries its own kind. Timeouts and connection failures are
    transient. Anything else is treated as permanent.
    """
    if isinstance(exc, StoreError):
        return exc.kind
    if isinstance(exc, _TRANSIENT_TYPES):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT
