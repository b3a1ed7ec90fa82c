"""Operation outcomes and results.

These types answer: "What did a collection attempt do?"

IMPORTANT:
- A store delete never raises into the collector; it is captured as a
  DeleteResult with outcome FAILED and an ErrorKind.
- CollectionResult is always returned, even when both deletes failed.
"""

from dataclasses import dataclass, field

from attachgc.contracts.data import AttachmentKey
from attachgc.contracts.enums import ActionType, DeleteOutcome, ErrorKind


@dataclass(frozen=True)
class GcAction:
    """One idempotent side effect planned for a key."""

    action: ActionType
    key: AttachmentKey


@dataclass(frozen=True)
class DeleteResult:
    """Result of one delete against a store.

    Use the factory methods to create instances.
    """

    outcome: DeleteOutcome
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def deleted(cls) -> "DeleteResult":
        return cls(outcome=DeleteOutcome.DELETED)

    @classmethod
    def not_found(cls) -> "DeleteResult":
        return cls(outcome=DeleteOutcome.NOT_FOUND)

    @classmethod
    def skipped(cls) -> "DeleteResult":
        return cls(outcome=DeleteOutcome.SKIPPED)

    @classmethod
    def failed(cls, error: str, kind: ErrorKind) -> "DeleteResult":
        return cls(outcome=DeleteOutcome.FAILED, error=error, error_kind=kind)

    @property
    def succeeded(self) -> bool:
        """True unless the store call failed. NOT_FOUND counts as success."""
        return self.outcome is not DeleteOutcome.FAILED


@dataclass(frozen=True)
class CollectionResult:
    """Outcome of handling one write event.

    ``blob``/``index`` are None when the corresponding delete was not planned.
    """

    key: AttachmentKey
    orphaned: bool
    blob: DeleteResult | None = None
    index: DeleteResult | None = None

    @property
    def failed(self) -> bool:
        """Whether any attempted delete failed."""
        return any(r is not None and not r.succeeded for r in (self.blob, self.index))


@dataclass
class DrainResult:
    """Result of one dispatcher drain pass."""

    claimed: int = 0
    delivered: int = 0
    crashed: int = 0
    failed_deletes: int = 0
    duration_seconds: float = 0.0
    results: list[CollectionResult] = field(default_factory=list, repr=False)
