# src/attachgc/contracts/data.py
"""Keys and snapshots describing an attachment index record.

A snapshot is the record's document exactly as stored. It is a trust
boundary: clients write whatever they like, so nothing here assumes the
``refcount`` field is present or well-typed.
"""

from dataclasses import dataclass, field
from typing import Any

from attachgc.contracts.enums import WriteKind


@dataclass(frozen=True, slots=True)
class AttachmentKey:
    """Identity shared by an index record and its blob."""

    owner_id: str
    content_hash: str

    def __str__(self) -> str:
        return f"{self.owner_id}/{self.content_hash}"


@dataclass(frozen=True, slots=True)
class IndexSnapshot:
    """Stored document of an index record at one point in time."""

    data: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)


@dataclass(frozen=True, slots=True)
class WriteEvent:
    """One observed write on an index record, as delivered to the collector.

    ``before``/``after`` are None when the record did not exist on that side
    of the write. ``event_id`` is None for events not read from the journal
    (manual collection, tests).
    """

    key: AttachmentKey
    before: IndexSnapshot | None
    after: IndexSnapshot | None
    event_id: int | None = None

    @property
    def write_kind(self) -> WriteKind:
        if self.before is None:
            return WriteKind.CREATE
        if self.after is None:
            return WriteKind.DELETE
        return WriteKind.UPDATE
