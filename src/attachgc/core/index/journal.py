# src/attachgc/core/index/journal.py
"""Trigger journal: at-least-once delivery of index write events.

Every index write appends one event row in the same transaction as the
write itself, so an event exists exactly when the write committed.
Consumers lease events, handle them, then acknowledge. An event whose
lease expires before acknowledgement is handed out again; that is the
redelivery path after a crash or timeout.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import Connection, and_, func, or_, select

from attachgc.contracts import (
    AttachmentKey,
    EventStatus,
    IndexSnapshot,
    WriteEvent,
)
from attachgc.core.index.database import IndexDB
from attachgc.core.index.schema import index_events_table


def _now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def snapshot_to_json(snapshot: IndexSnapshot | None) -> str | None:
    if snapshot is None:
        return None
    return json.dumps(snapshot.data, sort_keys=True)


def snapshot_from_json(raw: str | None) -> IndexSnapshot | None:
    """Decode a stored snapshot.

    A document that is not a JSON object decodes to an empty snapshot,
    which reads as refcount 0.
    """
    if raw is None:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        return IndexSnapshot()
    return IndexSnapshot(data=data)


@dataclass(frozen=True)
class JournalStats:
    """Counts of journal rows by delivery state."""

    pending: int
    delivered: int
    retried: int


class EventJournal:
    """Append, lease and acknowledge trigger events."""

    def __init__(
        self,
        db: IndexDB,
        *,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        """Initialize journal.

        Args:
            db: Index database holding the journal table
            clock: Source of the current time (injected in tests)
        """
        self._db = db
        self._clock = clock

    def record(self, conn: Connection, event: WriteEvent) -> int:
        """Append an event inside the caller's transaction.

        Args:
            conn: Open connection of the index write being journaled
            event: The write to record

        Returns:
            The new event id
        """
        result = conn.execute(
            index_events_table.insert().values(
                owner_id=event.key.owner_id,
                content_hash=event.key.content_hash,
                write_kind=event.write_kind.value,
                before_json=snapshot_to_json(event.before),
                after_json=snapshot_to_json(event.after),
                status=EventStatus.PENDING.value,
                attempts=0,
                created_at=self._clock(),
            )
        )
        event_id = result.inserted_primary_key[0]
        assert event_id is not None
        return int(event_id)

    def claim(self, *, limit: int, lease_seconds: float) -> list[WriteEvent]:
        """Lease up to ``limit`` pending events whose lease is free or expired.

        The lease is taken with a conditional UPDATE per event, so two
        workers racing for the same event cannot both win it.

        Returns:
            Leased events in journal order
        """
        now = self._clock()
        lease_until = now + timedelta(seconds=lease_seconds)
        claimable = and_(
            index_events_table.c.status == EventStatus.PENDING.value,
            or_(
                index_events_table.c.lease_expires_at.is_(None),
                index_events_table.c.lease_expires_at <= now,
            ),
        )

        claimed: list[WriteEvent] = []
        with self._db.connection() as conn:
            rows = conn.execute(
                select(index_events_table)
                .where(claimable)
                .order_by(index_events_table.c.event_id)
                .limit(limit)
            ).fetchall()

            for row in rows:
                result = conn.execute(
                    index_events_table.update()
                    .where(and_(index_events_table.c.event_id == row.event_id, claimable))
                    .values(
                        lease_expires_at=lease_until,
                        attempts=index_events_table.c.attempts + 1,
                    )
                )
                if result.rowcount == 1:
                    claimed.append(self._load(row))

        return claimed

    def acknowledge(self, event_id: int) -> None:
        """Mark an event delivered. Acknowledging twice is harmless."""
        with self._db.connection() as conn:
            conn.execute(
                index_events_table.update()
                .where(index_events_table.c.event_id == event_id)
                .values(
                    status=EventStatus.DELIVERED.value,
                    lease_expires_at=None,
                    delivered_at=self._clock(),
                )
            )

    def record_failure(self, event_id: int, error: str) -> None:
        """Note a handler crash. The lease is kept, so redelivery waits for it to expire."""
        with self._db.connection() as conn:
            conn.execute(
                index_events_table.update()
                .where(index_events_table.c.event_id == event_id)
                .values(last_error=error)
            )

    def pending_count(self) -> int:
        with self._db.connection() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(index_events_table)
                .where(index_events_table.c.status == EventStatus.PENDING.value)
            ).scalar_one()
        return int(count)

    def stats(self) -> JournalStats:
        """Summarize the journal for status reporting."""
        with self._db.connection() as conn:
            rows = conn.execute(
                select(index_events_table.c.status, func.count())
                .group_by(index_events_table.c.status)
            ).fetchall()
            retried = conn.execute(
                select(func.count())
                .select_from(index_events_table)
                .where(index_events_table.c.attempts > 1)
            ).scalar_one()

        by_status = {status: int(count) for status, count in rows}
        return JournalStats(
            pending=by_status.get(EventStatus.PENDING.value, 0),
            delivered=by_status.get(EventStatus.DELIVERED.value, 0),
            retried=int(retried),
        )

    @staticmethod
    def _load(row: Any) -> WriteEvent:
        """Load WriteEvent from a journal row. Bad rows crash: the journal is OUR data."""
        return WriteEvent(
            key=AttachmentKey(owner_id=row.owner_id, content_hash=row.content_hash),
            before=snapshot_from_json(row.before_json),
            after=snapshot_from_json(row.after_json),
            event_id=row.event_id,
        )
