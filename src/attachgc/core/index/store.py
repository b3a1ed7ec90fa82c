# src/attachgc/core/index/store.py
"""Index store: per-owner attachment index records.

Client write paths create and update records; the collector only ever
deletes them. Every committed write (including the collector's own
deletes) is journaled so it reaches the collector as a WriteEvent.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Connection, and_, func, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from attachgc.contracts import (
    AttachmentKey,
    DeleteOutcome,
    IndexSnapshot,
    PermanentStoreError,
    TransientStoreError,
    WriteEvent,
)
from attachgc.core.index.database import IndexDB
from attachgc.core.index.journal import (
    EventJournal,
    snapshot_from_json,
    snapshot_to_json,
)
from attachgc.core.index.schema import attachments_index_table
from attachgc.core.refcount import REFCOUNT_FIELD, is_orphaned, read_refcount


def _now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _key_clause(key: AttachmentKey) -> Any:
    return and_(
        attachments_index_table.c.owner_id == key.owner_id,
        attachments_index_table.c.content_hash == key.content_hash,
    )


@contextmanager
def _translate_errors(operation: str, key: AttachmentKey) -> Iterator[None]:
    """Map SQLAlchemy errors onto StoreError kinds.

    Operational and interface errors (locks, timeouts, dropped connections)
    are transient; everything else is permanent.
    """
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        raise TransientStoreError(
            f"Index {operation} failed for {key}: {e}", operation=operation
        ) from e
    except SQLAlchemyError as e:
        raise PermanentStoreError(
            f"Index {operation} failed for {key}: {e}", operation=operation
        ) from e


class IndexStore:
    """Read and write attachment index records.

    Writes go through one transaction that also appends the trigger event,
    so the journal never misses or invents a write.
    """

    def __init__(self, db: IndexDB, journal: EventJournal | None = None) -> None:
        """Initialize store.

        Args:
            db: Index database connection
            journal: Journal receiving write events (defaults to one on ``db``)
        """
        self._db = db
        self._journal = journal if journal is not None else EventJournal(db)

    @property
    def journal(self) -> EventJournal:
        return self._journal

    def get(self, key: AttachmentKey) -> IndexSnapshot | None:
        """Current document of a record, or None if absent."""
        with _translate_errors("get", key), self._db.connection() as conn:
            return self._read(conn, key)

    def count(self) -> int:
        with self._db.connection() as conn:
            total = conn.execute(
                select(func.count()).select_from(attachments_index_table)
            ).scalar_one()
        return int(total)

    def put(self, key: AttachmentKey, data: dict[str, Any]) -> WriteEvent:
        """Create or replace a record's document.

        The document is stored as given; a missing or malformed refcount
        is accepted here and read as 0 by the collector.
        """
        with _translate_errors("put", key), self._db.connection() as conn:
            before = self._read(conn, key, for_update=True)
            return self._upsert(conn, key, before, dict(data))

    def set_refcount(self, key: AttachmentKey, refcount: int) -> WriteEvent:
        """Set the refcount, keeping any other fields of the document."""
        with _translate_errors("set_refcount", key), self._db.connection() as conn:
            before = self._read(conn, key, for_update=True)
            data = dict(before.data) if before is not None else {}
            data[REFCOUNT_FIELD] = refcount
            return self._upsert(conn, key, before, data)

    def adjust_refcount(self, key: AttachmentKey, delta: int) -> WriteEvent:
        """Add ``delta`` to the refcount as one read-modify-write.

        A missing record or malformed refcount starts from 0. The row is
        read FOR UPDATE where the backend supports it.
        """
        with _translate_errors("adjust_refcount", key), self._db.connection() as conn:
            before = self._read(conn, key, for_update=True)
            data = dict(before.data) if before is not None else {}
            data[REFCOUNT_FIELD] = int(read_refcount(before)) + delta
            return self._upsert(conn, key, before, data)

    def delete(self, key: AttachmentKey) -> bool:
        """Delete a record unconditionally.

        Returns:
            True if the record was deleted, False if it was already absent
        """
        with _translate_errors("delete", key), self._db.connection() as conn:
            before = self._read(conn, key, for_update=True)
            if before is None:
                return False
            conn.execute(attachments_index_table.delete().where(_key_clause(key)))
            self._journal.record(conn, WriteEvent(key=key, before=before, after=None))
        return True

    def delete_if_orphaned(self, key: AttachmentKey) -> DeleteOutcome:
        """Delete a record only while it is still orphaned.

        The delete is a compare-and-delete on the stored document, so a
        client write that lands between the read and the delete makes it
        a no-op instead of removing a live record. That client write has
        its own event and is collected on its own merits.

        Returns:
            DELETED, NOT_FOUND (already absent) or SKIPPED (record is live
            or changed underneath us)

        Raises:
            StoreError: If the database failed
        """
        with _translate_errors("delete_if_orphaned", key), self._db.connection() as conn:
            row = conn.execute(
                select(attachments_index_table.c.data_json).where(_key_clause(key))
            ).first()
            if row is None:
                return DeleteOutcome.NOT_FOUND
            before = snapshot_from_json(row.data_json)
            if not is_orphaned(before):
                return DeleteOutcome.SKIPPED

            result = conn.execute(
                attachments_index_table.delete().where(
                    and_(
                        _key_clause(key),
                        attachments_index_table.c.data_json == row.data_json,
                    )
                )
            )
            if result.rowcount != 1:
                return DeleteOutcome.SKIPPED
            self._journal.record(conn, WriteEvent(key=key, before=before, after=None))
        return DeleteOutcome.DELETED

    def _read(
        self, conn: Connection, key: AttachmentKey, *, for_update: bool = False
    ) -> IndexSnapshot | None:
        query = select(attachments_index_table.c.data_json).where(_key_clause(key))
        if for_update:
            query = query.with_for_update()
        row = conn.execute(query).first()
        if row is None:
            return None
        return snapshot_from_json(row.data_json)

    def _upsert(
        self,
        conn: Connection,
        key: AttachmentKey,
        before: IndexSnapshot | None,
        data: dict[str, Any],
    ) -> WriteEvent:
        """Write the document and journal the change in the same transaction."""
        after = IndexSnapshot(data=data)
        now = _now()
        if before is None:
            conn.execute(
                attachments_index_table.insert().values(
                    owner_id=key.owner_id,
                    content_hash=key.content_hash,
                    data_json=snapshot_to_json(after),
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            conn.execute(
                attachments_index_table.update()
                .where(_key_clause(key))
                .values(data_json=snapshot_to_json(after), updated_at=now)
            )
        event_id = self._journal.record(conn, WriteEvent(key=key, before=before, after=after))
        return WriteEvent(key=key, before=before, after=after, event_id=event_id)
