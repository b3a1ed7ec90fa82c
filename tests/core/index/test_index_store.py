# tests/core/index/test_index_store.py
"""Tests for index records and their journaled writes."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from attachgc.contracts import (
    AttachmentKey,
    DeleteOutcome,
    IndexSnapshot,
    PermanentStoreError,
    TransientStoreError,
    WriteKind,
)
from attachgc.core.index import IndexDB, IndexStore
from attachgc.core.index.store import _translate_errors


class TestWrites:
    def test_get_absent_record(self, index_store: IndexStore, key: AttachmentKey) -> None:
        assert index_store.get(key) is None

    def test_put_creates_record(self, index_store: IndexStore, key: AttachmentKey) -> None:
        event = index_store.put(key, {"refcount": 1, "filename": "a.png"})

        assert event.write_kind is WriteKind.CREATE
        assert event.event_id is not None
        assert index_store.get(key) == IndexSnapshot(data={"refcount": 1, "filename": "a.png"})
        assert index_store.count() == 1

    def test_put_accepts_malformed_refcount(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.put(key, {"refcount": "lots"})
        assert index_store.get(key) == IndexSnapshot(data={"refcount": "lots"})

    def test_set_refcount_keeps_other_fields(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.put(key, {"refcount": 1, "filename": "a.png"})
        event = index_store.set_refcount(key, 0)

        assert event.write_kind is WriteKind.UPDATE
        assert event.before == IndexSnapshot(data={"refcount": 1, "filename": "a.png"})
        assert event.after == IndexSnapshot(data={"refcount": 0, "filename": "a.png"})

    def test_adjust_refcount_from_missing_record(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        event = index_store.adjust_refcount(key, 1)
        assert event.before is None
        assert event.after == IndexSnapshot(data={"refcount": 1})

    def test_adjust_refcount_treats_malformed_as_zero(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.put(key, {"refcount": "x"})
        index_store.adjust_refcount(key, 2)
        assert index_store.get(key) == IndexSnapshot(data={"refcount": 2})

    def test_adjust_refcount_can_go_negative(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.set_refcount(key, 0)
        index_store.adjust_refcount(key, -1)
        assert index_store.get(key) == IndexSnapshot(data={"refcount": -1})

    def test_every_write_is_journaled(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.set_refcount(key, 1)
        index_store.adjust_refcount(key, -1)
        index_store.delete(key)

        assert index_store.journal.pending_count() == 3


class TestDelete:
    def test_delete_existing(self, index_store: IndexStore, key: AttachmentKey) -> None:
        index_store.set_refcount(key, 4)

        assert index_store.delete(key) is True
        assert index_store.get(key) is None

    def test_delete_absent_is_not_journaled(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        assert index_store.delete(key) is False
        assert index_store.journal.pending_count() == 0


class TestDeleteIfOrphaned:
    def test_absent_record(self, index_store: IndexStore, key: AttachmentKey) -> None:
        assert index_store.delete_if_orphaned(key) is DeleteOutcome.NOT_FOUND

    def test_live_record_is_kept(self, index_store: IndexStore, key: AttachmentKey) -> None:
        index_store.set_refcount(key, 3)

        assert index_store.delete_if_orphaned(key) is DeleteOutcome.SKIPPED
        assert index_store.get(key) == IndexSnapshot(data={"refcount": 3})

    @pytest.mark.parametrize("data", [{"refcount": 0}, {"refcount": -2}, {"refcount": "x"}, {}])
    def test_orphaned_record_is_deleted(
        self, index_store: IndexStore, key: AttachmentKey, data: dict[str, object]
    ) -> None:
        index_store.put(key, data)

        assert index_store.delete_if_orphaned(key) is DeleteOutcome.DELETED
        assert index_store.get(key) is None

    def test_collector_delete_is_journaled(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.set_refcount(key, 0)
        index_store.delete_if_orphaned(key)

        events = index_store.journal.claim(limit=10, lease_seconds=60)
        assert events[-1].write_kind is WriteKind.DELETE
        assert events[-1].before == IndexSnapshot(data={"refcount": 0})
        assert events[-1].after is None

    def test_second_delete_is_not_found(
        self, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        index_store.set_refcount(key, 0)
        index_store.delete_if_orphaned(key)
        assert index_store.delete_if_orphaned(key) is DeleteOutcome.NOT_FOUND


class TestErrorTranslation:
    def test_missing_table_is_transient(
        self, index_db: IndexDB, index_store: IndexStore, key: AttachmentKey
    ) -> None:
        with index_db.connection() as conn:
            conn.execute(text("DROP TABLE attachments_index"))

        with pytest.raises(TransientStoreError) as exc_info:
            index_store.delete_if_orphaned(key)
        assert exc_info.value.operation == "delete_if_orphaned"

    def test_integrity_error_is_permanent(self, key: AttachmentKey) -> None:
        with pytest.raises(PermanentStoreError, match="u1/abc"), _translate_errors("put", key):
            raise IntegrityError("INSERT", {}, Exception("constraint failed"))

    def test_other_errors_pass_through(self, key: AttachmentKey) -> None:
        with pytest.raises(KeyError), _translate_errors("get", key):
            raise KeyError("not a database error")
