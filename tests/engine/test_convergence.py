"""Reordered, duplicated and concurrent deliveries converge on full cleanup."""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st

from attachgc.contracts import IndexSnapshot
from attachgc.core.blob_store import FilesystemBlobStore
from attachgc.core.index import IndexDB, IndexStore
from attachgc.engine import GarbageCollector

# Post-write states one key passes through: shared, released, deleted,
# and a duplicate release.
AFTER_STATES: list[IndexSnapshot | None] = [
    IndexSnapshot(data={"refcount": 1}),
    IndexSnapshot(data={"refcount": 0}),
    None,
    IndexSnapshot(data={"refcount": 0}),
]


@st.composite
def deliveries(draw: st.DrawFn) -> list[IndexSnapshot | None]:
    """Every state at least once, in any order, with duplicates."""
    ordered = draw(st.permutations(AFTER_STATES))
    extra = draw(st.lists(st.sampled_from(AFTER_STATES), max_size=4))
    combined = list(ordered) + extra
    return draw(st.permutations(combined))


class TestConvergence:
    @given(sequence=deliveries())
    def test_any_delivery_order_ends_fully_collected(
        self,
        tmp_path_factory: pytest.TempPathFactory,
        sequence: list[IndexSnapshot | None],
    ) -> None:
        blob_store = FilesystemBlobStore(tmp_path_factory.mktemp("blobs"))
        index_store = IndexStore(IndexDB.in_memory())
        collector = GarbageCollector(blob_store, index_store)

        # Final stable write: the last reference was released
        key = blob_store.put("u1", b"attachment")
        index_store.set_refcount(key, 0)

        for after in sequence:
            result = collector.collect(key, after)
            assert not result.failed

        assert not blob_store.exists(key)
        assert index_store.get(key) is None

    def test_other_owners_are_untouched(
        self, collector: GarbageCollector, blob_store: FilesystemBlobStore, index_store: IndexStore
    ) -> None:
        mine = blob_store.put("u1", b"same bytes")
        theirs = blob_store.put("u2", b"same bytes")
        index_store.set_refcount(mine, 0)
        index_store.set_refcount(theirs, 1)

        for after in AFTER_STATES:
            collector.collect(mine, after)

        assert not blob_store.exists(mine)
        assert blob_store.exists(theirs)
        assert index_store.get(theirs) == IndexSnapshot(data={"refcount": 1})


class TestConcurrentHandlers:
    def test_racing_handlers_on_one_key(self, tmp_path: Path) -> None:
        db = IndexDB.from_url(f"sqlite:///{tmp_path / 'index.db'}")
        blob_store = FilesystemBlobStore(tmp_path / "blobs")
        index_store = IndexStore(db)
        collector = GarbageCollector(blob_store, index_store)

        key = blob_store.put("u1", b"contended")
        event = index_store.set_refcount(key, 0)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(collector.handle, [event] * 8))

        assert not any(r.failed for r in results)
        assert not blob_store.exists(key)
        assert index_store.get(key) is None
        db.close()
