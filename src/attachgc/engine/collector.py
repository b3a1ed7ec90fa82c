# src/attachgc/engine/collector.py
"""Garbage collector for orphaned attachment blobs.

Reacts to one index write at a time. The decision is a pure function of
the key and the post-write snapshot; executing it issues at most two
idempotent deletes:

1. the blob at (owner, hash), where "already gone" is success
2. the index record, only if it still existed after the write

Each delete is attempted independently and its failure is logged, never
raised. Repeated or reordered deliveries of the same events converge on
blob absent + record absent, which is why nothing here retries locally.
"""

from typing import Protocol

from attachgc.contracts import (
    ActionType,
    AttachmentKey,
    CollectionResult,
    DeleteOutcome,
    DeleteResult,
    GcAction,
    IndexSnapshot,
    WriteEvent,
    classify_error,
)
from attachgc.core.blob_store import BlobStore
from attachgc.core.logging import get_logger
from attachgc.core.paths import blob_path, index_path
from attachgc.core.refcount import is_orphaned

logger = get_logger(__name__)


class IndexRecordDeleter(Protocol):
    """The one index operation the collector needs.

    Defined here rather than importing IndexStore so any record store
    with a conditional delete can be collected against.
    """

    def delete_if_orphaned(self, key: AttachmentKey) -> DeleteOutcome:
        """Delete the record while it is still orphaned."""
        ...


def plan_collection(
    key: AttachmentKey, after: IndexSnapshot | None
) -> tuple[GcAction, ...]:
    """Decide which deletes a write calls for.

    Args:
        key: Record/blob key the write touched
        after: Post-write snapshot, None if the write deleted the record

    Returns:
        Empty for a live record; otherwise DELETE_BLOB, followed by
        DELETE_INDEX_RECORD when the record still exists
    """
    if not is_orphaned(after):
        return ()
    actions = [GcAction(ActionType.DELETE_BLOB, key)]
    if after is not None:
        actions.append(GcAction(ActionType.DELETE_INDEX_RECORD, key))
    return tuple(actions)


class GarbageCollector:
    """Executes collection plans against the blob and index stores.

    Holds no per-invocation state, so one instance can serve concurrent
    events from many worker threads.
    """

    def __init__(self, blob_store: BlobStore, index_store: IndexRecordDeleter) -> None:
        """Initialize collector.

        Args:
            blob_store: Store holding attachment payloads
            index_store: Store holding the reference-count records
        """
        self._blob_store = blob_store
        self._index_store = index_store

    def handle(self, event: WriteEvent) -> CollectionResult:
        """Handle one delivered write event.

        Always returns normally; store failures are reported in the result.
        """
        return self.collect(event.key, event.after)

    def collect(
        self, key: AttachmentKey, after: IndexSnapshot | None
    ) -> CollectionResult:
        """Plan and run the deletes for a key's post-write state."""
        actions = plan_collection(key, after)
        if not actions:
            return CollectionResult(key=key, orphaned=False)

        blob_result: DeleteResult | None = None
        index_result: DeleteResult | None = None
        for planned in actions:
            if planned.action is ActionType.DELETE_BLOB:
                blob_result = self._delete_blob(planned.key)
            elif planned.action is ActionType.DELETE_INDEX_RECORD:
                index_result = self._delete_index_record(planned.key)

        return CollectionResult(
            key=key, orphaned=True, blob=blob_result, index=index_result
        )

    def _delete_blob(self, key: AttachmentKey) -> DeleteResult:
        path = blob_path(key)
        try:
            deleted = self._blob_store.delete(key)
        except Exception as e:
            kind = classify_error(e)
            logger.error(
                "blob_delete_failed",
                owner_id=key.owner_id,
                content_hash=key.content_hash,
                path=path,
                error=str(e),
                error_kind=kind.value,
            )
            return DeleteResult.failed(str(e), kind)

        if not deleted:
            logger.debug(
                "blob_already_absent",
                owner_id=key.owner_id,
                content_hash=key.content_hash,
                path=path,
            )
            return DeleteResult.not_found()

        logger.info(
            "blob_deleted",
            owner_id=key.owner_id,
            content_hash=key.content_hash,
            path=path,
        )
        return DeleteResult.deleted()

    def _delete_index_record(self, key: AttachmentKey) -> DeleteResult:
        try:
            outcome = self._index_store.delete_if_orphaned(key)
        except Exception as e:
            kind = classify_error(e)
            logger.error(
                "index_delete_failed",
                owner_id=key.owner_id,
                content_hash=key.content_hash,
                path=index_path(key),
                error=str(e),
                error_kind=kind.value,
            )
            return DeleteResult.failed(str(e), kind)

        if outcome is DeleteOutcome.DELETED:
            logger.info(
                "index_record_deleted",
                owner_id=key.owner_id,
                content_hash=key.content_hash,
            )
            return DeleteResult.deleted()
        if outcome is DeleteOutcome.SKIPPED:
            # Re-referenced since the event was written; its own event covers it
            logger.info(
                "index_record_revived",
                owner_id=key.owner_id,
                content_hash=key.content_hash,
            )
            return DeleteResult.skipped()
        return DeleteResult.not_found()
