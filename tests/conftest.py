"""Shared test fixtures and store fakes.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from hypothesis import HealthCheck, Phase, Verbosity, settings

from attachgc.contracts import AttachmentKey, DeleteOutcome, StoreError
from attachgc.core.blob_store import FilesystemBlobStore
from attachgc.core.index import IndexDB, IndexStore
from attachgc.core.paths import content_hash, make_key
from attachgc.engine import GarbageCollector

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# Function-scoped fixtures (tmp_path, fresh databases) are reset by hand
# inside property tests, so that health check is suppressed everywhere.
_SUPPRESSED = [HealthCheck.function_scoped_fixture]

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
    suppress_health_check=_SUPPRESSED,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
    suppress_health_check=_SUPPRESSED,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
    suppress_health_check=_SUPPRESSED,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Store fakes
# =============================================================================


class MockBlobStore:
    """In-memory BlobStore that records every delete call."""

    def __init__(self) -> None:
        self._storage: dict[AttachmentKey, bytes] = {}
        self.delete_calls: list[AttachmentKey] = []

    def put(
        self, owner_id: str, content: bytes, *, filename: str | None = None
    ) -> AttachmentKey:
        key = make_key(owner_id, content_hash(content))
        self._storage.setdefault(key, content)
        return key

    def add(self, key: AttachmentKey, content: bytes = b"payload") -> None:
        """Place a blob under an arbitrary key."""
        self._storage[key] = content

    def retrieve(self, key: AttachmentKey) -> bytes:
        if key not in self._storage:
            raise KeyError(f"Blob not found: {key}")
        return self._storage[key]

    def exists(self, key: AttachmentKey) -> bool:
        return key in self._storage

    def delete(self, key: AttachmentKey) -> bool:
        self.delete_calls.append(key)
        return self._storage.pop(key, None) is not None


class FailingBlobStore(MockBlobStore):
    """BlobStore whose delete raises a fixed error."""

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    def delete(self, key: AttachmentKey) -> bool:
        self.delete_calls.append(key)
        raise self.error


class MockIndexDeleter:
    """Index store stand-in for collector unit tests."""

    def __init__(
        self,
        outcome: DeleteOutcome = DeleteOutcome.DELETED,
        error: StoreError | Exception | None = None,
    ) -> None:
        self.outcome = outcome
        self.error = error
        self.delete_calls: list[AttachmentKey] = []

    def delete_if_orphaned(self, key: AttachmentKey) -> DeleteOutcome:
        self.delete_calls.append(key)
        if self.error is not None:
            raise self.error
        return self.outcome


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def key() -> AttachmentKey:
    return make_key("u1", "abc")


@pytest.fixture
def index_db() -> IndexDB:
    return IndexDB.in_memory()


@pytest.fixture
def index_store(index_db: IndexDB) -> IndexStore:
    return IndexStore(index_db)


@pytest.fixture
def blob_store(tmp_path: Path) -> FilesystemBlobStore:
    return FilesystemBlobStore(tmp_path / "blobs")


@pytest.fixture
def collector(
    blob_store: FilesystemBlobStore, index_store: IndexStore
) -> GarbageCollector:
    return GarbageCollector(blob_store, index_store)


@pytest.fixture
def mock_blob_store() -> MockBlobStore:
    return MockBlobStore()


@pytest.fixture
def mock_index() -> MockIndexDeleter:
    return MockIndexDeleter()


@pytest.fixture
def failing_blob_store() -> type[FailingBlobStore]:
    """The FailingBlobStore class; tests construct it with the error they need."""
    return FailingBlobStore


@pytest.fixture
def index_deleter() -> type[MockIndexDeleter]:
    """The MockIndexDeleter class, for tests needing a specific outcome or error."""
    return MockIndexDeleter


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo configure_logging() calls so log capture sees every level."""
    yield
    structlog.reset_defaults()
