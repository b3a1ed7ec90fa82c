# src/attachgc/core/refcount.py
"""Reading reference counts out of untrusted index snapshots.

Clients own the refcount field, so it may be missing, a string, a bool,
or NaN. Anything that is not a finite number reads as 0: a malformed
record is collected rather than leaked.
"""

import math
from typing import Any

from attachgc.contracts import IndexSnapshot

REFCOUNT_FIELD = "refcount"


def read_refcount(snapshot: IndexSnapshot | None) -> int | float:
    """Return the snapshot's refcount, or 0 if absent or not a valid number."""
    if snapshot is None:
        return 0
    value: Any = snapshot.get(REFCOUNT_FIELD)
    # bool is an int subclass but never a count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return value


def is_orphaned(snapshot: IndexSnapshot | None) -> bool:
    """A record is orphaned when it is absent or its refcount is <= 0."""
    return snapshot is None or read_refcount(snapshot) <= 0
