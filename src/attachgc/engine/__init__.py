# src/attachgc/engine/__init__.py
"""Engine: orphan collection and trigger delivery."""

from attachgc.engine.collector import (
    GarbageCollector,
    IndexRecordDeleter,
    plan_collection,
)
from attachgc.engine.dispatcher import DispatchConfig, TriggerDispatcher

__all__ = [
    "DispatchConfig",
    "GarbageCollector",
    "IndexRecordDeleter",
    "TriggerDispatcher",
    "plan_collection",
]
