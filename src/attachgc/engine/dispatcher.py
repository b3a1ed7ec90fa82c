# src/attachgc/engine/dispatcher.py
"""Trigger dispatcher: delivers journaled index writes to the collector.

Delivery is at-least-once. An event is acknowledged only after the
collector returned for it; if the process dies first, the lease runs out
and the event is claimed again. Events for different keys run
concurrently on a thread pool, and nothing orders events for the same
key - the collector is idempotent, so it does not need to be.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from time import perf_counter

from attachgc.contracts import CollectionResult, DrainResult, WriteEvent
from attachgc.core.index.journal import EventJournal
from attachgc.core.logging import get_logger
from attachgc.engine.collector import GarbageCollector

logger = get_logger(__name__)


@dataclass(frozen=True)
class DispatchConfig:
    """Tuning for one dispatcher.

    Attributes:
        max_workers: Events handled concurrently
        batch_size: Events leased per claim
        lease_seconds: Time a claimed event stays hidden before redelivery
        poll_interval_seconds: Sleep between polls when the journal is empty
    """

    max_workers: int = 4
    batch_size: int = 100
    lease_seconds: float = 60.0
    poll_interval_seconds: float = 1.0


class TriggerDispatcher:
    """Pulls pending events from the journal and runs the collector on them.

    Usage:
        dispatcher = TriggerDispatcher(journal, collector, DispatchConfig())
        result = dispatcher.drain()      # one pass until the journal is empty
        dispatcher.run(stop_event)       # poll until stop_event is set
    """

    def __init__(
        self,
        journal: EventJournal,
        collector: GarbageCollector,
        config: DispatchConfig | None = None,
    ) -> None:
        self._journal = journal
        self._collector = collector
        self._config = config if config is not None else DispatchConfig()

    @property
    def config(self) -> DispatchConfig:
        return self._config

    def drain(self) -> DrainResult:
        """Handle pending events until a claim comes back empty.

        Events whose handler crashed keep their lease, so they are not
        claimed again within the same drain.
        """
        start_time = perf_counter()
        result = DrainResult()

        with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
            while True:
                events = self._journal.claim(
                    limit=self._config.batch_size,
                    lease_seconds=self._config.lease_seconds,
                )
                if not events:
                    break
                result.claimed += len(events)

                futures: list[tuple[WriteEvent, Future[CollectionResult]]] = [
                    (event, pool.submit(self._collector.handle, event))
                    for event in events
                ]
                for event, future in futures:
                    self._settle(event, future, result)

        result.duration_seconds = perf_counter() - start_time
        if result.claimed:
            logger.info(
                "drain_completed",
                claimed=result.claimed,
                delivered=result.delivered,
                crashed=result.crashed,
                failed_deletes=result.failed_deletes,
                duration_seconds=round(result.duration_seconds, 3),
            )
        return result

    def run(self, stop_event: threading.Event) -> None:
        """Drain repeatedly until ``stop_event`` is set.

        A failed drain (journal unreachable, database locked) is logged and
        retried after the poll interval. Events it left unacknowledged are
        claimed again once their lease expires.
        """
        logger.info(
            "dispatcher_started",
            max_workers=self._config.max_workers,
            batch_size=self._config.batch_size,
        )
        while not stop_event.is_set():
            try:
                result = self.drain()
            except Exception:
                logger.exception("drain_failed")
                stop_event.wait(self._config.poll_interval_seconds)
                continue
            if result.claimed == 0:
                stop_event.wait(self._config.poll_interval_seconds)
        logger.info("dispatcher_stopped")

    def _settle(
        self,
        event: WriteEvent,
        future: Future[CollectionResult],
        result: DrainResult,
    ) -> None:
        """Acknowledge a handled event, or record why its handler crashed."""
        assert event.event_id is not None  # claimed events always carry their id
        try:
            outcome = future.result()
        except Exception as e:
            # A bug, not a store failure: store failures come back in the result.
            result.crashed += 1
            logger.exception(
                "event_handler_crashed",
                event_id=event.event_id,
                owner_id=event.key.owner_id,
                content_hash=event.key.content_hash,
            )
            self._journal.record_failure(event.event_id, f"{type(e).__name__}: {e}")
            return

        # Store failures are still acknowledged: convergence relies on
        # idempotent follow-up events, not on redelivering this one.
        self._journal.acknowledge(event.event_id)
        result.delivered += 1
        if outcome.failed:
            result.failed_deletes += 1
        result.results.append(outcome)
