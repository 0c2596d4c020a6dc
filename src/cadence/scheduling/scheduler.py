"""Scheduler - owns the work item containers and the tick pipeline.

Manifesto:
    Platform timers coalesce and drift across sleep/suspend. The scheduler
    never trusts a long timer: it ticks once per wall-clock second, compares
    each deadline with the clock, and keeps failing work alive through
    backoff instead of dropping it.

Tags:
    cadence, scheduling, tick-loop, retry, backoff

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER ARCHITECTURE                                                       │
│                                                                               │
│   ┌────────────────────┐   tick()   ┌────────────────────────────────────┐   │
│   │  TimerBackend      │ ─────────► │  Scheduler                         │   │
│   │  (when)            │            │                                    │   │
│   └────────────────────┘            │  ticking:   [WorkItem...]  by id   │   │
│                                     │  deadlines: DeadlineQueue sorted   │   │
│                                     │             (next_run, id)+sentinel│   │
│                                     └────────────────────────────────────┘   │
│                                                                               │
│   _tick():                                                                    │
│     1. now = clock                                                            │
│     2. due = deadlines.pop_due(now)                                           │
│     3. ticking items start concurrently          ─┐                           │
│     4. due items run one by one, in order;        │  both settle              │
│        failures → item.schedule_for_retry(now)   ─┘                           │
│     5. re-insert every due item still Scheduled                               │
│     6. backend re-arms at the next second boundary                            │
│                                                                               │
│   Anything escaping 1-5 is logged as an InternalSchedulerError; the           │
│   backend re-arms regardless.                                                 │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import contextvars
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cadence.errors import ExecutionError, InternalSchedulerError
from cadence.logging import LogContext, get_logger
from cadence.settings import CadenceSettings, get_settings
from cadence.timestamps import Clock, SystemClock, now_sec, sec_to_date

from .backoff import RetryBackoff
from .items import WorkItem
from .loop_backend import LoopTimerBackend
from .protocol import BackendHealth, TimerBackend
from .queue import SENTINEL_ID, DeadlineQueue

logger = get_logger(__name__)

# Set while a tick runs; callbacks inherit it through their task context
_IN_TICK: contextvars.ContextVar[bool] = contextvars.ContextVar("cadence_in_tick", default=False)


@dataclass
class SchedulerStats:
    """Statistics for the scheduler."""

    tick_count: int = 0
    deadline_runs: int = 0
    deadline_failures: int = 0
    ticking_runs: int = 0
    ticking_failures: int = 0
    internal_errors: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None


@dataclass
class SchedulerHealth:
    """Health status for the scheduler."""

    healthy: bool
    backend: BackendHealth | dict
    deadline_items: int = 0
    ticking_items: int = 0
    next_run: datetime | None = None
    last_tick: datetime | None = None
    stats: SchedulerStats = field(default_factory=SchedulerStats)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "healthy": self.healthy,
            "backend": self.backend.to_dict() if isinstance(self.backend, BackendHealth) else self.backend,
            "deadline_items": self.deadline_items,
            "ticking_items": self.ticking_items,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "stats": {
                "tick_count": self.stats.tick_count,
                "deadline_runs": self.stats.deadline_runs,
                "deadline_failures": self.stats.deadline_failures,
                "ticking_runs": self.stats.ticking_runs,
                "ticking_failures": self.stats.ticking_failures,
                "internal_errors": self.stats.internal_errors,
            },
        }


class Scheduler:
    """In-process scheduler for ticking and deadline work items.

    Example:
        >>> from cadence import Scheduler, events
        >>>
        >>> async def main():
        ...     async with Scheduler() as scheduler:
        ...         events.repeat(scheduler, "poll", poll_inbox)
        ...         events.repeat(scheduler, "refresh-token", refresh, minutes=30)
        ...         events.once(scheduler, "warmup", warm_cache, seconds=10)
        ...         await asyncio.sleep(3600)
    """

    def __init__(
        self,
        settings: CadenceSettings | None = None,
        clock: Clock | None = None,
        backend: TimerBackend | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            settings: Validated settings (default: ``get_settings()``)
            clock: Time source (default: system clock, offset from settings)
            backend: Tick timer (default: ``LoopTimerBackend``)
        """
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.tz_offset_seconds)
        self.backend = backend or LoopTimerBackend(self.clock)
        self.backoff = RetryBackoff.from_settings(self.settings)

        self._ticking: list[WorkItem] = []
        self._deadlines = DeadlineQueue()
        self._stats = SchedulerStats()
        self._running = False
        self._stopped: asyncio.Event | None = None

    # === Registration ===

    def add(self, item: WorkItem) -> bool:
        """Upsert a work item into its container.

        Deadline items must be Scheduled; they replace an item with the same
        id in place, and the queue is re-sorted. Ticking items replace or
        append by id.

        Returns:
            True if the item was accepted; rejected items are logged.
        """
        if not isinstance(item, WorkItem):
            logger.error("invalid_item_rejected", item=repr(item))
            return False

        if item.is_deadline and not item.is_scheduled:
            logger.error("unscheduled_item_rejected", item_id=item.id)
            return False

        replaced = self._insert(item)
        if replaced is None:
            logger.info("item_added", item_id=item.id, item=str(item))
        else:
            logger.info("item_replaced", item_id=item.id, previous=str(replaced), item=str(item))
        return True

    def _insert(self, item: WorkItem) -> WorkItem | None:
        if item.is_deadline:
            return self._deadlines.upsert(item)

        for index, existing in enumerate(self._ticking):
            if existing.id == item.id:
                self._ticking[index] = item
                return existing
        self._ticking.append(item)
        return None

    def _requeue(self, item: WorkItem) -> None:
        current = self._deadlines.get(item.id)
        if current is not None and current is not item:
            # Re-registered while running; the newer registration wins
            logger.info("requeue_superseded", item_id=item.id, reschedule_count=item.reschedule_count)
            return
        self._deadlines.upsert(item)
        logger.info(
            "item_requeued",
            item_id=item.id,
            reschedule_count=item.reschedule_count,
            item=str(item),
        )

    # === Lifecycle ===

    def start(self) -> None:
        """Arm the tick timer on the running event loop."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self.backend.start(self.tick, self.settings.tick_interval_seconds)
        self._running = True
        self._stopped = asyncio.Event()
        logger.info(
            "scheduler_started",
            backend=self.backend.name,
            interval_seconds=self.settings.tick_interval_seconds,
        )

    async def shutdown(self) -> None:
        """Stop ticking; waits for an in-flight tick unless called from one."""
        if not self._running:
            return

        await self.backend.stop(wait=not _IN_TICK.get())
        self._running = False
        if self._stopped is not None:
            self._stopped.set()
        logger.info("scheduler_stopped", tick_count=self._stats.tick_count)

    async def run_forever(self) -> None:
        """Start and block until :meth:`shutdown` is called."""
        self.start()
        await self._stopped.wait()

    async def __aenter__(self) -> Scheduler:
        self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.shutdown()

    @property
    def is_running(self) -> bool:
        return self._running

    # === Tick Processing ===

    async def tick(self) -> None:
        """One pass of the dispatch pipeline.

        Never raises: internal failures are logged and counted.
        """
        token = _IN_TICK.set(True)
        try:
            await self._tick()
        except Exception as e:
            self._stats.internal_errors += 1
            self._stats.last_error = repr(e)
            error = InternalSchedulerError(f"Unexpected exception in scheduler: {e}", cause=e)
            logger.exception("scheduler_internal_error", **error.to_dict())
        finally:
            _IN_TICK.reset(token)

    async def _tick(self) -> None:
        now = now_sec(self.clock)
        self._stats.tick_count += 1
        self._stats.last_tick = sec_to_date(now)

        with LogContext(tick=self._stats.tick_count):
            due = self._deadlines.pop_due(now)
            ticking = asyncio.gather(*(self._run_ticking(item) for item in list(self._ticking)))

            try:
                for item in due:
                    await self._run_deadline(item)
            finally:
                try:
                    await ticking
                finally:
                    for item in due:
                        if item.is_scheduled:
                            self._requeue(item)

    async def _run_ticking(self, item: WorkItem) -> None:
        self._stats.ticking_runs += 1
        try:
            await item.run(self.clock)
        except ExecutionError:
            # Already logged by the item; it runs again next tick
            self._stats.ticking_failures += 1

    async def _run_deadline(self, item: WorkItem) -> None:
        self._stats.deadline_runs += 1
        try:
            await item.run(self.clock)
        except ExecutionError as e:
            self._stats.deadline_failures += 1
            self._stats.last_error = str(e)
            item.schedule_for_retry(now_sec(self.clock))

    # === Introspection ===

    def get(self, item_id: str) -> WorkItem | None:
        """Registered item by id, deadline items first."""
        item = self._deadlines.get(item_id)
        if item is not None:
            return item
        for item in self._ticking:
            if item.id == item_id:
                return item
        return None

    def pending(self) -> list[WorkItem]:
        """Deadline items in queue order."""
        return list(self._deadlines)

    def ticking(self) -> list[WorkItem]:
        return list(self._ticking)

    def __len__(self) -> int:
        return len(self._deadlines) + len(self._ticking)

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and item_id != SENTINEL_ID and self.get(item_id) is not None

    # === Health & Stats ===

    def health(self) -> SchedulerHealth:
        backend_health = self.backend.health()
        first = self._deadlines.peek()
        return SchedulerHealth(
            healthy=self._running and backend_health.get("healthy", False),
            backend=backend_health,
            deadline_items=len(self._deadlines),
            ticking_items=len(self._ticking),
            next_run=sec_to_date(first.next_run) if first is not None else None,
            last_tick=self._stats.last_tick,
            stats=self._stats,
        )

    def get_stats(self) -> SchedulerStats:
        return self._stats

    def reset_stats(self) -> None:
        """Reset scheduler statistics."""
        self._stats = SchedulerStats()
