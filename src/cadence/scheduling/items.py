"""Work items: identity, execution wrapper, and the retry state machine.

All three kinds of scheduled work share ONE type, :class:`WorkItem`, tagged
with an :class:`ItemKind`. Behavior that differs per kind is selected by
matching on the tag, and the retry/backoff logic exists exactly once.

┌──────────────────────────────────────────────────────────────────────────────┐
│  WORK ITEM STATE MACHINE (deadline kinds)                                     │
│                                                                               │
│          construct                                                            │
│              │                                                                │
│              ▼                                                                │
│     ┌──────────────────┐   run() completes    ┌──────────────────┐           │
│     │  Scheduled(t)    │ ───────────────────► │   Unscheduled    │ ONE_SHOT  │
│     │                  │                      └────────┬─────────┘           │
│     │                  │ ◄─── REPEATING: next aligned  │                     │
│     └──────────────────┘      boundary on completion   │                     │
│              ▲                                          │                     │
│              │  schedule_for_retry(now)                 │                     │
│              │   t' = min(t, now + retry_delay)         │                     │
│              │   or now + retry_delay when Unscheduled  │                     │
│              └──────────────────────────────────────────┘                     │
│                                                                               │
│  Success: retry_delay → base, reschedule_count → 0                           │
│  Retry:   retry_delay → min(round(retry_delay × 1.659), max), count += 1     │
│                                                                               │
│  TICKING items have no timestamp; they run every tick and are never          │
│  rescheduled.                                                                 │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cadence.errors import ExecutionError, InternalSchedulerError
from cadence.logging import get_logger
from cadence.timestamps import Clock, calendar_aligned_next_run, format_local, now_sec

from .backoff import DEFAULT_BACKOFF, RetryBackoff

logger = get_logger(__name__)

Callback = Callable[[], Any]


class ItemKind(str, Enum):
    """Tag selecting how a work item is scheduled."""

    TICKING = "ticking"        # runs on every tick
    ONE_SHOT = "one_shot"      # runs once at a timestamp
    REPEATING = "repeating"    # runs on calendar-aligned interval boundaries


@dataclass(eq=False)
class WorkItem:
    """A unit of scheduled work.

    Attributes:
        id: Unique id within its scheduler container
        callback: Zero-argument callable; may return an awaitable
        kind: Scheduling variant
        next_run: Epoch seconds of the next run, None when Unscheduled
        interval_seconds: Repeat interval (REPEATING only)
        backoff: Retry delay policy (deadline kinds only)
        retry_delay: Delay applied by the next ``schedule_for_retry``
        reschedule_count: Retries since the last success
        consecutive_failures: Failed runs since the last success
    """

    id: str
    callback: Callback = field(repr=False)
    kind: ItemKind = ItemKind.TICKING
    next_run: int | None = None
    interval_seconds: int | None = None
    backoff: RetryBackoff = field(default=DEFAULT_BACKOFF, repr=False)
    retry_delay: int = field(init=False)
    reschedule_count: int = field(default=0, init=False)
    consecutive_failures: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.retry_delay = self.backoff.base_delay

    # === Identity ===

    def identity(self) -> str:
        return self.id

    def __str__(self) -> str:
        match self.kind:
            case ItemKind.TICKING:
                return f"{self.id}, repeatable every 1s"
            case ItemKind.ONE_SHOT:
                return f"{self.id}: scheduled={format_local(self.next_run)}"
            case ItemKind.REPEATING:
                minutes = (self.interval_seconds or 0) / 60
                return (
                    f"{self.id}: scheduled={format_local(self.next_run)}, "
                    f"repeatable every {minutes:g}m"
                )

    # === State ===

    @property
    def is_deadline(self) -> bool:
        """True for kinds that live in the deadline queue."""
        return self.kind is not ItemKind.TICKING

    @property
    def is_scheduled(self) -> bool:
        return self.is_deadline and self.next_run is not None

    def sort_key(self) -> tuple[int, str]:
        """Deadline queue ordering: ``(next_run, id)`` ascending."""
        if self.next_run is None:
            raise InternalSchedulerError(f"Unscheduled item has no ordering key: {self.id}")
        return (self.next_run, self.id)

    # === Execution ===

    async def run(self, clock: Clock) -> Any:
        """Invoke the callback and apply the completion transition.

        Synchronous raises and failed awaitables end in the same place:
        the failure is logged with the item id, the completion transition
        runs, and an :class:`ExecutionError` chained to the original
        exception is raised to the caller.

        A ``CancelledError`` raised by the callback itself counts as a
        failure. Cancellation of the task running the item propagates
        untouched and leaves the item's schedule as it was.
        """
        try:
            result = self.callback()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError as e:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            raise self._failed(clock, e) from e
        except Exception as e:
            raise self._failed(clock, e) from e

        self._complete(clock, succeeded=True)
        return result

    def _failed(self, clock: Clock, error: BaseException) -> ExecutionError:
        self._complete(clock, succeeded=False)
        logger.error(
            "item_failed",
            item_id=self.id,
            item_kind=self.kind.value,
            consecutive_failures=self.consecutive_failures,
            error=repr(error),
        )
        return ExecutionError(f"{self.id} failed: {error!r}", cause=error).with_context(
            item_id=self.id,
            item_kind=self.kind.value,
            reschedule_count=self.reschedule_count,
        )

    def _complete(self, clock: Clock, *, succeeded: bool) -> None:
        if succeeded:
            self.consecutive_failures = 0
        else:
            self.consecutive_failures += 1

        match self.kind:
            case ItemKind.TICKING:
                pass
            case ItemKind.ONE_SHOT:
                if succeeded:
                    self._reset_backoff()
                self.next_run = None
            case ItemKind.REPEATING:
                if succeeded:
                    self._reset_backoff()
                now = now_sec(clock)
                self.next_run = calendar_aligned_next_run(
                    now, self.interval_seconds, clock.tz_offset_seconds(now)
                )

    def _reset_backoff(self) -> None:
        self.retry_delay = self.backoff.base_delay
        self.reschedule_count = 0

    def schedule_for_retry(self, now: int) -> None:
        """Reschedule after a failed run, never later than a pending run."""
        if not self.is_deadline:
            raise InternalSchedulerError(f"Ticking items are never rescheduled: {self.id}")

        retry_at = now + self.retry_delay
        original_next_run = format_local(self.next_run)
        if self.next_run is None:
            self.next_run = retry_at
        else:
            self.next_run = min(self.next_run, retry_at)

        self.retry_delay = self.backoff.next_delay(self.retry_delay)
        self.reschedule_count += 1

        logger.warning(
            "item_rescheduled",
            item_id=self.id,
            reschedule_count=self.reschedule_count,
            original_next_run=original_next_run,
            next_run=format_local(self.next_run),
            next_retry_delay=self.retry_delay,
        )


# === Constructors ===


def ticking_item(item_id: str, callback: Callback) -> WorkItem:
    """Item run on every tick."""
    return WorkItem(id=item_id, callback=callback, kind=ItemKind.TICKING)


def one_shot_item(
    item_id: str,
    callback: Callback,
    at: int,
    backoff: RetryBackoff = DEFAULT_BACKOFF,
) -> WorkItem:
    """Item run once at epoch ``at`` (retried on failure)."""
    return WorkItem(
        id=item_id,
        callback=callback,
        kind=ItemKind.ONE_SHOT,
        next_run=at,
        backoff=backoff,
    )


def repeating_item(
    item_id: str,
    callback: Callback,
    interval_seconds: int,
    clock: Clock,
    backoff: RetryBackoff = DEFAULT_BACKOFF,
) -> WorkItem:
    """Item run on every local wall-clock boundary of ``interval_seconds``."""
    now = now_sec(clock)
    return WorkItem(
        id=item_id,
        callback=callback,
        kind=ItemKind.REPEATING,
        next_run=calendar_aligned_next_run(now, interval_seconds, clock.tz_offset_seconds(now)),
        interval_seconds=interval_seconds,
        backoff=backoff,
    )
