"""Registration façade: ``repeat``, ``once`` and ``at``.

Each entry point validates its arguments, builds the matching work item and
hands it to the given scheduler. Invalid arguments raise
:class:`~cadence.errors.ConfigurationError` before anything is registered.
Registering an id that is already pending replaces the pending item.

Examples:
    >>> from cadence import Scheduler, events
    >>> scheduler = Scheduler()
    >>> events.repeat(scheduler, "heartbeat", send_heartbeat)          # every tick
    >>> events.repeat(scheduler, "refresh-token", refresh, minutes=30)  # :00 and :30
    >>> events.once(scheduler, "warmup", warm_cache, seconds=10)
    >>> events.at(scheduler, "report", build_report, 1_900_000_000)
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import datetime

from cadence.errors import ConfigurationError
from cadence.scheduling.backoff import round_half_up
from cadence.scheduling.items import (
    Callback,
    WorkItem,
    one_shot_item,
    repeating_item,
    ticking_item,
)
from cadence.scheduling.queue import SENTINEL_ID
from cadence.scheduling.scheduler import Scheduler
from cadence.timestamps import EPOCH_FUTURE, date_to_sec, now_sec, sec_to_date


def _validate(item_id: str, callback: Callback) -> None:
    if not isinstance(item_id, str) or not item_id:
        raise ConfigurationError(f"Item id must be a non-empty string: {item_id!r}")
    if item_id == SENTINEL_ID:
        raise ConfigurationError(f"Item id is reserved: {item_id!r}")
    if not callable(callback):
        raise ConfigurationError(f"Callback for {item_id!r} is not callable: {callback!r}").with_context(
            item_id=item_id
        )


def _whole_seconds(item_id: str, value: float, rounding: Callable[[float], int] = round_half_up) -> int:
    if not math.isfinite(value):
        raise ConfigurationError(f"Not a finite number of seconds: {value!r}").with_context(
            item_id=item_id
        )
    return rounding(value)


def _check_run_at(item_id: str, run_at: int) -> None:
    if run_at >= EPOCH_FUTURE:
        raise ConfigurationError(
            f"Run time {run_at} is not before the far-future limit {EPOCH_FUTURE}"
        ).with_context(item_id=item_id)
    try:
        sec_to_date(run_at)
    except (ValueError, OverflowError, OSError) as e:
        raise ConfigurationError(
            f"Run time {run_at} is not a representable timestamp", cause=e
        ).with_context(item_id=item_id) from e


def _register(scheduler: Scheduler, item: WorkItem) -> WorkItem:
    if item.next_run is not None:
        _check_run_at(item.id, item.next_run)
    if not scheduler.add(item):
        raise ConfigurationError(f"Scheduler rejected item: {item}").with_context(
            item_id=item.id, item_kind=item.kind.value
        )
    return item


def repeat(scheduler: Scheduler, item_id: str, callback: Callback, minutes: float = 0) -> WorkItem:
    """Run ``callback`` every tick, or every ``minutes`` on wall-clock boundaries.

    Args:
        scheduler: Scheduler to register with
        item_id: Unique id; re-registering replaces the pending item
        callback: Zero-argument callable, may return an awaitable
        minutes: 0 for every tick; > 0 for a calendar-aligned interval

    Raises:
        ConfigurationError: If ``minutes`` is negative, not finite, rounds to
            zero seconds, or puts the first run past the far-future limit.
    """
    _validate(item_id, callback)
    if minutes < 0:
        raise ConfigurationError(f"Negative minutes value: {minutes}").with_context(item_id=item_id)
    if minutes == 0:
        return _register(scheduler, ticking_item(item_id, callback))

    interval_seconds = _whole_seconds(item_id, minutes * 60)
    if interval_seconds <= 0:
        raise ConfigurationError(f"Interval shorter than one second: {minutes} minutes").with_context(
            item_id=item_id
        )
    return _register(
        scheduler,
        repeating_item(item_id, callback, interval_seconds, scheduler.clock, scheduler.backoff),
    )


def once(
    scheduler: Scheduler,
    item_id: str,
    callback: Callback,
    minutes: float = 0,
    seconds: float = 0,
) -> WorkItem:
    """Run ``callback`` once, ``minutes`` and ``seconds`` from now.

    Half seconds round up, so ``seconds=2.5`` runs 3 seconds from now.
    """
    _validate(item_id, callback)
    run_at = now_sec(scheduler.clock) + _whole_seconds(item_id, minutes * 60 + seconds)
    return _register(scheduler, one_shot_item(item_id, callback, run_at, scheduler.backoff))


def at(scheduler: Scheduler, item_id: str, callback: Callback, when: float | datetime) -> WorkItem:
    """Run ``callback`` once at an absolute time.

    Args:
        when: Epoch seconds (fractions are floored), or a timezone-aware datetime

    Raises:
        ConfigurationError: If ``when`` is a naive datetime or is not before
            the far-future limit.
    """
    _validate(item_id, callback)
    if isinstance(when, datetime):
        if when.tzinfo is None:
            raise ConfigurationError(
                "Datetime must be timezone-aware (use datetime with tzinfo, preferably UTC)"
            ).with_context(item_id=item_id)
        run_at = date_to_sec(when)
    else:
        run_at = _whole_seconds(item_id, when, rounding=math.floor)
    return _register(scheduler, one_shot_item(item_id, callback, run_at, scheduler.backoff))


__all__ = ["repeat", "once", "at"]
