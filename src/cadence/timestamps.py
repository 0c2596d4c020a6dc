"""
Time source and timestamp utilities (stdlib-only).

The scheduler works in whole epoch seconds. Everything that needs "now"
goes through a :class:`Clock` so hosts and tests can substitute their own
time source.

Features:
    - **Clock protocol:** ``time()`` plus ``tz_offset_seconds(at)``
    - **SystemClock:** wall clock, optional pinned offset
    - **EPOCH_FUTURE:** a timestamp in 2096, used as "never due"
    - **calendar_aligned_next_run():** next wall-clock boundary of an interval
    - **date/epoch conversion:** ``date_to_sec()``, ``sec_to_date()``, ``format_local()``

Offsets follow the sign convention of ``time.timezone``: seconds WEST of
UTC, so ``epoch - offset`` is local wall-clock seconds.

Tags:
    timestamps, clock, timezone, epoch, cadence, stdlib-only
"""

from __future__ import annotations

import math
import time
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

# Some time in year 2096
EPOCH_FUTURE = 4_000_000_000


@runtime_checkable
class Clock(Protocol):
    """Wall-clock time source."""

    def time(self) -> float:
        """Current epoch time in (fractional) seconds."""
        ...

    def tz_offset_seconds(self, at: int) -> int:
        """Local offset at epoch ``at``, in seconds west of UTC."""
        ...


class SystemClock:
    """The process wall clock.

    Args:
        tz_offset_seconds: Pin the local offset instead of reading it from
            the system time zone (seconds west of UTC).
    """

    def __init__(self, tz_offset_seconds: int | None = None) -> None:
        self._tz_offset = tz_offset_seconds

    def time(self) -> float:
        return time.time()

    def tz_offset_seconds(self, at: int) -> int:
        if self._tz_offset is not None:
            return self._tz_offset
        return local_tz_offset(at)


def now_sec(clock: Clock | None = None) -> int:
    """Current epoch time in whole seconds."""
    return math.floor((clock or _SYSTEM_CLOCK).time())


def local_tz_offset(at: int) -> int:
    """System local offset at epoch ``at``, seconds west of UTC.

    Resolved per timestamp so daylight-saving transitions are followed.
    """
    utcoffset = datetime.fromtimestamp(at).astimezone().utcoffset()
    return -int(utcoffset.total_seconds()) if utcoffset is not None else 0


def calendar_aligned_next_run(now: int, interval_seconds: int, tz_offset_seconds: int) -> int:
    """Next boundary of ``interval_seconds`` in local wall-clock time.

    A 24h interval lands on local midnight, 60 minutes on the top of the
    hour. The result is always strictly after ``now``.

    >>> calendar_aligned_next_run(3600 + 1000, 3600, 0)
    7200
    """
    return now + interval_seconds - ((now - tz_offset_seconds) % interval_seconds)


def date_to_sec(dt: datetime) -> int:
    """Epoch seconds of an aware datetime."""
    return math.floor(dt.timestamp())


def sec_to_date(sec: int) -> datetime:
    """Aware UTC datetime for epoch seconds."""
    return datetime.fromtimestamp(sec, UTC)


def format_local(sec: int | None) -> str:
    """Local ``YYYY-MM-DD HH:MM:SS`` rendering, or ``never`` for None."""
    if sec is None:
        return "never"
    try:
        return datetime.fromtimestamp(sec).strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, OverflowError, OSError):
        # Outside the platform's datetime range
        return str(sec)


_SYSTEM_CLOCK = SystemClock()


__all__ = [
    "EPOCH_FUTURE",
    "Clock",
    "SystemClock",
    "now_sec",
    "local_tz_offset",
    "calendar_aligned_next_run",
    "date_to_sec",
    "sec_to_date",
    "format_local",
]
