"""asyncio timer backend with wall-clock alignment.

This is the DEFAULT backend. Instead of a single long timer (which an OS may
pause across sleep/suspend), it arms a short timer to the next boundary of
the tick interval, runs the tick, and re-arms. Each delay is recomputed from
the wall clock, so drift never accumulates.

┌──────────────────────────────────────────────────────────────────────────────┐
│  LOOP TIMER BACKEND                                                           │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   _arm():  loop.call_later(interval_ms - now_ms % interval_ms, _fire)        │
│      ▲                                   │                                    │
│      │                                   ▼                                    │
│      │                    _fire(): create_task(_run_tick())                   │
│      │                                   │                                    │
│      │                                   ▼                                    │
│      │                    await tick_callback()                               │
│      │                    except Exception: log "tick_failed"                 │
│      └──────────── finally: _arm()  (unless stopped)                          │
│                                                                               │
│   stop():  cancel pending timer, await the in-flight tick                     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import math
from datetime import UTC, datetime
from typing import Any

from cadence.logging import get_logger
from cadence.timestamps import Clock, SystemClock

from .protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class LoopTimerBackend:
    """Second-aligned tick timer on the running asyncio event loop.

    Example:
        >>> backend = LoopTimerBackend()
        >>>
        >>> async def my_tick():
        ...     print("Tick!")
        ...
        >>> backend.start(my_tick)      # inside a running loop
        >>> # ... later ...
        >>> await backend.stop()
    """

    name = "asyncio"

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._callback: TickCallback | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None
        self._interval_ms = 1000
        self._expected_at: float | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._drift_ms: float | None = None
        self._started = False

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 1.0,
    ) -> None:
        """Arm the first tick on the running loop.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        if self._started:
            logger.warning("backend_already_started", backend=self.name)
            return

        self._loop = asyncio.get_running_loop()
        self._callback = tick_callback
        self._interval_ms = max(1, round(interval_seconds * 1000))
        self._started = True
        logger.info("backend_started", backend=self.name, interval_seconds=interval_seconds)
        self._arm()

    def delay_until_next_tick(self) -> float:
        """Seconds from now to the next interval boundary."""
        now_ms = math.floor(self._clock.time() * 1000)
        return (self._interval_ms - now_ms % self._interval_ms) / 1000

    def _arm(self) -> None:
        delay = self.delay_until_next_tick()
        self._expected_at = self._clock.time() + delay
        self._handle = self._loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if not self._started:
            return
        self._task = self._loop.create_task(self._run_tick())

    async def _run_tick(self) -> None:
        fired_at = self._clock.time()
        self._tick_count += 1
        self._last_tick = datetime.fromtimestamp(fired_at, UTC)
        if self._expected_at is not None:
            self._drift_ms = (fired_at - self._expected_at) * 1000

        try:
            await self._callback()
        except Exception as e:
            logger.exception("tick_failed", backend=self.name, error=repr(e))
        finally:
            self._task = None
            if self._started:
                self._arm()

    async def stop(self, wait: bool = True) -> None:
        """Disarm and, with ``wait``, let the in-flight tick settle."""
        if not self._started:
            return

        self._started = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        task = self._task
        if wait and task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        logger.info("backend_stopped", backend=self.name, tick_count=self._tick_count)

    def health(self) -> dict[str, Any]:
        """Return backend health status."""
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        """Return structured health status."""
        return BackendHealth(
            healthy=self._started,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            drift_ms=self._drift_ms,
            extra={"interval_seconds": self._interval_ms / 1000},
        )

    @property
    def is_running(self) -> bool:
        return self._started

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick
