"""Timer backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMER BACKEND PROTOCOL                                                       │
│                                                                               │
│  Backends control WHEN ticks happen; the Scheduler controls WHAT happens on  │
│  each tick.                                                                   │
│                                                                               │
│   ┌─────────────────┐       tick()       ┌──────────────────────────┐        │
│   │  LoopTimer      │ ─────────────────► │  Scheduler               │        │
│   │  Backend        │                    │                          │        │
│   │  (asyncio,      │                    │  - pop due deadlines     │        │
│   │   second-       │                    │  - run ticking items     │        │
│   │   aligned)      │                    │  - run deadlines in order│        │
│   └─────────────────┘                    │  - retry / re-insert     │        │
│                                          └──────────────────────────┘        │
│                                                                               │
│  A backend must rearm after every tick, whatever the tick callback did.     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[None]]


@runtime_checkable
class TimerBackend(Protocol):
    """Protocol for pluggable tick timing backends.

    Example (custom backend):
        >>> class ManualBackend:
        ...     name = "manual"
        ...
        ...     def start(self, tick_callback, interval_seconds=1.0):
        ...         self._callback = tick_callback
        ...
        ...     async def stop(self, wait=True):
        ...         pass
        ...
        ...     def health(self) -> dict:
        ...         return {"healthy": True, "backend": "manual"}
    """

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 1.0,
    ) -> None:
        """Arm the first tick.

        Args:
            tick_callback: Async function to call on each tick.
            interval_seconds: Tick cadence; ticks land on multiples of it.
        """
        ...

    async def stop(self, wait: bool = True) -> None:
        """Disarm the timer.

        Args:
            wait: Wait for an in-flight tick to settle. Must be False when
                called from inside a tick.
        """
        ...

    def health(self) -> dict[str, Any]:
        """Return backend health status.

        Returns:
            dict with at least:
                - healthy: bool - whether backend is running
                - backend: str - backend name
                - tick_count: int - number of ticks executed
                - last_tick: str | None - ISO timestamp of last tick
        """
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    drift_ms: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "drift_ms": self.drift_ms,
            **self.extra,
        }
