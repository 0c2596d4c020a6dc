"""Scheduler package for cadence.

Manifesto:
    Recurring work in a long-lived process needs more than ``asyncio.sleep()``
    in a loop. A sleeping timer may be paused across suspend, a failing job
    should back off instead of hammering its dependency, and a job meant for
    "every day" should land on local midnight, not 24h after the process
    happened to start. This package keeps all of that in one loop.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CADENCE SCHEDULER                                                            │
│                                                                               │
│  - Ticking items: run on every 1-second tick, failures retried next tick     │
│  - One-shot items: run once at a timestamp, backoff-retried until success    │
│  - Repeating items: run on calendar-aligned interval boundaries              │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from cadence import Scheduler, events                              │   │
│  │                                                                      │   │
│  │   scheduler = Scheduler()                                            │   │
│  │   events.repeat(scheduler, "poll", poll)               # every tick  │   │
│  │   events.repeat(scheduler, "report", report, minutes=1440)           │   │
│  │   events.once(scheduler, "warmup", warmup, seconds=30)               │   │
│  │   await scheduler.run_forever()                                      │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Sharing one implicit global scheduler
    ✅ Construct a ``Scheduler`` and pass it to registration call sites
    ❌ Cancelling a pending item by reaching into the queue
    ✅ Re-register the same id to supersede it

Tags:
    cadence, scheduling, tick-loop, backoff, calendar-alignment
"""

from __future__ import annotations

from .backoff import DEFAULT_BACKOFF, RetryBackoff
from .health import SchedulerHealthReport, check_scheduler_health, check_tick_interval_stability
from .items import Callback, ItemKind, WorkItem, one_shot_item, repeating_item, ticking_item
from .loop_backend import LoopTimerBackend
from .protocol import BackendHealth, TickCallback, TimerBackend
from .queue import SENTINEL_ID, DeadlineQueue
from .scheduler import Scheduler, SchedulerHealth, SchedulerStats

__all__ = [
    # Items
    "Callback",
    "ItemKind",
    "WorkItem",
    "ticking_item",
    "one_shot_item",
    "repeating_item",
    # Backoff
    "RetryBackoff",
    "DEFAULT_BACKOFF",
    # Queue
    "DeadlineQueue",
    "SENTINEL_ID",
    # Backends
    "TimerBackend",
    "TickCallback",
    "BackendHealth",
    "LoopTimerBackend",
    # Scheduler
    "Scheduler",
    "SchedulerStats",
    "SchedulerHealth",
    # Health
    "check_scheduler_health",
    "check_tick_interval_stability",
    "SchedulerHealthReport",
]
