"""
Cadence - in-process tick scheduler with backoff retry.

- cadence.scheduling: work items, deadline queue, scheduler, timer backends
- cadence.events: registration façade (repeat / once / at)
- cadence.errors, cadence.logging, cadence.settings: ambient stack
"""

from cadence import events
from cadence.errors import (
    CadenceError,
    ConfigurationError,
    ExecutionError,
    InternalSchedulerError,
)
from cadence.scheduling import (
    ItemKind,
    RetryBackoff,
    Scheduler,
    WorkItem,
    check_scheduler_health,
)
from cadence.settings import CadenceSettings, get_settings
from cadence.timestamps import EPOCH_FUTURE, SystemClock, now_sec

__version__ = "0.1.0"

__all__ = [
    "events",
    "CadenceError",
    "ConfigurationError",
    "ExecutionError",
    "InternalSchedulerError",
    "ItemKind",
    "RetryBackoff",
    "Scheduler",
    "WorkItem",
    "check_scheduler_health",
    "CadenceSettings",
    "get_settings",
    "EPOCH_FUTURE",
    "SystemClock",
    "now_sec",
    "__version__",
]
