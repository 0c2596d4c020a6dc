"""Scheduler health checks.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER HEALTH MONITORING                                                  │
│                                                                               │
│  1. Backend Health:  is the tick timer armed?                                │
│  2. Tick Health:     did a tick happen recently?                             │
│  3. Overdue Items:   are deadline items waiting long past their next run?    │
│                      (a slow callback is holding up the sequential queue)    │
│  4. Failure Rate:    are deadline callbacks mostly failing?                  │
│  5. Internal Errors: has the tick pipeline itself raised?                    │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cadence.timestamps import now_sec

if TYPE_CHECKING:
    from .scheduler import Scheduler


@dataclass
class SchedulerHealthReport:
    """Complete scheduler health report."""

    healthy: bool
    checks: dict[str, bool] = field(default_factory=dict)
    backend: dict[str, Any] = field(default_factory=dict)
    items: dict[str, int] = field(default_factory=dict)
    timing: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "healthy": self.healthy,
            "checks": self.checks,
            "backend": self.backend,
            "items": self.items,
            "timing": self.timing,
            "warnings": self.warnings,
            "errors": self.errors,
        }


def check_scheduler_health(
    scheduler: Scheduler,
    tick_age_threshold_seconds: float = 5.0,
    overdue_threshold_seconds: int = 60,
) -> SchedulerHealthReport:
    """Comprehensive scheduler health check.

    Args:
        scheduler: Scheduler to check
        tick_age_threshold_seconds: Max age of last tick before warning
        overdue_threshold_seconds: How late a deadline item may be before warning

    Returns:
        SchedulerHealthReport with all checks
    """
    report = SchedulerHealthReport(healthy=True)
    now = now_sec(scheduler.clock)

    # === Backend Health ===
    backend_health = scheduler.backend.health()
    report.backend = backend_health
    is_healthy = scheduler.is_running and backend_health.get("healthy", False)
    report.checks["backend_running"] = is_healthy
    if not is_healthy:
        report.errors.append("Scheduler is not running")

    # === Tick Health ===
    stats = scheduler.get_stats()
    if stats.last_tick:
        tick_age = now - stats.last_tick.timestamp()
        report.timing["last_tick_age_seconds"] = tick_age
        report.timing["last_tick"] = stats.last_tick.isoformat()

        tick_ok = tick_age < tick_age_threshold_seconds
        report.checks["tick_recent"] = tick_ok
        if not tick_ok:
            report.warnings.append(
                f"Last tick was {tick_age:.1f}s ago (threshold: {tick_age_threshold_seconds}s)"
            )
    else:
        report.checks["tick_recent"] = False
        if scheduler.is_running:
            report.warnings.append("No ticks recorded yet")

    report.timing["tick_count"] = stats.tick_count

    # === Overdue Items ===
    pending = scheduler.pending()
    overdue = [item.id for item in pending if item.next_run < now - overdue_threshold_seconds]
    report.checks["no_overdue_items"] = not overdue
    if overdue:
        report.warnings.append(f"Overdue deadline items: {', '.join(overdue)}")

    report.items["deadline"] = len(pending)
    report.items["ticking"] = len(scheduler.ticking())
    report.items["retrying"] = sum(1 for item in pending if item.reschedule_count > 0)
    report.items["overdue"] = len(overdue)

    # === Failure Rate ===
    if stats.deadline_runs > 10 and stats.deadline_failures / stats.deadline_runs > 0.1:
        report.warnings.append(
            f"High failure rate: {stats.deadline_failures}/{stats.deadline_runs} "
            f"({stats.deadline_failures / stats.deadline_runs * 100:.1f}%)"
        )

    # === Internal Errors ===
    report.checks["no_internal_errors"] = stats.internal_errors == 0
    if stats.internal_errors:
        report.errors.append(
            f"{stats.internal_errors} internal scheduler error(s), last: {stats.last_error}"
        )

    if report.errors:
        report.healthy = False

    return report


def check_tick_interval_stability(
    tick_times: list[float],
    expected_interval: float = 1.0,
    tolerance: float = 0.5,
) -> dict[str, Any]:
    """Analyze tick interval stability.

    Args:
        tick_times: Epoch timestamps of consecutive ticks
        expected_interval: Expected interval in seconds
        tolerance: Acceptable deviation as fraction (0.5 = 50%)

    Returns:
        Analysis result with jitter and stability metrics
    """
    if len(tick_times) < 2:
        return {
            "stable": True,
            "samples": len(tick_times),
            "message": "Insufficient data",
        }

    intervals = [tick_times[i] - tick_times[i - 1] for i in range(1, len(tick_times))]

    avg = sum(intervals) / len(intervals)
    variance = sum((x - avg) ** 2 for x in intervals) / len(intervals)
    std_dev = variance ** 0.5

    jitter_pct = (std_dev / expected_interval) * 100

    max_deviation = max(abs(x - expected_interval) for x in intervals)
    stable = max_deviation <= expected_interval * tolerance

    return {
        "stable": stable,
        "samples": len(intervals),
        "avg_interval": avg,
        "expected_interval": expected_interval,
        "std_dev": std_dev,
        "jitter_pct": jitter_pct,
        "max_deviation": max_deviation,
        "min_interval": min(intervals),
        "max_interval": max(intervals),
    }
