"""
Root Typer application for the cadence CLI.

Developer tooling around the scheduler: inspect the retry ladder, preview
calendar-aligned runs, show settings, and run a short live heartbeat.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any

import typer
from typer import Typer

from cadence.cli.utils import err_console, output_dict, output_rows

app = Typer(
    name="cadence",
    help="cadence: in-process tick scheduler with backoff retry.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from cadence import __version__

        try:
            v = pkg_version("cadence-scheduler")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"cadence {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """cadence CLI: inspect backoff, aligned runs, settings; run a heartbeat."""


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("backoff")
def backoff(
    steps: int = typer.Option(12, "--steps", "-n", min=1, help="Number of retries to show"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the retry delay ladder for consecutive failures."""
    from cadence.scheduling import RetryBackoff
    from cadence.settings import get_settings

    policy = RetryBackoff.from_settings(get_settings())
    rows = []
    elapsed = 0
    for failures, delay in enumerate(policy.ladder(steps), start=1):
        elapsed += delay
        rows.append({"failure": failures, "retry_in_s": delay, "elapsed_s": elapsed})
    output_rows(rows, as_json=json_out, title="Retry backoff")


@app.command("next-run")
def next_run(
    minutes: float = typer.Argument(..., help="Repeat interval in minutes"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of runs to show"),
    tz_offset: int | None = typer.Option(
        None, "--tz-offset", help="Local offset in seconds west of UTC (default: system)"
    ),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Preview the calendar-aligned runs of a repeating item."""
    from cadence.timestamps import calendar_aligned_next_run, format_local, local_tz_offset, now_sec

    interval = round(minutes * 60)
    if interval <= 0:
        err_console.print(f"[bold red]Error[/bold red]: interval must be positive, got {minutes} minutes")
        raise typer.Exit(code=1)

    at = now_sec()
    rows = []
    for _ in range(count):
        offset = tz_offset if tz_offset is not None else local_tz_offset(at)
        at = calendar_aligned_next_run(at, interval, offset)
        rows.append({"epoch": at, "local": format_local(at)})
    output_rows(rows, as_json=json_out, title=f"Every {minutes:g}m")


@app.command("config")
def show_config(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the effective settings."""
    from cadence.settings import get_settings

    output_dict(get_settings(), as_json=json_out, title="Settings")


@app.command("heartbeat")
def heartbeat(
    seconds: int = typer.Option(8, "--seconds", "-s", min=1, help="How long to run"),
    fail_once: bool = typer.Option(
        True, "--fail-once/--no-fail-once", help="Register a one-shot item that fails once"
    ),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a live scheduler with a ticking heartbeat and report on it."""
    from cadence.logging import configure_logging
    from cadence.settings import get_settings

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    result = asyncio.run(_run_heartbeat(seconds, fail_once))
    output_dict(result, as_json=json_out, title="Heartbeat")


async def _run_heartbeat(seconds: int, fail_once: bool) -> dict[str, Any]:
    from cadence import events
    from cadence.scheduling import Scheduler, check_scheduler_health, check_tick_interval_stability

    scheduler = Scheduler()
    beats: list[float] = []
    attempts = 0

    def beat() -> None:
        beats.append(scheduler.clock.time())

    def flaky() -> None:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("first attempt fails")

    async with scheduler:
        events.repeat(scheduler, "heartbeat", beat)
        if fail_once:
            events.once(scheduler, "flaky", flaky, seconds=1)
        await asyncio.sleep(seconds)
        report = check_scheduler_health(scheduler)

    return {
        "ticks": len(beats),
        "flaky_attempts": attempts,
        "stats": asdict(scheduler.get_stats()),
        "stability": check_tick_interval_stability(
            beats, scheduler.settings.tick_interval_seconds
        ),
        "health": report.to_dict(),
    }


if __name__ == "__main__":
    app()
