"""
Shared pytest fixtures and configuration for cadence tests.

This module provides:
- A controllable FakeClock so tick tests never depend on the wall clock
- A ManualBackend that records start/stop without arming real timers
- Settings/logging isolation between tests

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    async def test_something(scheduler, clock):
        clock.set(2000)
        await scheduler.tick()
"""

import os
import sys
from pathlib import Path

import pytest
import structlog

# Ensure cadence package and tests._support are importable
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from cadence.scheduling import Scheduler
from cadence.settings import CadenceSettings, clear_settings_cache
from tests._support.doubles import FakeClock, ManualBackend


@pytest.fixture
def clock() -> FakeClock:
    """Clock at epoch 1000, UTC."""
    return FakeClock(1000)


@pytest.fixture
def settings() -> CadenceSettings:
    """Default settings, isolated from any .env file."""
    return CadenceSettings(_env_file=None)


@pytest.fixture
def backend() -> ManualBackend:
    return ManualBackend()


@pytest.fixture
def scheduler(settings, clock, backend) -> Scheduler:
    """Scheduler driven by the fake clock and manual backend."""
    return Scheduler(settings=settings, clock=clock, backend=backend)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Reset cached settings, CADENCE_ env vars and structlog around each test."""
    for key in list(os.environ):
        if key.startswith("CADENCE_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.reset_defaults()


@pytest.fixture
def recorder():
    """Callback factory that records call order across items."""

    class Recorder:
        def __init__(self):
            self.calls: list[str] = []

        def ok(self, name: str):
            def callback():
                self.calls.append(name)
                return name

            return callback

        def failing(self, name: str, exc: Exception | None = None):
            def callback():
                self.calls.append(name)
                raise exc or RuntimeError(f"{name} failed")

            return callback

        def async_ok(self, name: str):
            async def callback():
                self.calls.append(name)
                return name

            return callback

        def async_failing(self, name: str):
            async def callback():
                self.calls.append(name)
                raise RuntimeError(f"{name} failed")

            return callback

    return Recorder()
