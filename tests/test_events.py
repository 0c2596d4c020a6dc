"""Tests for the repeat/once/at registration façade."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from cadence import events
from cadence.errors import ConfigurationError, ErrorCategory
from cadence.scheduling.items import ItemKind
from cadence.scheduling.queue import SENTINEL_ID
from cadence.timestamps import EPOCH_FUTURE


class TestRepeat:
    """events.repeat()"""

    def test_zero_minutes_is_ticking(self, scheduler, recorder):
        item = events.repeat(scheduler, "poll", recorder.ok("poll"))
        assert item.kind is ItemKind.TICKING
        assert scheduler.ticking() == [item]

    def test_positive_minutes_is_calendar_aligned(self, scheduler, clock, recorder):
        t0 = 3600 * 100 + 1000
        clock.set(t0)
        item = events.repeat(scheduler, "hourly", recorder.ok("hourly"), minutes=60)

        assert item.kind is ItemKind.REPEATING
        assert item.interval_seconds == 3600
        assert item.next_run == t0 + 2600

    def test_fractional_minutes_round_to_seconds(self, scheduler, recorder):
        item = events.repeat(scheduler, "fast", recorder.ok("fast"), minutes=0.5)
        assert item.interval_seconds == 30

    def test_negative_minutes_rejected(self, scheduler, recorder):
        with pytest.raises(ConfigurationError) as exc_info:
            events.repeat(scheduler, "bad", recorder.ok("bad"), minutes=-1)

        assert exc_info.value.category is ErrorCategory.CONFIG
        assert exc_info.value.context.item_id == "bad"
        assert "bad" not in scheduler

    def test_sub_second_interval_rejected(self, scheduler, recorder):
        with pytest.raises(ConfigurationError):
            events.repeat(scheduler, "tiny", recorder.ok("tiny"), minutes=0.001)

    def test_uses_scheduler_backoff(self, settings, clock, backend, recorder):
        from cadence.scheduling import Scheduler
        from cadence.settings import CadenceSettings

        custom = Scheduler(
            settings=CadenceSettings(_env_file=None, retry_base_seconds=2, retry_max_seconds=60),
            clock=clock,
            backend=backend,
        )
        item = events.repeat(custom, "r", recorder.ok("r"), minutes=5)
        assert item.retry_delay == 2


class TestOnce:
    """events.once()"""

    def test_seconds_from_now(self, scheduler, recorder):
        item = events.once(scheduler, "a", recorder.ok("a"), seconds=10)
        assert item.kind is ItemKind.ONE_SHOT
        assert item.next_run == 1010

    def test_minutes_and_seconds_combine(self, scheduler, recorder):
        item = events.once(scheduler, "a", recorder.ok("a"), minutes=2, seconds=5)
        assert item.next_run == 1125

    def test_defaults_to_now(self, scheduler, recorder):
        assert events.once(scheduler, "a", recorder.ok("a")).next_run == 1000

    @pytest.mark.parametrize("seconds,expected", [(2.5, 1003), (1.5, 1002), (2.4, 1002)])
    def test_half_seconds_round_up(self, scheduler, recorder, seconds, expected):
        assert events.once(scheduler, "a", recorder.ok("a"), seconds=seconds).next_run == expected

    def test_negative_delay_is_already_due(self, scheduler, recorder):
        assert events.once(scheduler, "a", recorder.ok("a"), seconds=-30).next_run == 970


class TestAt:
    """events.at()"""

    def test_epoch_seconds(self, scheduler, recorder):
        item = events.at(scheduler, "a", recorder.ok("a"), 1_900_000_000)
        assert item.next_run == 1_900_000_000

    def test_aware_datetime(self, scheduler, recorder):
        when = datetime(2030, 1, 1, tzinfo=UTC)
        item = events.at(scheduler, "a", recorder.ok("a"), when)
        assert item.next_run == int(when.timestamp())

    def test_non_utc_datetime(self, scheduler, recorder):
        when = datetime(2030, 1, 1, 2, tzinfo=timezone(timedelta(hours=2)))
        item = events.at(scheduler, "a", recorder.ok("a"), when)
        assert item.next_run == int(datetime(2030, 1, 1, tzinfo=UTC).timestamp())

    def test_naive_datetime_rejected(self, scheduler, recorder):
        with pytest.raises(ConfigurationError, match="timezone-aware"):
            events.at(scheduler, "a", recorder.ok("a"), datetime(2030, 1, 1))


class TestValidation:
    """Arguments shared by every entry point."""

    @pytest.mark.parametrize("item_id", ["", None, 42, SENTINEL_ID])
    def test_bad_ids_rejected(self, scheduler, recorder, item_id):
        with pytest.raises(ConfigurationError):
            events.repeat(scheduler, item_id, recorder.ok("x"))
        assert len(scheduler) == 0

    def test_non_callable_rejected(self, scheduler):
        with pytest.raises(ConfigurationError, match="not callable"):
            events.once(scheduler, "a", "not a function")

    def test_reregistration_replaces_across_entry_points(self, scheduler, recorder):
        events.once(scheduler, "job", recorder.ok("job"), seconds=100)
        events.at(scheduler, "job", recorder.ok("job"), 1050)

        assert [item.next_run for item in scheduler.pending()] == [1050]


class TestRunTimeLimits:
    """Run times must fit before the far-future limit and in a datetime."""

    @pytest.mark.parametrize("when", [10**12, EPOCH_FUTURE, -(10**13)])
    def test_at_out_of_range_rejected(self, scheduler, recorder, when):
        with pytest.raises(ConfigurationError) as exc_info:
            events.at(scheduler, "far", recorder.ok("far"), when)

        assert exc_info.value.context.item_id == "far"
        assert "far" not in scheduler
        assert len(scheduler) == 0

    def test_once_far_future_rejected(self, scheduler, recorder):
        with pytest.raises(ConfigurationError):
            events.once(scheduler, "far", recorder.ok("far"), seconds=1e12)
        assert "far" not in scheduler

    def test_datetime_past_limit_rejected(self, scheduler, recorder):
        with pytest.raises(ConfigurationError):
            events.at(scheduler, "far", recorder.ok("far"), datetime(9999, 1, 1, tzinfo=UTC))

    def test_huge_interval_rejected(self, scheduler, recorder):
        with pytest.raises(ConfigurationError):
            events.repeat(scheduler, "far", recorder.ok("far"), minutes=10**9)
        assert "far" not in scheduler

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_values_rejected(self, scheduler, recorder, value):
        with pytest.raises(ConfigurationError):
            events.once(scheduler, "a", recorder.ok("a"), seconds=value)
        with pytest.raises(ConfigurationError):
            events.at(scheduler, "a", recorder.ok("a"), value)
        with pytest.raises(ConfigurationError):
            events.repeat(scheduler, "a", recorder.ok("a"), minutes=value)
        assert len(scheduler) == 0

    def test_last_second_before_limit_accepted(self, scheduler, recorder):
        item = events.at(scheduler, "edge", recorder.ok("edge"), EPOCH_FUTURE - 1)
        assert scheduler.pending() == [item]
