"""Tests for cron expression parsing and next-run computation."""

from datetime import datetime, timezone

import pytest

from blogagent.schedules.cron import CronExpression, CronField, next_run_at

UTC = timezone.utc


class TestCronField:

    def test_wildcard_step(self):
        assert CronField("*/15", 0, 59, "minute").values == {0, 15, 30, 45}

    def test_list_and_range(self):
        assert CronField("1,3,10-12", 0, 59, "minute").values == {1, 3, 10, 11, 12}

    def test_start_with_step(self):
        assert CronField("5/20", 0, 59, "minute").values == {5, 25, 45}

    @pytest.mark.parametrize("expr", ["60", "-1", "a", "5-1", "*/0", "1,,2"])
    def test_invalid(self, expr):
        with pytest.raises(ValueError):
            CronField(expr, 0, 59, "minute")


class TestCronExpression:

    def test_requires_five_fields(self):
        with pytest.raises(ValueError):
            CronExpression("0 9 * *")

    def test_sunday_as_seven(self):
        expr = CronExpression("0 9 * * 7")
        # 2026-01-18 is a Sunday
        assert expr.matches(datetime(2026, 1, 18, 9, 0))
        assert not expr.matches(datetime(2026, 1, 19, 9, 0))

    def test_day_fields_are_ored_when_both_restricted(self):
        expr = CronExpression("0 0 1 * 1")
        assert expr.matches(datetime(2026, 1, 1, 0, 0))   # the 1st (Thursday)
        assert expr.matches(datetime(2026, 1, 5, 0, 0))   # a Monday
        assert not expr.matches(datetime(2026, 1, 6, 0, 0))

    def test_impossible_date(self):
        with pytest.raises(ValueError):
            CronExpression("0 0 31 2 *").next_run(datetime(2026, 1, 1, tzinfo=UTC))


class TestNextRun:

    def test_daily_in_seoul(self):
        after = datetime(2026, 1, 15, 0, 30, tzinfo=UTC)  # 09:30 KST
        assert next_run_at("0 9 * * *", "Asia/Seoul", after) == datetime(2026, 1, 16, 0, 0, tzinfo=UTC)

    def test_strictly_after(self):
        after = datetime(2026, 1, 15, 10, 0, tzinfo=UTC)
        assert next_run_at("0 10 * * *", "UTC", after) == datetime(2026, 1, 16, 10, 0, tzinfo=UTC)

    def test_every_30_minutes(self):
        after = datetime(2026, 1, 15, 10, 5, 42, tzinfo=UTC)
        assert next_run_at("*/30 * * * *", "UTC", after) == datetime(2026, 1, 15, 10, 30, tzinfo=UTC)

    def test_weekdays_skip_weekend(self):
        # Friday 2026-01-16 09:00 UTC -> next weekday 08:00 is Monday
        after = datetime(2026, 1, 16, 9, 0, tzinfo=UTC)
        assert next_run_at("0 8 * * 1-5", "UTC", after) == datetime(2026, 1, 19, 8, 0, tzinfo=UTC)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError):
            next_run_at("0 9 * * *", "Mars/Olympus", datetime(2026, 1, 1, tzinfo=UTC))
