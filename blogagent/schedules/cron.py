"""Five-field cron expressions evaluated in a schedule's timezone.

Format: minute hour day-of-month month day-of-week
Supports: *, values, ranges (1-5), lists (1,3,5), steps (*/15, 10-40/10, 5/20).
Day-of-week: 0 or 7 = Sunday. When both day fields are restricted a day
matches if either does (standard cron semantics).

Examples:
    "0 9 * * *"      -> 09:00 every day
    "*/30 * * * *"   -> every 30 minutes
    "0 8 * * 1-5"    -> 08:00 on weekdays
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MAX_SEARCH_DAYS = 366 * 5


class CronField:
    """One field of a cron expression, parsed into the set of matching values."""

    def __init__(self, expression: str, min_val: int, max_val: int, name: str) -> None:
        self.expression = expression
        self.min_val = min_val
        self.max_val = max_val
        self.name = name
        self.is_wildcard = expression.strip() == "*"
        self.values: set[int] = self._parse(expression)

    def _int(self, text: str) -> int:
        try:
            value = int(text)
        except ValueError:
            raise ValueError(f"Invalid {self.name} value {text!r} in cron field {self.expression!r}")
        if not self.min_val <= value <= self.max_val:
            raise ValueError(
                f"{self.name} value {value} out of range {self.min_val}-{self.max_val}"
            )
        return value

    def _parse(self, expr: str) -> set[int]:
        values: set[int] = set()
        for part in expr.split(","):
            part = part.strip()
            if not part:
                raise ValueError(f"Empty element in cron field {expr!r}")

            step = 1
            if "/" in part:
                part, step_str = part.split("/", 1)
                step = int(step_str) if step_str.isdigit() else 0
                if step < 1:
                    raise ValueError(f"Invalid step in cron field {expr!r}")

            if part == "*":
                start, end = self.min_val, self.max_val
            elif "-" in part:
                start_str, end_str = part.split("-", 1)
                start, end = self._int(start_str), self._int(end_str)
                if start > end:
                    raise ValueError(f"Descending range in cron field {expr!r}")
            else:
                start = self._int(part)
                # "5/20" means 5, 25, 45, ...
                end = self.max_val if step > 1 else start
            values.update(range(start, end + 1, step))
        return values

    def matches(self, value: int) -> bool:
        return value in self.values

    def __repr__(self) -> str:
        return f"CronField({self.expression!r}, values={sorted(self.values)})"


class CronExpression:
    def __init__(self, expression: str) -> None:
        self.expression = expression.strip()
        parts = self.expression.split()
        if len(parts) != 5:
            raise ValueError(
                f"Cron expression must have exactly 5 fields "
                f"(minute hour dom month dow), got {len(parts)}: {self.expression!r}"
            )
        self.minute = CronField(parts[0], 0, 59, "minute")
        self.hour = CronField(parts[1], 0, 23, "hour")
        self.day_of_month = CronField(parts[2], 1, 31, "day-of-month")
        self.month = CronField(parts[3], 1, 12, "month")
        self.day_of_week = CronField(parts[4], 0, 7, "day-of-week")
        if 7 in self.day_of_week.values:
            self.day_of_week.values.add(0)

    def _day_matches(self, d: datetime) -> bool:
        if not self.month.matches(d.month):
            return False
        # Python: Mon=0..Sun=6  ->  cron: Sun=0, Mon=1..Sat=6
        dow = self.day_of_week.matches((d.weekday() + 1) % 7)
        dom = self.day_of_month.matches(d.day)
        if self.day_of_month.is_wildcard or self.day_of_week.is_wildcard:
            return dom and dow
        return dom or dow

    def matches(self, dt: datetime) -> bool:
        """Check a datetime as-is (caller converts to the schedule timezone)."""
        return (
            self._day_matches(dt)
            and self.hour.matches(dt.hour)
            and self.minute.matches(dt.minute)
        )

    def next_run(self, after: datetime, tz: str = "UTC") -> datetime:
        """First matching minute strictly after ``after``, returned in UTC.

        ``after`` must be timezone-aware. Raises ValueError if nothing
        matches within the search window (e.g. "0 0 31 2 *").
        """
        zone = get_zone(tz)
        local = after.astimezone(zone).replace(second=0, microsecond=0, tzinfo=None) + timedelta(minutes=1)
        hours = sorted(self.hour.values)
        minutes = sorted(self.minute.values)

        day = local.replace(hour=0, minute=0)
        for _ in range(MAX_SEARCH_DAYS):
            if self._day_matches(day):
                for h in hours:
                    for m in minutes:
                        candidate = datetime.combine(day.date(), time(h, m))
                        if candidate >= local:
                            return candidate.replace(tzinfo=zone).astimezone(timezone.utc)
            day += timedelta(days=1)
        raise ValueError(f"No run time found for cron expression {self.expression!r}")


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name!r}")


def next_run_at(expression: str, tz: str, after: datetime) -> datetime:
    return CronExpression(expression).next_run(after, tz)
