"""Recurring schedules that enqueue generation jobs."""

from blogagent.schedules.cron import CronExpression, next_run_at
from blogagent.schedules.models import Schedule, ScheduleRunResult, TopicSource
from blogagent.schedules.store import FileScheduleStore, PostgresScheduleStore, ScheduleStore, get_schedule_store
from blogagent.schedules.topics import TopicResolver
from blogagent.schedules.trigger import ScheduleTrigger

__all__ = [
    "CronExpression",
    "next_run_at",
    "Schedule",
    "ScheduleRunResult",
    "TopicSource",
    "ScheduleStore",
    "FileScheduleStore",
    "PostgresScheduleStore",
    "get_schedule_store",
    "TopicResolver",
    "ScheduleTrigger",
]
