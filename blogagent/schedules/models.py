"""Recurring generation schedules."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from blogagent.jobs.models import Category, Template, utcnow


class TopicSource(str, Enum):
    MANUAL = "manual"
    RSS = "rss"
    AI_SUGGEST = "ai_suggest"


class Schedule(BaseModel):
    id: str = Field(default_factory=lambda: f"sch_{uuid.uuid4().hex[:12]}")
    name: str
    description: str | None = None

    topic_source: TopicSource = TopicSource.MANUAL
    topic_list: list[str] = Field(default_factory=list)
    topic_index: int = 0
    rss_url: str | None = None
    ai_prompt: str | None = None

    category: Category = Category.TECH
    template: Template | None = None
    target_reader: str | None = None
    keywords: list[str] = Field(default_factory=list)
    auto_approve: bool = False

    cron_expression: str = "0 9 * * *"
    timezone: str = "Asia/Seoul"
    enabled: bool = True

    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    last_job_id: str | None = None
    run_count: int = 0
    error_count: int = 0
    last_error: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def active_topics(self) -> list[str]:
        """Manual topics with blank entries dropped; the rotation indexes this list."""
        return [t.strip() for t in self.topic_list if t.strip()]


class ScheduleRunResult(BaseModel):
    schedule_id: str
    schedule_name: str = ""
    success: bool
    job_id: str | None = None
    topic: str | None = None
    error: str | None = None
