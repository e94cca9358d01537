"""Service container built once at start-up and passed to the API and CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from blogagent.config import Settings
from blogagent.errors import InvalidInputError
from blogagent.jobs.models import Category, Job, StepStatus, Template
from blogagent.jobs.store import JobStore, get_job_store
from blogagent.llm import provider_from_settings
from blogagent.schedules.store import ScheduleStore, get_schedule_store
from blogagent.schedules.topics import TopicResolver
from blogagent.schedules.trigger import ScheduleTrigger
from blogagent.tools import BlogToolkit, build_source_control
from blogagent.tools.base import ContentTools, SourceControl
from blogagent.workflow.executor import WorkflowExecutor
from blogagent.workflow.gates import GateController
from blogagent.workflow.runner import JobRunner
from blogagent.workflow.stream import ProgressStreamPublisher

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    jobs: JobStore
    schedules: ScheduleStore
    runner: JobRunner
    executor: WorkflowExecutor
    gates: GateController
    stream: ProgressStreamPublisher
    trigger: ScheduleTrigger

    def create_job(
        self,
        topic: str,
        category: Category | str = Category.TECH,
        template: Template | str | None = None,
        **options: Any,
    ) -> Job:
        """Persist a queued job and launch generation in the background."""
        topic = (topic or "").strip()
        if not topic:
            raise InvalidInputError("topic is required")
        job = self.jobs.create(topic, category, template, **options)
        self.jobs.append_progress(
            job.id, "init", StepStatus.PROGRESS, "Job created",
            {"auto_approve": job.auto_approve},
        )
        job_id = job.id
        self.runner.launch(job_id, lambda: self.executor.run_generation(job_id), "generation")
        logger.info("Created job %s: %s", job_id, topic)
        return job


def build_services(
    settings: Settings,
    *,
    jobs: JobStore | None = None,
    schedules: ScheduleStore | None = None,
    tools: ContentTools | None = None,
    source_control: SourceControl | None = None,
    topics: TopicResolver | None = None,
) -> Services:
    jobs = jobs or get_job_store(settings)
    schedules = schedules or get_schedule_store(settings)
    runner = JobRunner()
    executor = WorkflowExecutor(
        jobs,
        tools or BlogToolkit(settings),
        source_control or build_source_control(settings),
        step_timeout=settings.blog_step_timeout_seconds,
    )
    topics = topics or TopicResolver(llm_factory=lambda: provider_from_settings(settings))
    return Services(
        settings=settings,
        jobs=jobs,
        schedules=schedules,
        runner=runner,
        executor=executor,
        gates=GateController(jobs, executor, runner),
        stream=ProgressStreamPublisher(
            jobs,
            poll_interval=settings.blog_stream_poll_interval,
            keepalive_interval=settings.blog_stream_keepalive_seconds,
        ),
        trigger=ScheduleTrigger(jobs, schedules, executor, runner, topics),
    )
