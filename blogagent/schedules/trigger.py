"""Cron-style trigger: turn due schedules into queued generation jobs."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from blogagent.jobs.models import JobListFilter, StepStatus, utcnow
from blogagent.jobs.store import JobStore
from blogagent.schedules.models import Schedule, ScheduleRunResult
from blogagent.schedules.store import ScheduleStore
from blogagent.schedules.topics import TopicResolver
from blogagent.workflow.executor import WorkflowExecutor
from blogagent.workflow.runner import JobRunner

logger = logging.getLogger(__name__)


class ScheduleTrigger:
    def __init__(
        self,
        job_store: JobStore,
        schedule_store: ScheduleStore,
        executor: WorkflowExecutor,
        runner: JobRunner,
        topics: TopicResolver,
    ):
        self._jobs = job_store
        self._schedules = schedule_store
        self._executor = executor
        self._runner = runner
        self._topics = topics

    async def run_due(self, now: datetime | None = None) -> list[ScheduleRunResult]:
        """Enqueue one job per due schedule. A failing schedule does not stop the others."""
        now = now or utcnow()
        due = self._schedules.list_due(now)
        if due:
            logger.info("Running %d due schedule(s)", len(due))
        return [await self.run_schedule(s, now) for s in due]

    async def run_schedule(self, schedule: Schedule, now: datetime | None = None) -> ScheduleRunResult:
        now = now or utcnow()
        try:
            recent = [j.topic for j in self._jobs.list(JobListFilter(limit=20)).jobs]
            topic = await asyncio.to_thread(self._topics.next_topic, schedule, recent)
            job = self._jobs.create(
                topic,
                schedule.category,
                schedule.template,
                target_reader=schedule.target_reader,
                keywords=schedule.keywords,
                auto_approve=schedule.auto_approve,
                schedule_id=schedule.id,
            )
            self._jobs.append_progress(
                job.id, "init", StepStatus.PROGRESS,
                f"Scheduled run: {schedule.name}",
                {"schedule_id": schedule.id, "auto_approve": schedule.auto_approve},
            )
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            logger.error("Schedule %s (%s) failed: %s", schedule.id, schedule.name, message)
            self._record_run(schedule, None, success=False, error=message, now=now)
            return ScheduleRunResult(
                schedule_id=schedule.id, schedule_name=schedule.name, success=False, error=message[:500]
            )

        job_id = job.id
        self._runner.launch(job_id, lambda: self._executor.run_generation(job_id), "generation")
        self._record_run(schedule, job_id, success=True, now=now)
        logger.info("Schedule %s queued job %s: %s", schedule.name, job_id, topic)
        return ScheduleRunResult(
            schedule_id=schedule.id, schedule_name=schedule.name, success=True, job_id=job_id, topic=topic
        )

    def _record_run(
        self,
        schedule: Schedule,
        job_id: str | None,
        success: bool,
        now: datetime,
        error: str | None = None,
    ) -> None:
        # The job (if any) is already queued; bookkeeping errors only get logged.
        try:
            self._schedules.mark_as_run(schedule.id, job_id, success=success, error=error, now=now)
        except Exception:
            logger.exception("Could not record run of schedule %s (%s)", schedule.id, schedule.name)

    async def run_forever(self, interval: float = 60.0) -> None:
        """In-process scheduler loop; cancel the task to stop it."""
        logger.info("Scheduler loop started (every %.0fs)", interval)
        while True:
            try:
                await self.run_due()
            except Exception:
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(interval)
