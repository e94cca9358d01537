"""Progress stream publisher: a live, ordered view of one job.

A subscription starts with a snapshot of the current job state, then tails the
progress log by sequence number. Reconnecting simply opens a new subscription,
which re-reads current state; nothing is buffered beyond the Job Store.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Literal

from pydantic import BaseModel, Field

from blogagent.errors import NotFoundError
from blogagent.jobs.models import Job, JobStatus, ProgressLogEntry
from blogagent.jobs.store import JobStore

logger = logging.getLogger(__name__)

EventType = Literal["progress", "review-required", "complete", "error", "keepalive"]
TERMINAL_EVENTS = ("complete", "error")


class StreamEvent(BaseModel):
    type: EventType
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_sse(self) -> str:
        if self.type == "keepalive":
            return ": keepalive\n\n"
        payload = json.dumps({"type": self.type, **self.data}, ensure_ascii=False, default=str)
        return f"data: {payload}\n\n"


def progress_event(job: Job, entry: ProgressLogEntry | None = None) -> StreamEvent:
    data: dict[str, Any] = {
        "job_status": job.status.value,
        "status_label": job.status.label,
        "current_step": job.current_step,
        "progress": job.progress,
    }
    if entry is not None:
        data.update(
            seq=entry.seq,
            step=entry.step,
            status=entry.status.value,
            message=entry.message,
            data=entry.data,
            timestamp=entry.created_at.isoformat(),
        )
    else:
        data.update(step=job.current_step, status="progress", message=job.status.label)
    return StreamEvent(type="progress", data=data)


def state_event(job: Job, last_entry: ProgressLogEntry | None = None) -> StreamEvent | None:
    """Event announcing a gate or a terminal state, if the job is at one."""
    if job.status == JobStatus.HUMAN_REVIEW:
        return StreamEvent(
            type="review-required",
            data={
                "job_status": job.status.value,
                "draft_content": job.draft_content,
                "review_result": job.review_result,
            },
        )
    if job.status == JobStatus.COMPLETED:
        return StreamEvent(
            type="complete",
            data={
                "job_status": job.status.value,
                "filepath": job.filepath,
                "pr_result": job.pr_result,
                "commit_hash": job.commit_hash,
                "metadata": job.metadata,
            },
        )
    if job.status == JobStatus.FAILED:
        step = last_entry.step if last_entry is not None else job.current_step
        return StreamEvent(
            type="error",
            data={"job_status": job.status.value, "message": job.error or "Job failed", "step": step},
        )
    return None


class ProgressStreamPublisher:
    def __init__(self, store: JobStore, poll_interval: float = 0.5, keepalive_interval: float = 15.0):
        self._store = store
        self._poll_interval = poll_interval
        self._keepalive_interval = keepalive_interval

    def open(self, job_id: str) -> AsyncIterator[StreamEvent]:
        """Check the job exists (raises NotFoundError) and return its event iterator."""
        job = self._store.get(job_id)
        return self._events(job)

    async def _events(self, job: Job) -> AsyncIterator[StreamEvent]:
        entries = self._store.list_progress(job.id)
        last_seq = entries[-1].seq if entries else 0
        last_entry = entries[-1] if entries else None

        yield progress_event(job, last_entry)
        event = state_event(job, last_entry)
        if event is not None:
            yield event
            if event.is_terminal:
                return

        last_status = job.status
        last_sent = time.monotonic()
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                # Job before log: entries written ahead of a terminal status
                # update are then guaranteed to be in the read below.
                job = self._store.get(job.id)
            except NotFoundError:
                yield StreamEvent(type="error", data={"message": "Job was deleted", "step": None})
                return
            for entry in self._store.list_progress(job.id, after_seq=last_seq):
                last_seq = entry.seq
                last_entry = entry
                yield progress_event(job, entry)
                last_sent = time.monotonic()

            if job.status != last_status:
                last_status = job.status
                event = state_event(job, last_entry)
                if event is not None:
                    if event.is_terminal:
                        # Entries appended right after the status change.
                        for entry in self._store.list_progress(job.id, after_seq=last_seq):
                            last_seq = entry.seq
                            last_entry = entry
                            yield progress_event(job, entry)
                        yield event
                        return
                    yield event
                    last_sent = time.monotonic()
            elif time.monotonic() - last_sent >= self._keepalive_interval:
                yield StreamEvent(type="keepalive")
                last_sent = time.monotonic()
