"""Gate transitions shared by the gate controller and the executor."""

from __future__ import annotations

from blogagent.jobs.models import Job, JobStatus, StepStatus
from blogagent.jobs.store import JobStore


def approve_review(store: JobStore, job_id: str, feedback: str | None = None, auto: bool = False) -> Job:
    """human_review -> creating. Raises InvalidStateError from any other status."""
    fields: dict = {"status": JobStatus.CREATING, "human_approval": True}
    if feedback:
        fields["human_feedback"] = feedback
    job = store.update(job_id, fields, expected_status=JobStatus.HUMAN_REVIEW)
    store.append_progress(
        job_id,
        "human_review",
        StepStatus.COMPLETED,
        "Auto-approved (scheduled job)" if auto else "Human review: approve",
        {"action": "approve", "auto": auto},
    )
    return job
