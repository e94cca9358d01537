"""Generation job schema, status table and progress log entries."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    RESEARCH = "research"
    WRITING = "writing"
    REVIEW = "review"
    HUMAN_REVIEW = "human_review"
    ON_HOLD = "on_hold"
    CREATING = "creating"
    CREATE_FILE = "createFile"
    VALIDATING = "validating"
    PENDING_DEPLOY = "pending_deploy"
    DEPLOYING = "deploying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


class Category(str, Enum):
    TECH = "tech"
    LIFE = "life"


class Template(str, Enum):
    DEFAULT = "default"
    TUTORIAL = "tutorial"
    COMPARISON = "comparison"
    DEEP_DIVE = "deep-dive"
    TIPS = "tips"


class StepStatus(str, Enum):
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Statuses in which some step may still be executing or a gate is waiting.
ACTIVE_STATUSES = tuple(s for s in JobStatus if s not in TERMINAL_STATUSES)

# Display labels (UI) kept apart from the machine values.
STATUS_LABELS: dict[JobStatus, str] = {
    JobStatus.QUEUED: "Queued",
    JobStatus.RESEARCH: "Researching",
    JobStatus.WRITING: "Writing draft",
    JobStatus.REVIEW: "AI review",
    JobStatus.HUMAN_REVIEW: "Waiting for review",
    JobStatus.ON_HOLD: "On hold",
    JobStatus.CREATING: "Refining content",
    JobStatus.CREATE_FILE: "Creating file",
    JobStatus.VALIDATING: "Validating",
    JobStatus.PENDING_DEPLOY: "Waiting for deploy approval",
    JobStatus.DEPLOYING: "Opening pull request",
    JobStatus.COMPLETED: "Completed",
    JobStatus.FAILED: "Failed",
}

# Nominal progress per status; failed keeps whatever progress it had.
STATUS_PROGRESS: dict[JobStatus, int] = {
    JobStatus.QUEUED: 0,
    JobStatus.RESEARCH: 10,
    JobStatus.WRITING: 25,
    JobStatus.REVIEW: 40,
    JobStatus.HUMAN_REVIEW: 50,
    JobStatus.ON_HOLD: 50,
    JobStatus.CREATING: 60,
    JobStatus.CREATE_FILE: 70,
    JobStatus.VALIDATING: 80,
    JobStatus.PENDING_DEPLOY: 90,
    JobStatus.DEPLOYING: 95,
    JobStatus.COMPLETED: 100,
}

# Allowed forward transitions of the state graph.
TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RESEARCH}),
    JobStatus.RESEARCH: frozenset({JobStatus.WRITING}),
    JobStatus.WRITING: frozenset({JobStatus.REVIEW}),
    JobStatus.REVIEW: frozenset({JobStatus.HUMAN_REVIEW}),
    JobStatus.HUMAN_REVIEW: frozenset({JobStatus.CREATING, JobStatus.WRITING, JobStatus.ON_HOLD}),
    JobStatus.ON_HOLD: frozenset({JobStatus.HUMAN_REVIEW}),
    JobStatus.CREATING: frozenset({JobStatus.CREATE_FILE}),
    JobStatus.CREATE_FILE: frozenset({JobStatus.VALIDATING}),
    JobStatus.VALIDATING: frozenset({JobStatus.PENDING_DEPLOY}),
    JobStatus.PENDING_DEPLOY: frozenset({JobStatus.DEPLOYING, JobStatus.COMPLETED}),
    JobStatus.DEPLOYING: frozenset({JobStatus.COMPLETED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Edge of the state graph, failure, or re-entry of the same active status."""
    if current.is_terminal:
        return False
    if target == JobStatus.FAILED or target == current:
        return True
    return target in TRANSITIONS[current]


class Job(BaseModel):
    """Blog generation job, persisted so any process can pick it up."""

    id: str = ""
    topic: str
    category: Category = Category.TECH
    template: Template | None = None
    tone: str | None = None
    target_reader: str | None = None
    keywords: list[str] = Field(default_factory=list)

    status: JobStatus = JobStatus.QUEUED
    current_step: str = JobStatus.QUEUED.value
    progress: int = Field(default=0, ge=0, le=100)

    research_data: dict[str, Any] | None = None
    draft_content: str | None = None
    review_result: dict[str, Any] | None = None
    final_content: str | None = None
    metadata: dict[str, Any] | None = None
    validation_result: dict[str, Any] | None = None
    filepath: str | None = None
    commit_hash: str | None = None
    pr_result: dict[str, Any] | None = None
    thumbnail_data: dict[str, Any] | None = None

    # None = pending, True = approved, False = sent back with feedback
    human_approval: bool | None = None
    human_feedback: str | None = None

    error: str | None = None
    auto_approve: bool = False
    schedule_id: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProgressLogEntry(BaseModel):
    """One immutable step-level event for a job. ``seq`` orders entries per job."""

    seq: int = 0
    job_id: str = ""
    step: str
    status: StepStatus = StepStatus.PROGRESS
    message: str = ""
    data: dict[str, Any] | None = None
    created_at: datetime = Field(default_factory=utcnow)


class JobListFilter(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    status: JobStatus | None = None
    category: Category | None = None
    search: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class JobPage(BaseModel):
    jobs: list[Job] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class JobStats(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending_reviews: int = 0
    in_progress: int = 0
    success_rate: int = 0


def compute_stats(statuses: list[JobStatus]) -> JobStats:
    """Aggregate counts from a list of job statuses."""
    completed = sum(1 for s in statuses if s == JobStatus.COMPLETED)
    failed = sum(1 for s in statuses if s == JobStatus.FAILED)
    pending = sum(1 for s in statuses if s == JobStatus.HUMAN_REVIEW)
    finished = completed + failed
    return JobStats(
        total=len(statuses),
        completed=completed,
        failed=failed,
        pending_reviews=pending,
        in_progress=len(statuses) - finished,
        success_rate=round(completed / finished * 100) if finished else 0,
    )
