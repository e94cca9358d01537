"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from blogagent.jobs.models import Category, Job, JobStatus, ProgressLogEntry, Template
from blogagent.schedules.models import ScheduleRunResult


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    """Body for POST /api/generate."""

    topic: str
    category: Category = Category.TECH
    template: Template | None = None
    tone: str | None = None
    target_reader: str | None = None
    keywords: list[str] = Field(default_factory=list)
    auto_approve: bool = False


class ReviewRequest(BaseModel):
    """Body for POST /api/human-review/{job_id}. ``action``: approve | feedback | rewrite."""

    action: str
    feedback: str | None = None


class DeployRequest(BaseModel):
    """Body for POST /api/deploy/{job_id}. ``action``: approve | reject | skip."""

    action: str


class ContentUpdateRequest(BaseModel):
    """Body for PATCH /api/jobs/{job_id}/content."""

    final_content: str
    metadata: dict[str, Any] | None = None


class ThumbnailRequest(BaseModel):
    """Body for POST /api/jobs/{job_id}/thumbnail; without a prompt the default image prompt is used."""

    prompt: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class GenerateResponse(BaseModel):
    job_id: str
    status: JobStatus
    stream_url: str


class ReviewResponse(BaseModel):
    success: bool = True
    next_step: JobStatus


class StatusResponse(BaseModel):
    success: bool = True
    status: JobStatus


class ThumbnailResponse(BaseModel):
    success: bool = True
    thumbnail_data: str
    mime_type: str
    path: str


class JobDetailResponse(BaseModel):
    job: Job
    progress_logs: list[ProgressLogEntry] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class JobListResponse(BaseModel):
    jobs: list[Job] = Field(default_factory=list)
    pagination: Pagination


class CronRunResponse(BaseModel):
    processed: int = 0
    results: list[ScheduleRunResult] = Field(default_factory=list)
