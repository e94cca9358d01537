"""Job queries, deletion, content and thumbnail edits, hold/resume and the progress stream.

GET    /api/jobs                 list (page, limit, status, category, search)
GET    /api/jobs/recent          most recent jobs
GET    /api/jobs/{id}            job + progress log
DELETE /api/jobs/{id}
PATCH  /api/jobs/{id}/content    edit content while in human_review
POST   /api/jobs/{id}/hold       human_review -> on_hold
DELETE /api/jobs/{id}/hold       on_hold -> human_review
POST   /api/jobs/{id}/thumbnail  regenerate (optional custom prompt)
POST   /api/jobs/{id}/thumbnail/upload  replace with an uploaded PNG, JPEG or WebP
GET    /api/jobs/{id}/stream     server-sent events
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from backend.deps import get_services
from blogagent.jobs.models import Category, Job, JobListFilter, JobStatus
from blogagent.schemas.api import (
    ContentUpdateRequest,
    JobDetailResponse,
    JobListResponse,
    Pagination,
    StatusResponse,
    ThumbnailRequest,
    ThumbnailResponse,
)
from blogagent.services import Services

router = APIRouter()


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: JobStatus | None = None,
    category: Category | None = None,
    search: str | None = None,
    services: Services = Depends(get_services),
):
    result = services.jobs.list(
        JobListFilter(page=page, limit=limit, status=status, category=category, search=search or None)
    )
    return JobListResponse(
        jobs=result.jobs,
        pagination=Pagination(
            page=result.page, limit=result.limit, total=result.total, total_pages=result.total_pages
        ),
    )


@router.get("/jobs/recent", response_model=list[Job])
async def recent_jobs(limit: int = Query(5, ge=1, le=50), services: Services = Depends(get_services)):
    return services.jobs.list(JobListFilter(limit=limit)).jobs


@router.get("/jobs/{job_id}", response_model=JobDetailResponse)
async def get_job(job_id: str, services: Services = Depends(get_services)):
    job = services.jobs.get(job_id)
    return JobDetailResponse(job=job, progress_logs=services.jobs.list_progress(job_id))


@router.delete("/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(job_id: str, services: Services = Depends(get_services)):
    services.jobs.delete(job_id)


@router.patch("/jobs/{job_id}/content", response_model=Job)
async def update_content(job_id: str, body: ContentUpdateRequest, services: Services = Depends(get_services)):
    return services.gates.edit_content(job_id, body.final_content, body.metadata)


@router.post("/jobs/{job_id}/hold", response_model=StatusResponse)
async def hold_job(job_id: str, services: Services = Depends(get_services)):
    job = services.gates.hold(job_id)
    return StatusResponse(status=job.status)


@router.delete("/jobs/{job_id}/hold", response_model=StatusResponse)
async def resume_job(job_id: str, services: Services = Depends(get_services)):
    job = services.gates.resume(job_id)
    return StatusResponse(status=job.status)


@router.post("/jobs/{job_id}/thumbnail", response_model=ThumbnailResponse)
async def regenerate_thumbnail(
    job_id: str, body: ThumbnailRequest | None = None, services: Services = Depends(get_services)
):
    thumbnail = await services.gates.regenerate_thumbnail(job_id, body.prompt if body else None)
    return ThumbnailResponse(thumbnail_data=thumbnail.image_base64, mime_type=thumbnail.mime_type, path=thumbnail.path)


@router.post("/jobs/{job_id}/thumbnail/upload", response_model=ThumbnailResponse)
async def upload_thumbnail(
    job_id: str,
    file: UploadFile = File(..., description="PNG, JPEG or WebP image, at most 5 MB"),
    services: Services = Depends(get_services),
):
    data = await file.read()
    thumbnail = services.gates.upload_thumbnail(job_id, data, file.content_type)
    return ThumbnailResponse(thumbnail_data=thumbnail.image_base64, mime_type=thumbnail.mime_type, path=thumbnail.path)


@router.get("/jobs/{job_id}/stream")
async def stream_job(job_id: str, services: Services = Depends(get_services)):
    """SSE feed: progress, review-required, complete, error. Ends on complete/error."""
    events = services.stream.open(job_id)

    async def body():
        async for event in events:
            yield event.to_sse()

    return StreamingResponse(
        body(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
