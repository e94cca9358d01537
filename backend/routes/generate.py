"""POST /api/generate: create a job and start generation in the background."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from backend.deps import get_services
from blogagent.schemas.api import GenerateRequest, GenerateResponse
from blogagent.services import Services

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate(body: GenerateRequest, services: Services = Depends(get_services)):
    """Returns immediately; follow progress on ``stream_url``."""
    job = services.create_job(
        body.topic,
        body.category,
        body.template,
        tone=body.tone,
        target_reader=body.target_reader,
        keywords=body.keywords,
        auto_approve=body.auto_approve,
    )
    return GenerateResponse(
        job_id=job.id,
        status=job.status,
        stream_url=f"/api/jobs/{job.id}/stream",
    )
