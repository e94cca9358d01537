"""Human decisions: POST /api/human-review/{id} and POST /api/deploy/{id}."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.deps import get_services
from blogagent.schemas.api import DeployRequest, ReviewRequest, ReviewResponse, StatusResponse
from blogagent.services import Services

router = APIRouter()


@router.post("/human-review/{job_id}", response_model=ReviewResponse)
async def submit_review(job_id: str, body: ReviewRequest, services: Services = Depends(get_services)):
    """action: approve | feedback | rewrite (feedback text required for the last two)."""
    next_step = services.gates.submit_review(job_id, body.action, body.feedback)
    return ReviewResponse(next_step=next_step)


@router.post("/deploy/{job_id}", response_model=StatusResponse)
async def decide_deploy(job_id: str, body: DeployRequest, services: Services = Depends(get_services)):
    """action: approve (open a PR) | reject / skip (complete without a PR)."""
    return StatusResponse(status=services.gates.decide_deploy(job_id, body.action))
