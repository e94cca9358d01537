"""GET /api/stats: dashboard counters."""

from fastapi import APIRouter, Depends

from backend.deps import get_services
from blogagent.jobs.models import JobStats
from blogagent.services import Services

router = APIRouter()


@router.get("/stats", response_model=JobStats)
async def stats(services: Services = Depends(get_services)):
    return services.jobs.stats()
