"""GET|POST /api/cron: run due schedules (called by an external cron)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status

from backend.deps import get_services
from blogagent.schemas.api import CronRunResponse
from blogagent.services import Services

logger = logging.getLogger(__name__)
router = APIRouter()


def require_cron_secret(
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> None:
    secret = services.settings.cron_secret
    if secret and authorization != f"Bearer {secret}":
        logger.warning("Rejected cron call with missing or wrong secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.api_route(
    "/cron",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def run_cron(services: Services = Depends(get_services)):
    results = await services.trigger.run_due()
    return CronRunResponse(processed=len(results), results=results)
