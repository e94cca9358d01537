"""FastAPI backend for the blog generation agent."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from blogagent.config import get_settings
from blogagent.errors import InvalidInputError, InvalidStateError, NotFoundError
from blogagent.services import Services, build_services

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class HealthResponse(BaseModel):
    status: str
    data_dir: str
    active_jobs: int = 0


def create_app(services: Services | None = None) -> FastAPI:
    """Build the app. ``services`` is injected by tests; otherwise built on start-up."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(get_settings())
        svc: Services = app.state.services
        scheduler = None
        if svc.settings.blog_scheduler_enabled:
            scheduler = asyncio.create_task(
                svc.trigger.run_forever(svc.settings.blog_scheduler_interval_seconds)
            )
        yield
        if scheduler is not None:
            scheduler.cancel()
            with suppress(asyncio.CancelledError):
                await scheduler
        await svc.runner.shutdown()

    app = FastAPI(
        title="Blog Agent API",
        description="AI blog post generation with human review and deploy gates.",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    # -----------------------------------------------------------------------
    # Error mapping
    # -----------------------------------------------------------------------
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(request: Request, exc: InvalidStateError):
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "current_status": exc.current_status},
        )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # -----------------------------------------------------------------------
    # CORS
    # -----------------------------------------------------------------------
    settings = services.settings if services else get_settings()
    logger.info("CORS configured for origins: %s", settings.cors_origin_list)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------
    @app.get("/health", response_model=HealthResponse)
    @app.get("/api/health", response_model=HealthResponse)
    async def health(request: Request):
        """Health check endpoint."""
        svc: Services = request.app.state.services
        return HealthResponse(
            status="ok",
            data_dir=str(svc.settings.data_dir),
            active_jobs=len(svc.runner.active_jobs),
        )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    from backend.routes import cron, generate, jobs, review, stats

    app.include_router(generate.router, prefix="/api", tags=["generate"])
    app.include_router(jobs.router, prefix="/api", tags=["jobs"])
    app.include_router(review.router, prefix="/api", tags=["review"])
    app.include_router(stats.router, prefix="/api", tags=["stats"])
    app.include_router(cron.router, prefix="/api", tags=["cron"])
    return app


app = create_app()
