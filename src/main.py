"""SmartCoach API — FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import Settings, get_settings
from src.middleware.request_logging import RequestLoggingMiddleware
from src.routers import automation, fitrockr, health, message, notify, schedule
from src.services.coaching import CoachingServices, build_services
from src.services.database import close_pool, init_pool

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("smartcoach")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    services: CoachingServices = app.state.services
    logger.info(
        "Starting SmartCoach API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    if settings.database_url:
        await init_pool(settings)
    else:
        logger.warning("DATABASE_URL not set; identity lookups will fall back to raw refs")

    services.scheduler.start()
    startup_sweep: asyncio.Task | None = None
    if settings.start_automation:
        services.scheduler.schedule_daily_sweep(
            services.pipeline.run_sweep, settings.sweep_hour, settings.sweep_minute
        )
        startup_sweep = asyncio.create_task(services.pipeline.run_sweep())
        logger.info(
            "Automation enabled: sweep now and daily at %02d:%02d",
            settings.sweep_hour,
            settings.sweep_minute,
        )

    yield

    if startup_sweep is not None and not startup_sweep.done():
        startup_sweep.cancel()
    services.scheduler.shutdown()
    await close_pool()
    logger.info("SmartCoach API shut down")


# ---------- App factory ----------

def create_app(
    settings: Settings | None = None,
    services: CoachingServices | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger("smartcoach").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="SmartCoach API",
        description=(
            "Daily health coaching: wearable summaries from Fitrockr, "
            "generated messages, and scheduled push notifications."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    # ---------- Middleware (outermost first) ----------

    app.add_middleware(RequestLoggingMiddleware)

    # CORS innermost so it can handle preflight
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (always at /health) ----------
    app.include_router(health.router)

    # ---------- API routes ----------
    api_prefix = "/api"

    app.include_router(schedule.router, prefix=api_prefix)
    app.include_router(message.router, prefix=api_prefix)
    app.include_router(notify.router, prefix=api_prefix)
    app.include_router(automation.router, prefix=api_prefix)
    app.include_router(fitrockr.router, prefix=api_prefix)

    return app


app = create_app()
