from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from media_gate.api.dependencies import reset_dependency_caches
from media_gate.api.health import health as _health_handler
from media_gate.api.routers.media import router as media_router
from media_gate.metrics import MetricsMiddleware, metrics_app
from media_gate.startup_validation import validate_startup

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigurationFatal propagates and aborts startup.
    validate_startup()
    logger.info("media gate started")
    try:
        yield
    finally:
        reset_dependency_caches()


app = FastAPI(lifespan=lifespan)

allow = os.getenv("CORS_ALLOW_ORIGINS", "http://localhost,http://127.0.0.1").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in allow if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Expires-At"],
)

app.add_middleware(MetricsMiddleware)

app.include_router(media_router)
app.add_api_route(
    "/health",
    _health_handler,
    methods=["GET"],
    response_model=None,
    tags=["health"],
)


_metrics_router = APIRouter()


@_metrics_router.get("/metrics", include_in_schema=False)
async def _metrics_endpoint(request: Request):
    return await metrics_app(request)


app.include_router(_metrics_router)
