from __future__ import annotations
"""Sora Studio: FastAPI application entry point.

Mounts the video API and status WebSocket, owns the shared HTTP client,
and maps orchestration errors onto HTTP responses.
"""

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sora_studio.api.router import api_router
from sora_studio.api.ws import router as ws_router
from sora_studio.config import get_settings
from sora_studio.errors import (
    ImageConformError,
    InvalidStateError,
    RemoteError,
    TransportError,
    ValidationError,
)
from sora_studio.schemas.api import ErrorResponse

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: open the shared HTTP client, close it on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info("Video API: %s (key configured: %s)", settings.SORA_API_BASE, bool(settings.SORA_API_KEY))

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
    app.state.http_client = httpx.AsyncClient(timeout=settings.SORA_HTTP_TIMEOUT)

    yield

    await app.state.http_client.aclose()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title="Sora Studio API",
    description="Reference-image conformance, job submission, status polling and asset download for Sora video generation",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

# CORS: allow frontend dev server (configurable via CORS_ORIGINS env)
_cors_origins = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router)
app.include_router(ws_router)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

def _error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return _error_response(400, ErrorResponse(error=exc.reason, field=exc.field))


@app.exception_handler(InvalidStateError)
async def _invalid_state(request: Request, exc: InvalidStateError):
    return _error_response(409, ErrorResponse(error=str(exc)))


@app.exception_handler(RemoteError)
async def _remote_error(request: Request, exc: RemoteError):
    logger.warning("Remote API error on %s: %s", request.url.path, exc)
    return _error_response(502, ErrorResponse(error=exc.message, remote_status=exc.status))


@app.exception_handler(TransportError)
async def _transport_error(request: Request, exc: TransportError):
    logger.warning("Transport error on %s: %s", request.url.path, exc)
    return _error_response(504, ErrorResponse(error=str(exc)))


@app.exception_handler(ImageConformError)
async def _conform_error(request: Request, exc: ImageConformError):
    return _error_response(422, ErrorResponse(error=str(exc)))


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"service": settings.APP_NAME, "status": "running"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "api_base": settings.SORA_API_BASE,
        "api_key_configured": bool(settings.SORA_API_KEY),
    }
