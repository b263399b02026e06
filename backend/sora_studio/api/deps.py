from __future__ import annotations
"""Shared FastAPI dependencies: HTTP client, credentials, orchestrator."""

import httpx
from fastapi import Depends
from starlette.requests import HTTPConnection

from sora_studio.config import get_settings
from sora_studio.errors import ValidationError
from sora_studio.schemas.generation import Credentials
from sora_studio.services.orchestrator import GenerationOrchestrator


def resolve_credentials(authorization: str | None) -> Credentials:
    """Bearer token from the caller, else the configured SORA_API_KEY."""
    key = ""
    if authorization and authorization.lower().startswith("bearer "):
        key = authorization[7:].strip()
    key = key or get_settings().SORA_API_KEY
    if not key:
        raise ValidationError("api_key", "API key is required")
    return Credentials(api_key=key)


def get_credentials(conn: HTTPConnection) -> Credentials:
    return resolve_credentials(conn.headers.get("authorization"))


def get_http_client(conn: HTTPConnection) -> httpx.AsyncClient:
    return conn.app.state.http_client


def get_orchestrator(
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> GenerationOrchestrator:
    return GenerationOrchestrator.from_settings(get_settings(), http_client=http_client)
