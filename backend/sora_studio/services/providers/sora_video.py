"""OpenAI Sora video API provider.

Thin async wrappers over the three /videos endpoints:
  POST /videos                      → create job
  GET  /videos/{id}                 → job status
  GET  /videos/{id}/content         → binary asset

Every JSON response is classified into one of three tagged results
(``ApiSuccess``, ``ApiErrorEnvelope``, ``UnparseableBody``) so callers
handle each error path explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from sora_studio.errors import RemoteError, TransportError
from sora_studio.schemas.generation import AssetVariant, Credentials
from sora_studio.schemas.sora import ErrorEnvelope

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60.0


# ---------------------------------------------------------------------------
# Tagged response variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ApiSuccess:
    status: int
    payload: dict[str, Any]


@dataclass(frozen=True)
class ApiErrorEnvelope:
    status: int
    message: str


@dataclass(frozen=True)
class UnparseableBody:
    status: int
    text: str


ApiResult = Union[ApiSuccess, ApiErrorEnvelope, UnparseableBody]


def parse_response(response: httpx.Response) -> ApiResult:
    """Classify a JSON response without raising."""
    try:
        data = response.json()
    except ValueError:
        return UnparseableBody(response.status_code, response.text[:500])

    if response.is_success:
        if isinstance(data, dict):
            return ApiSuccess(response.status_code, data)
        return UnparseableBody(response.status_code, response.text[:500])

    try:
        envelope = ErrorEnvelope.model_validate(data)
    except PydanticValidationError:
        return UnparseableBody(response.status_code, response.text[:500])
    if not envelope.error.message:
        return UnparseableBody(response.status_code, response.text[:500])
    return ApiErrorEnvelope(response.status_code, envelope.error.message)


def expect_success(result: ApiResult, action: str) -> dict[str, Any]:
    """Return the success payload or raise ``RemoteError``."""
    if isinstance(result, ApiSuccess):
        return result.payload
    if isinstance(result, ApiErrorEnvelope):
        raise RemoteError(result.status, result.message)
    if 200 <= result.status < 300:
        raise RemoteError(result.status, f"could not parse {action} response")
    raise RemoteError(result.status, f"could not parse error response ({action} failed)")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

async def create_video(
    *,
    fields: dict[str, str],
    credentials: Credentials,
    files: dict[str, tuple[str, bytes, str]] | None = None,
    base_url: str = DEFAULT_BASE_URL,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """POST /videos as multipart form data. Returns the created job object."""
    # (None, value) parts keep text fields in the multipart body even
    # when no file is attached
    parts: list[tuple[str, tuple[str | None, Any] | tuple[str, bytes, str]]] = [
        (name, (None, value)) for name, value in fields.items()
    ]
    for name, file_part in (files or {}).items():
        parts.append((name, file_part))

    client = http_client or httpx.AsyncClient(timeout=timeout)
    own_client = http_client is None

    try:
        resp = await _send(
            client, "POST", f"{base_url}/videos",
            headers=credentials.auth_headers(),
            files=parts,
        )
        return expect_success(parse_response(resp), "video creation")
    finally:
        if own_client:
            await client.aclose()


async def retrieve_video(
    video_id: str,
    *,
    credentials: Credentials,
    base_url: str = DEFAULT_BASE_URL,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """GET /videos/{id}. Returns the raw job object."""
    client = http_client or httpx.AsyncClient(timeout=timeout)
    own_client = http_client is None

    try:
        resp = await _send(
            client, "GET", f"{base_url}/videos/{video_id}",
            headers=credentials.auth_headers(),
        )
        return expect_success(parse_response(resp), "status")
    finally:
        if own_client:
            await client.aclose()


async def download_content(
    video_id: str,
    variant: AssetVariant,
    *,
    credentials: Credentials,
    base_url: str = DEFAULT_BASE_URL,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 120.0,
) -> bytes:
    """GET /videos/{id}/content. The primary variant sends no qualifier."""
    params = {} if variant is AssetVariant.PRIMARY else {"variant": variant.value}

    client = http_client or httpx.AsyncClient(timeout=timeout)
    own_client = http_client is None

    try:
        resp = await _send(
            client, "GET", f"{base_url}/videos/{video_id}/content",
            headers=credentials.auth_headers(),
            params=params,
        )
        if not resp.is_success:
            result = parse_response(resp)
            if isinstance(result, ApiErrorEnvelope):
                raise RemoteError(resp.status_code, result.message)
            raise RemoteError(
                resp.status_code,
                f"failed to download content ({resp.status_code})",
            )
        return resp.content
    finally:
        if own_client:
            await client.aclose()


async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        logger.warning("Sora %s %s transport failure: %s", method, url, e)
        raise TransportError(f"{method} {url} failed: {e}") from e
