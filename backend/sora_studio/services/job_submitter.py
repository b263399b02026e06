from __future__ import annotations
"""Job submission: validate a GenerationRequest locally, then POST /videos once."""

import logging

import httpx

from sora_studio.errors import RemoteError, ValidationError
from sora_studio.schemas.generation import (
    ALLOWED_SECONDS,
    ALLOWED_SIZES,
    Credentials,
    GenerationRequest,
    JobHandle,
    VideoModel,
    mask_key,
)
from sora_studio.services.providers import sora_video

logger = logging.getLogger(__name__)


def validate_request(request: GenerationRequest, credentials: Credentials | None) -> None:
    """Raise ``ValidationError`` for the first invalid field. No I/O."""
    if not request.prompt or not request.prompt.strip():
        raise ValidationError("prompt", "prompt must not be empty")
    if credentials is None or not credentials.api_key:
        raise ValidationError("api_key", "API key is required")
    if not isinstance(request.model, VideoModel):
        raise ValidationError("model", f"unknown model {request.model!r}")
    if request.size is not None and request.size not in ALLOWED_SIZES[request.model]:
        allowed = ", ".join(ALLOWED_SIZES[request.model])
        raise ValidationError(
            "size", f"{request.size} is not available for {request.model.value} (allowed: {allowed})",
        )
    if request.seconds is not None and request.seconds not in ALLOWED_SECONDS:
        raise ValidationError(
            "seconds", f"duration must be one of {ALLOWED_SECONDS}, got {request.seconds}",
        )


def build_payload(
    request: GenerationRequest,
) -> tuple[dict[str, str], dict[str, tuple[str, bytes, str]]]:
    """Split a request into multipart text fields and file parts."""
    fields: dict[str, str] = {
        "prompt": request.prompt,
        "model": request.model.value,
    }
    if request.size:
        fields["size"] = request.size
    if request.seconds is not None:
        # The API declares seconds as a string enum
        fields["seconds"] = str(request.seconds)

    files: dict[str, tuple[str, bytes, str]] = {}
    if request.reference_image is not None:
        image = request.reference_image
        files["input_reference"] = (image.filename, image.data, image.mime_type)
    return fields, files


class JobSubmitter:
    """Sends exactly one creation request per ``submit`` call. Never retries."""

    def __init__(
        self,
        *,
        base_url: str = sora_video.DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = sora_video.DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url
        self.http_client = http_client
        self.timeout = timeout

    async def submit(self, request: GenerationRequest, credentials: Credentials) -> JobHandle:
        validate_request(request, credentials)
        fields, files = build_payload(request)

        logger.info(
            "Submitting video job model=%s size=%s seconds=%s reference=%s key=%s",
            request.model.value, request.size, request.seconds,
            request.reference_image is not None, mask_key(credentials.api_key),
        )

        payload = await sora_video.create_video(
            fields=fields,
            files=files,
            credentials=credentials,
            base_url=self.base_url,
            http_client=self.http_client,
            timeout=self.timeout,
        )

        video_id = payload.get("id")
        if not isinstance(video_id, str) or not video_id:
            raise RemoteError(200, "malformed success response: no video id returned")

        logger.info("Video job created: %s", video_id)
        return JobHandle(id=video_id)
