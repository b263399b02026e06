from __future__ import annotations
"""Asset retrieval for completed video jobs."""

import logging
import os

import httpx

from sora_studio.errors import InvalidStateError
from sora_studio.schemas.generation import (
    Asset,
    AssetVariant,
    Credentials,
    JobHandle,
    JobStatus,
    RemoteStatus,
)
from sora_studio.services.providers import sora_video

logger = logging.getLogger(__name__)


def suggested_filename(job_id: str, variant: AssetVariant) -> str:
    if variant is AssetVariant.PRIMARY:
        return f"{job_id}.{variant.extension}"
    return f"{job_id}_{variant.value}.{variant.extension}"


class AssetRetriever:
    """Fetches one variant of a completed job. One request per call, no retry."""

    def __init__(
        self,
        *,
        base_url: str = sora_video.DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url
        self.http_client = http_client
        self.timeout = timeout

    async def retrieve(
        self,
        handle: JobHandle,
        variant: AssetVariant,
        credentials: Credentials,
        status: JobStatus | None,
    ) -> Asset:
        """Download ``variant`` for ``handle``.

        ``status`` is the latest known status of the job and must be
        ``Completed``; anything else raises ``InvalidStateError`` without
        touching the network.
        """
        if status is None or status.kind is not RemoteStatus.COMPLETED:
            current = status.kind.value if status else "unknown"
            raise InvalidStateError(
                f"video {handle.id} is {current}; assets are only available once completed"
            )

        data = await sora_video.download_content(
            handle.id,
            variant,
            credentials=credentials,
            base_url=self.base_url,
            http_client=self.http_client,
            timeout=self.timeout,
        )
        filename = suggested_filename(handle.id, variant)
        logger.info("Retrieved %s for %s (%d bytes)", variant.value, handle.id, len(data))
        return Asset(data=data, content_type=variant.content_type, filename=filename)


def save_asset(asset: Asset, directory: str) -> str:
    """Write an asset under its suggested filename. Returns the full path."""
    os.makedirs(directory, exist_ok=True)
    filepath = os.path.join(directory, asset.filename)
    with open(filepath, "wb") as f:
        f.write(asset.data)
    logger.info("Asset saved: %s", filepath)
    return filepath
