from __future__ import annotations
"""Generation orchestrator: conform → submit → poll → retrieve.

Each ``start`` call produces an independent ``GenerationSession`` with its own
poller and scheduler; nothing is shared between jobs beyond the HTTP client.
"""

import dataclasses
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from sora_studio.errors import InvalidStateError, VideoServiceError
from sora_studio.schemas.generation import (
    Asset,
    AssetVariant,
    ConformedImage,
    Credentials,
    GenerationRequest,
    JobHandle,
    JobStatus,
    ReferenceImage,
)
from sora_studio.services.asset_retriever import AssetRetriever
from sora_studio.services.image_conform import DEFAULT_QUALITY, conform, parse_size
from sora_studio.services.job_submitter import JobSubmitter, validate_request
from sora_studio.services.providers import sora_video
from sora_studio.services.scheduler import AsyncioScheduler, Scheduler
from sora_studio.services.status_poller import (
    DEFAULT_INTERVAL,
    DEFAULT_MAX_ATTEMPTS,
    PollOutcome,
    PollState,
    StatusPoller,
    fetch_job_status,
)

if TYPE_CHECKING:
    from sora_studio.config import Settings

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CONFORMED = "conformed"
    SUBMITTED = "submitted"
    STATUS = "status"
    TERMINAL = "terminal"
    ERROR = "error"


@dataclass(frozen=True)
class GenerationEvent:
    kind: EventKind
    job_id: str | None = None
    status: JobStatus | None = None
    outcome: PollOutcome | None = None
    image: ConformedImage | None = None
    error: Exception | None = None


EventListener = Callable[[GenerationEvent], None]


class GenerationSession:
    """Live view of one submitted job."""

    def __init__(
        self,
        handle: JobHandle,
        poller: StatusPoller,
        retriever: AssetRetriever,
    ) -> None:
        self.handle = handle
        self.poller = poller
        self._retriever = retriever

    @property
    def state(self) -> PollState:
        return self.poller.state

    @property
    def latest_status(self) -> JobStatus | None:
        return self.poller.latest_status

    @property
    def outcome(self) -> PollOutcome | None:
        return self.poller.outcome

    def cancel(self) -> None:
        self.poller.cancel()

    async def wait(self) -> PollOutcome:
        return await self.poller.wait()

    async def download(self, variant: AssetVariant, credentials: Credentials) -> Asset:
        if self.poller.state is not PollState.COMPLETED:
            raise InvalidStateError(
                f"video {self.handle.id} is {self.poller.state.value}; nothing to download"
            )
        return await self._retriever.retrieve(
            self.handle, variant, credentials, self.poller.latest_status,
        )


class GenerationOrchestrator:
    """Composes the conformer, submitter, poller and retriever for one job at a time."""

    def __init__(
        self,
        *,
        base_url: str = sora_video.DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = sora_video.DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        transport_retries: int = 0,
        default_size: str = "1280x720",
        jpeg_quality: int = DEFAULT_QUALITY,
        scheduler_factory: Callable[[], Scheduler] = AsyncioScheduler,
        submitter: JobSubmitter | None = None,
        retriever: AssetRetriever | None = None,
    ) -> None:
        self.base_url = base_url
        self.http_client = http_client
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.transport_retries = transport_retries
        self.default_size = default_size
        self.jpeg_quality = jpeg_quality
        self.scheduler_factory = scheduler_factory
        self.submitter = submitter or JobSubmitter(
            base_url=base_url, http_client=http_client, timeout=timeout,
        )
        self.retriever = retriever or AssetRetriever(
            base_url=base_url, http_client=http_client,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        **overrides,
    ) -> GenerationOrchestrator:
        options = {
            "base_url": settings.SORA_API_BASE,
            "timeout": settings.SORA_HTTP_TIMEOUT,
            "poll_interval": settings.SORA_POLL_INTERVAL,
            "max_attempts": settings.SORA_POLL_MAX_ATTEMPTS,
            "transport_retries": settings.SORA_POLL_TRANSPORT_RETRIES,
            "default_size": settings.SORA_DEFAULT_SIZE,
            "jpeg_quality": settings.CONFORM_JPEG_QUALITY,
        }
        options.update(overrides)
        return cls(http_client=http_client, **options)

    def prepare_request(
        self,
        request: GenerationRequest,
        credentials: Credentials,
    ) -> tuple[GenerationRequest, ConformedImage | None]:
        """Validate and conform the reference image. Returns a new request."""
        if request.reference_image is not None and request.size is None:
            # The image must match the output size, so pin it explicitly
            request = dataclasses.replace(request, size=self.default_size)
        validate_request(request, credentials)

        if request.reference_image is None:
            return request, None

        width, height = parse_size(request.size)
        conformed = conform(request.reference_image, width, height, quality=self.jpeg_quality)
        if not conformed.resized:
            return request, conformed

        stem = os.path.splitext(request.reference_image.filename)[0] or "reference"
        image = ReferenceImage(
            data=conformed.data,
            mime_type=conformed.mime_type,
            filename=f"{stem}.jpg",
        )
        return dataclasses.replace(request, reference_image=image), conformed

    def watch(
        self,
        handle: JobHandle,
        credentials: Credentials,
        on_event: EventListener | None = None,
    ) -> GenerationSession:
        """Build an unstarted session for an existing job handle."""

        async def fetch(job_id: str) -> JobStatus:
            return await fetch_job_status(
                job_id,
                credentials=credentials,
                base_url=self.base_url,
                http_client=self.http_client,
                timeout=self.timeout,
            )

        poller = StatusPoller(
            handle,
            fetch,
            scheduler=self.scheduler_factory(),
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            transport_retries=self.transport_retries,
        )
        if on_event is not None:
            poller.on_status(lambda status: on_event(
                GenerationEvent(EventKind.STATUS, job_id=handle.id, status=status)
            ))
            poller.on_terminal(lambda outcome: on_event(
                GenerationEvent(
                    EventKind.TERMINAL,
                    job_id=handle.id,
                    status=outcome.status,
                    outcome=outcome,
                    error=outcome.error,
                )
            ))
        return GenerationSession(handle, poller, self.retriever)

    async def start(
        self,
        request: GenerationRequest,
        credentials: Credentials,
        on_event: EventListener | None = None,
    ) -> GenerationSession:
        """Conform, submit and begin polling. Returns once the first poll resolves."""
        emit = on_event or (lambda event: None)
        try:
            prepared, conformed = self.prepare_request(request, credentials)
            if conformed is not None:
                emit(GenerationEvent(EventKind.CONFORMED, image=conformed))

            handle = await self.submitter.submit(prepared, credentials)
        except VideoServiceError as e:
            logger.warning("Video generation not started: %s", e)
            emit(GenerationEvent(EventKind.ERROR, error=e))
            raise

        emit(GenerationEvent(EventKind.SUBMITTED, job_id=handle.id))
        session = self.watch(handle, credentials, on_event)
        await session.poller.start()
        return session

    async def run(
        self,
        request: GenerationRequest,
        credentials: Credentials,
        on_event: EventListener | None = None,
    ) -> GenerationSession:
        """Start a job and wait until it is terminal. ``session.outcome`` holds the result."""
        session = await self.start(request, credentials, on_event)
        await session.wait()
        return session
