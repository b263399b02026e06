"""Status polling state machine for one video job.

  CREATED → POLLING → COMPLETED | FAILED | TIMED_OUT | CANCELLED | ERRORED

Polls are strictly sequential: the next fetch is scheduled on the injected
``Scheduler`` only after the previous one resolves, so at most one timer and
one request exist per poller. Reaching any terminal state clears the timer
and emits exactly one terminal event.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from sora_studio.errors import InvalidStateError, PollTimeoutError, RemoteError, TransportError
from sora_studio.schemas.generation import Credentials, JobHandle, JobStatus, RemoteStatus
from sora_studio.schemas.sora import VideoObject
from sora_studio.services.providers import sora_video
from sora_studio.services.scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 3.0
DEFAULT_MAX_ATTEMPTS = 200
DEFAULT_FAILURE_MESSAGE = "video generation failed"

StatusFetcher = Callable[[str], Awaitable[JobStatus]]


class PollState(str, Enum):
    CREATED = "created"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({
    PollState.COMPLETED,
    PollState.FAILED,
    PollState.TIMED_OUT,
    PollState.CANCELLED,
    PollState.ERRORED,
})


@dataclass(frozen=True)
class PollOutcome:
    """The single terminal event of a poller."""

    job_id: str
    state: PollState
    status: JobStatus | None
    attempts: int
    message: str | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PollState.COMPLETED


# ---------------------------------------------------------------------------
# Remote status fetch
# ---------------------------------------------------------------------------

_STATUS_MAP = {
    "queued": RemoteStatus.PENDING,
    "pending": RemoteStatus.PENDING,
    "in_progress": RemoteStatus.IN_PROGRESS,
    "in-progress": RemoteStatus.IN_PROGRESS,
    "completed": RemoteStatus.COMPLETED,
    "failed": RemoteStatus.FAILED,
}


def job_status_from_payload(payload: dict[str, Any]) -> JobStatus:
    """Map a ``GET /videos/{id}`` body onto a ``JobStatus``."""
    try:
        video = VideoObject.model_validate(payload)
    except PydanticValidationError as e:
        raise RemoteError(200, f"malformed status response: {e.error_count()} invalid field(s)") from e
    if not video.status:
        raise RemoteError(200, "malformed status response: missing status")

    kind = _STATUS_MAP.get(video.status.lower())
    if kind is None:
        logger.warning("Unknown video status %r for %s, treating as in progress", video.status, video.id)
        kind = RemoteStatus.IN_PROGRESS

    if kind is RemoteStatus.FAILED:
        reason = video.error.message if video.error and video.error.message else DEFAULT_FAILURE_MESSAGE
        return JobStatus.failed(reason)
    if kind is RemoteStatus.COMPLETED:
        return JobStatus.completed()
    return JobStatus(kind, progress=video.progress)


async def fetch_job_status(
    video_id: str,
    *,
    credentials: Credentials,
    base_url: str = sora_video.DEFAULT_BASE_URL,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = sora_video.DEFAULT_TIMEOUT,
) -> JobStatus:
    payload = await sora_video.retrieve_video(
        video_id,
        credentials=credentials,
        base_url=base_url,
        http_client=http_client,
        timeout=timeout,
    )
    return job_status_from_payload(payload)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class StatusPoller:
    """Polls one job until it reaches a terminal state.

    Args:
        handle: The job to poll.
        fetch_status: Coroutine function ``(job_id) -> JobStatus``.
        scheduler: Timer service; defaults to a fresh ``AsyncioScheduler``.
        interval: Seconds between the end of one fetch and the next.
        max_attempts: Fetch budget before ``TIMED_OUT``.
        transport_retries: Consecutive ``TransportError`` fetches tolerated
            before ``ERRORED``. Zero ends the session on the first one.
    """

    def __init__(
        self,
        handle: JobHandle,
        fetch_status: StatusFetcher,
        *,
        scheduler: Scheduler | None = None,
        interval: float = DEFAULT_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        transport_retries: int = 0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if transport_retries < 0:
            raise ValueError("transport_retries must not be negative")

        self.handle = handle
        self._fetch_status = fetch_status
        self._scheduler = scheduler or AsyncioScheduler()
        self._interval = interval
        self._max_attempts = max_attempts
        self._transport_retries = transport_retries

        self._state = PollState.CREATED
        self._timer: Any = None
        self._attempts = 0
        self._transport_failures = 0
        self._latest: JobStatus | None = None
        self._outcome: PollOutcome | None = None
        self._done = asyncio.Event()
        self._status_listeners: list[Callable[[JobStatus], None]] = []
        self._terminal_listeners: list[Callable[[PollOutcome], None]] = []

    # --- Introspection ---

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def latest_status(self) -> JobStatus | None:
        return self._latest

    @property
    def outcome(self) -> PollOutcome | None:
        return self._outcome

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def on_status(self, listener: Callable[[JobStatus], None]) -> None:
        self._status_listeners.append(listener)

    def on_terminal(self, listener: Callable[[PollOutcome], None]) -> None:
        self._terminal_listeners.append(listener)

    # --- Control ---

    async def start(self) -> None:
        """Enter POLLING and issue the first fetch."""
        if self._state is not PollState.CREATED:
            raise InvalidStateError(f"poller for {self.handle.id} already {self._state.value}")
        self._state = PollState.POLLING
        logger.info("Polling video %s every %.1fs (max %d attempts)",
                    self.handle.id, self._interval, self._max_attempts)
        await self._poll_once()

    def cancel(self) -> None:
        """Stop polling. A fetch already in flight finishes but is ignored."""
        if self.is_terminal:
            return
        self._finish(PollState.CANCELLED, message="polling cancelled")

    async def wait(self) -> PollOutcome:
        """Block until the terminal event and return it."""
        await self._done.wait()
        assert self._outcome is not None
        return self._outcome

    # --- Internals ---

    async def _poll_once(self) -> None:
        self._timer = None
        if self._state is not PollState.POLLING:
            return

        self._attempts += 1
        try:
            status = await self._fetch_status(self.handle.id)
        except Exception as e:
            if self._state is not PollState.POLLING:
                logger.debug("Discarding fetch error for %s after %s", self.handle.id, self._state.value)
                return
            self._on_fetch_error(e)
            return

        if self._state is not PollState.POLLING:
            logger.debug("Discarding %s status for %s after %s",
                         status.kind.value, self.handle.id, self._state.value)
            return

        self._transport_failures = 0
        self._latest = status
        logger.debug("Video %s poll %d: %s", self.handle.id, self._attempts, status.kind.value)
        self._emit_status(status)
        if self.is_terminal:
            return  # a status listener cancelled us

        if status.kind is RemoteStatus.COMPLETED:
            self._finish(PollState.COMPLETED)
        elif status.kind is RemoteStatus.FAILED:
            self._finish(PollState.FAILED, message=status.reason or DEFAULT_FAILURE_MESSAGE)
        elif self._attempts >= self._max_attempts:
            message = (
                f"video {self.handle.id} still {status.kind.value} after "
                f"{self._attempts} polls ({self._attempts * self._interval:.0f}s)"
            )
            self._finish(PollState.TIMED_OUT, message=message, error=PollTimeoutError(message))
        else:
            self._schedule_next()

    def _on_fetch_error(self, error: Exception) -> None:
        if (
            isinstance(error, TransportError)
            and self._transport_failures < self._transport_retries
            and self._attempts < self._max_attempts
        ):
            self._transport_failures += 1
            logger.warning(
                "Video %s poll transport failure %d/%d, retrying: %s",
                self.handle.id, self._transport_failures, self._transport_retries, error,
            )
            self._schedule_next()
            return

        if not isinstance(error, (TransportError, RemoteError)):
            logger.exception("Unexpected error polling video %s", self.handle.id, exc_info=error)
        self._finish(PollState.ERRORED, message=str(error), error=error)

    def _schedule_next(self) -> None:
        self._timer = self._scheduler.schedule(self._interval, self._poll_once)

    def _finish(
        self,
        state: PollState,
        *,
        message: str | None = None,
        error: Exception | None = None,
    ) -> None:
        if self.is_terminal:
            return
        if self._timer is not None:
            self._scheduler.cancel(self._timer)
            self._timer = None

        self._state = state
        self._outcome = PollOutcome(
            job_id=self.handle.id,
            state=state,
            status=self._latest,
            attempts=self._attempts,
            message=message,
            error=error,
        )
        if state is PollState.COMPLETED:
            logger.info("Video %s completed after %d polls", self.handle.id, self._attempts)
        else:
            logger.warning("Video %s ended %s after %d polls: %s",
                           self.handle.id, state.value, self._attempts, message)

        self._done.set()
        for listener in list(self._terminal_listeners):
            try:
                listener(self._outcome)
            except Exception:
                logger.exception("Terminal listener failed for video %s", self.handle.id)

    def _emit_status(self, status: JobStatus) -> None:
        for listener in list(self._status_listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed for video %s", self.handle.id)
