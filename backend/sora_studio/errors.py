"""Error taxonomy shared by every stage of a generation job.

Local validation failures never reach the network; remote and transport
failures are raised once and never retried by the component that hit them.
"""

from __future__ import annotations


class VideoServiceError(Exception):
    """Base class for all orchestration errors."""


class ValidationError(VideoServiceError):
    """Invalid or missing local input. Raised before any request is sent."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class RemoteError(VideoServiceError):
    """Non-success response from the remote video API."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"remote API error ({status}): {message}")


class TransportError(VideoServiceError):
    """Connection-level failure talking to the remote video API."""


class ImageConformError(VideoServiceError):
    """Base class for reference-image conformance failures."""


class DecodeError(ImageConformError):
    """Source image bytes could not be decoded."""


class SurfaceError(ImageConformError):
    """No working raster surface could be obtained for the crop."""


class EncodeError(ImageConformError):
    """Re-encoding the conformed image produced no output."""


class PollTimeoutError(VideoServiceError, TimeoutError):
    """Polling budget exhausted before the job reached a terminal status."""


class InvalidStateError(VideoServiceError):
    """Operation attempted against a job in the wrong lifecycle state."""
