from __future__ import annotations
"""Domain types for a single video generation job."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from sora_studio.errors import ValidationError


class VideoModel(str, Enum):
    """Generation model tiers, valued by their remote API names."""

    FAST = "sora-2"
    PRO = "sora-2-pro"

    @classmethod
    def parse(cls, value: str) -> VideoModel:
        """Accept either the tier name ("fast"/"pro") or the API model name."""
        aliases = {"fast": cls.FAST, "pro": cls.PRO}
        normalized = value.strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError("model", f"unknown model {value!r}") from None


ALLOWED_SIZES: dict[VideoModel, tuple[str, ...]] = {
    VideoModel.FAST: ("1280x720", "720x1280"),
    VideoModel.PRO: ("1792x1024", "1024x1792", "1280x720", "720x1280"),
}

ALLOWED_SECONDS: tuple[int, ...] = (4, 8, 12)


@dataclass(frozen=True)
class ReferenceImage:
    """User-supplied image that seeds the first frame."""

    data: bytes
    mime_type: str = "image/jpeg"
    filename: str = "reference.jpg"


@dataclass(frozen=True)
class GenerationRequest:
    """Everything needed for one submission attempt. Never mutated."""

    prompt: str
    model: VideoModel = VideoModel.FAST
    size: str | None = None
    seconds: int | None = None
    reference_image: ReferenceImage | None = None


@dataclass(frozen=True)
class Credentials:
    """API credentials passed explicitly into every remote call."""

    api_key: str

    def __repr__(self) -> str:
        return f"Credentials(api_key={mask_key(self.api_key)!r})"

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}


def mask_key(key: str) -> str:
    """Mask an API key for safe logging: show first 8 and last 4 chars."""
    if len(key) <= 16:
        return "***"
    return f"{key[:8]}...{key[-4:]}"


@dataclass(frozen=True)
class JobHandle:
    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RemoteStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JobStatus:
    """Tagged status value produced by one poll.

    ``reason`` is only set for ``FAILED``; ``progress`` is whatever
    percentage the remote reported, if any.
    """

    kind: RemoteStatus
    reason: str | None = None
    progress: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (RemoteStatus.COMPLETED, RemoteStatus.FAILED)

    @property
    def assets_available(self) -> bool:
        return self.kind is RemoteStatus.COMPLETED

    @classmethod
    def pending(cls, progress: int | None = None) -> JobStatus:
        return cls(RemoteStatus.PENDING, progress=progress)

    @classmethod
    def in_progress(cls, progress: int | None = None) -> JobStatus:
        return cls(RemoteStatus.IN_PROGRESS, progress=progress)

    @classmethod
    def completed(cls) -> JobStatus:
        return cls(RemoteStatus.COMPLETED, progress=100)

    @classmethod
    def failed(cls, reason: str) -> JobStatus:
        return cls(RemoteStatus.FAILED, reason=reason)


class AssetVariant(str, Enum):
    """Downloadable outputs of a completed job."""

    PRIMARY = "video"
    THUMBNAIL = "thumbnail"
    SPRITESHEET = "spritesheet"

    @classmethod
    def parse(cls, value: str) -> AssetVariant:
        normalized = value.strip().lower()
        if normalized in ("mp4", "primary"):
            return cls.PRIMARY
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError("variant", f"unknown asset variant {value!r}") from None

    @property
    def content_type(self) -> str:
        return _VARIANT_MEDIA[self][0]

    @property
    def extension(self) -> str:
        return _VARIANT_MEDIA[self][1]


_VARIANT_MEDIA: dict[AssetVariant, tuple[str, str]] = {
    AssetVariant.PRIMARY: ("video/mp4", "mp4"),
    AssetVariant.THUMBNAIL: ("image/webp", "webp"),
    AssetVariant.SPRITESHEET: ("image/jpeg", "jpg"),
}


@dataclass(frozen=True)
class ConformedImage:
    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"
    resized: bool = True


@dataclass(frozen=True)
class Asset:
    """Binary payload of one variant, returned opaquely."""

    data: bytes
    content_type: str
    filename: str
