"""Domain, wire and API schemas package."""

from sora_studio.schemas.generation import (
    Asset,
    AssetVariant,
    ConformedImage,
    Credentials,
    GenerationRequest,
    JobHandle,
    JobStatus,
    ReferenceImage,
    RemoteStatus,
    VideoModel,
)
from sora_studio.schemas.sora import ErrorEnvelope, VideoErrorDetail, VideoObject

__all__ = [
    "Asset",
    "AssetVariant",
    "ConformedImage",
    "Credentials",
    "GenerationRequest",
    "JobHandle",
    "JobStatus",
    "ReferenceImage",
    "RemoteStatus",
    "VideoModel",
    "ErrorEnvelope",
    "VideoErrorDetail",
    "VideoObject",
]
