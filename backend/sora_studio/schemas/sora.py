from __future__ import annotations
"""Pydantic v2 schemas for remote /videos API payloads."""

from pydantic import BaseModel


class VideoErrorDetail(BaseModel):
    type: str | None = None
    message: str | None = None
    code: str | None = None


class ErrorEnvelope(BaseModel):
    """``{"error": {"message": ...}}`` returned on non-success responses."""

    error: VideoErrorDetail


class VideoObject(BaseModel):
    """Job object returned by ``POST /videos`` and ``GET /videos/{id}``."""

    id: str
    status: str | None = None
    model: str | None = None
    size: str | None = None
    seconds: str | None = None
    progress: int | None = None
    created_at: int | None = None
    error: VideoErrorDetail | None = None

    model_config = {"extra": "ignore"}
