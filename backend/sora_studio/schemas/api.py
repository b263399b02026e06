from __future__ import annotations
"""Pydantic v2 schemas for the local HTTP API."""

from pydantic import BaseModel


class CreateVideoResponse(BaseModel):
    video_id: str
    conformed: bool = False
    size: str | None = None


class VideoStatusResponse(BaseModel):
    id: str
    status: str
    progress: int | None = None
    error: str | None = None


class ErrorResponse(BaseModel):
    error: str
    field: str | None = None
    remote_status: int | None = None
