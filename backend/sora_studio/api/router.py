from __future__ import annotations
"""Master API router: mounts all sub-routers."""

from fastapi import APIRouter

from sora_studio.api.videos import router as videos_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(videos_router, prefix="/videos", tags=["Videos"])
