from __future__ import annotations
"""Video generation endpoints: conform + submit, status, and asset download."""

import logging

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from sora_studio.api.deps import get_credentials, get_orchestrator
from sora_studio.schemas.api import CreateVideoResponse, VideoStatusResponse
from sora_studio.schemas.generation import (
    AssetVariant,
    Credentials,
    GenerationRequest,
    JobHandle,
    ReferenceImage,
    VideoModel,
)
from sora_studio.services.orchestrator import GenerationOrchestrator
from sora_studio.services.status_poller import fetch_job_status

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=CreateVideoResponse)
async def create_video(
    prompt: str = Form(""),
    model: str = Form(VideoModel.FAST.value),
    size: str | None = Form(None),
    seconds: int | None = Form(None),
    input_reference: UploadFile | None = File(None),
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Conform the optional reference image and submit a generation job.

    Returns as soon as the job exists; progress is followed through
    ``GET /api/videos/{id}`` or the ``/ws/videos/{id}`` stream.
    """
    reference = None
    if input_reference is not None and input_reference.filename:
        reference = ReferenceImage(
            data=await input_reference.read(),
            mime_type=input_reference.content_type or "application/octet-stream",
            filename=input_reference.filename,
        )

    request = GenerationRequest(
        prompt=prompt,
        model=VideoModel.parse(model),
        size=size or None,
        seconds=seconds,
        reference_image=reference,
    )
    prepared, conformed = orchestrator.prepare_request(request, credentials)
    handle = await orchestrator.submitter.submit(prepared, credentials)

    return CreateVideoResponse(
        video_id=handle.id,
        conformed=bool(conformed and conformed.resized),
        size=prepared.size,
    )


@router.get("/{video_id}", response_model=VideoStatusResponse)
async def get_video_status(
    video_id: str,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Single status fetch for a job."""
    status = await fetch_job_status(
        video_id,
        credentials=credentials,
        base_url=orchestrator.base_url,
        http_client=orchestrator.http_client,
        timeout=orchestrator.timeout,
    )
    return VideoStatusResponse(
        id=video_id,
        status=status.kind.value,
        progress=status.progress,
        error=status.reason,
    )


@router.get("/{video_id}/content")
async def download_video_content(
    video_id: str,
    variant: str = AssetVariant.PRIMARY.value,
    credentials: Credentials = Depends(get_credentials),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Download one asset variant of a completed job as an attachment."""
    asset_variant = AssetVariant.parse(variant)
    handle = JobHandle(id=video_id)
    status = await fetch_job_status(
        video_id,
        credentials=credentials,
        base_url=orchestrator.base_url,
        http_client=orchestrator.http_client,
        timeout=orchestrator.timeout,
    )
    asset = await orchestrator.retriever.retrieve(handle, asset_variant, credentials, status)

    return Response(
        content=asset.data,
        media_type=asset.content_type,
        headers={"Content-Disposition": f'attachment; filename="{asset.filename}"'},
    )
