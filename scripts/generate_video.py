"""Generate one video end to end from the command line.

Run with:
    python3 scripts/generate_video.py "a cat playing piano" --size 1280x720 --seconds 4 \
        --image ref.png --variants video thumbnail

Conforms the reference image, submits the job, polls until it finishes and
saves the requested asset variants under MEDIA_VOLUME. Ctrl+C cancels polling.
"""

import argparse
import asyncio
import logging
import mimetypes
import os

import httpx

from sora_studio.config import get_settings
from sora_studio.errors import ValidationError, VideoServiceError
from sora_studio.schemas.generation import (
    AssetVariant,
    Credentials,
    GenerationRequest,
    ReferenceImage,
    VideoModel,
)
from sora_studio.services.asset_retriever import save_asset
from sora_studio.services.orchestrator import EventKind, GenerationEvent, GenerationOrchestrator


def print_event(event: GenerationEvent) -> None:
    if event.kind is EventKind.CONFORMED:
        print(f"🖼️ Reference image conformed to {event.image.width}x{event.image.height}")
    elif event.kind is EventKind.SUBMITTED:
        print(f"🚀 Job submitted: {event.job_id}")
    elif event.kind is EventKind.STATUS:
        progress = f" ({event.status.progress}%)" if event.status.progress is not None else ""
        print(f"⏳ {event.job_id}: {event.status.kind.value}{progress}")
    elif event.kind is EventKind.TERMINAL:
        print(f"🏁 {event.job_id}: {event.outcome.state.value}")
    elif event.kind is EventKind.ERROR:
        print(f"❌ {event.error}")


def load_reference(path: str) -> ReferenceImage:
    with open(path, "rb") as f:
        data = f.read()
    mime_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return ReferenceImage(data=data, mime_type=mime_type, filename=os.path.basename(path))


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    credentials = Credentials(api_key=args.api_key or settings.SORA_API_KEY)
    try:
        model = VideoModel.parse(args.model)
        variants = [AssetVariant.parse(name) for name in args.variants]
    except ValidationError as e:
        print(f"❌ {e}")
        return 2

    request = GenerationRequest(
        prompt=args.prompt,
        model=model,
        size=args.size,
        seconds=args.seconds,
        reference_image=load_reference(args.image) if args.image else None,
    )

    async with httpx.AsyncClient(timeout=settings.SORA_HTTP_TIMEOUT) as client:
        orchestrator = GenerationOrchestrator.from_settings(settings, http_client=client)
        try:
            session = await orchestrator.start(request, credentials, on_event=print_event)
        except VideoServiceError:
            return 1

        try:
            outcome = await session.wait()
        except asyncio.CancelledError:
            session.cancel()
            raise

        if not outcome.succeeded:
            print(f"❌ {outcome.message}")
            return 1

        output_dir = os.path.join(settings.MEDIA_VOLUME, session.handle.id)
        for variant in variants:
            try:
                asset = await session.download(variant, credentials)
            except VideoServiceError as e:
                print(f"❌ {variant.value}: {e}")
                return 1
            path = save_asset(asset, output_dir)
            print(f"✅ Saved {asset.content_type} to: {path} ({len(asset.data) / 1024:.2f} KB)")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a Sora video")
    parser.add_argument("prompt")
    parser.add_argument("--model", default="fast", help="fast | pro")
    parser.add_argument("--size", default=None, help="WIDTHxHEIGHT, e.g. 1280x720")
    parser.add_argument("--seconds", type=int, default=None, choices=[4, 8, 12])
    parser.add_argument("--image", default=None, help="reference image path")
    parser.add_argument("--api-key", default=None)
    parser.add_argument(
        "--variants", nargs="+", default=["video"],
        help="video | thumbnail | spritesheet",
    )
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    raise SystemExit(asyncio.run(main(parser.parse_args())))
