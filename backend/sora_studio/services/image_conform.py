"""Reference image conformance: cover-fit center crop to the output size.

The remote API rejects reference images whose pixel size differs from the
requested video size, so every reference image is scaled until it covers
the target rectangle and the centered excess is cropped away.
"""

from __future__ import annotations

import io
import logging
import re
from contextlib import ExitStack
from dataclasses import dataclass

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from sora_studio.errors import DecodeError, EncodeError, SurfaceError, ValidationError
from sora_studio.schemas.generation import ConformedImage, ReferenceImage

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 95

_SIZE_RE = re.compile(r"^(\d+)x(\d+)$")


def parse_size(size: str) -> tuple[int, int]:
    """Parse a ``"WxH"`` string into ``(width, height)``."""
    match = _SIZE_RE.match(size.strip())
    if not match:
        raise ValidationError("size", f"expected WIDTHxHEIGHT, got {size!r}")
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise ValidationError("size", f"dimensions must be positive, got {size!r}")
    return width, height


@dataclass(frozen=True)
class CoverFit:
    """Scaled size plus the crop box (left, top, right, bottom) in scaled pixels."""

    scale: float
    scaled_width: int
    scaled_height: int
    box: tuple[int, int, int, int]


def cover_fit_geometry(
    source_width: int,
    source_height: int,
    target_width: int,
    target_height: int,
) -> CoverFit:
    """Compute the cover-fit scale and centered crop box.

    The scaled image is never smaller than the target on either axis, so the
    crop box always lies inside it. Left/right (and top/bottom) excess differ
    by at most one pixel.
    """
    scale = max(target_width / source_width, target_height / source_height)
    scaled_width = max(target_width, round(source_width * scale))
    scaled_height = max(target_height, round(source_height * scale))

    left = (scaled_width - target_width) // 2
    top = (scaled_height - target_height) // 2
    return CoverFit(
        scale=scale,
        scaled_width=scaled_width,
        scaled_height=scaled_height,
        box=(left, top, left + target_width, top + target_height),
    )


def conform(
    image: ReferenceImage,
    target_width: int,
    target_height: int,
    *,
    quality: int = DEFAULT_QUALITY,
) -> ConformedImage:
    """Return ``image`` conformed to exactly ``target_width x target_height``.

    Images that already match are returned byte-for-byte, without a lossy
    re-encode. Everything else is cover-fit cropped and re-encoded as JPEG.

    Raises:
        DecodeError: the bytes are not a readable image.
        SurfaceError: no raster surface could be prepared for the crop.
        EncodeError: JPEG encoding failed or produced nothing.
    """
    if target_width <= 0 or target_height <= 0:
        raise SurfaceError(f"invalid target rectangle {target_width}x{target_height}")

    with ExitStack() as stack:
        try:
            stored = stack.enter_context(Image.open(io.BytesIO(image.data)))
            stored.load()
            orientation = stored.getexif().get(ExifTags.Base.Orientation, 1)
            # Geometry is computed on the image as displayed, not as stored
            source = stack.enter_context(ImageOps.exif_transpose(stored))
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise DecodeError(f"could not decode reference image: {e}") from e

        source_width, source_height = source.size
        if orientation == 1 and (source_width, source_height) == (target_width, target_height):
            logger.debug("Reference image already %dx%d, passing through", target_width, target_height)
            return ConformedImage(
                data=image.data,
                width=target_width,
                height=target_height,
                mime_type=image.mime_type,
                resized=False,
            )

        if source_width <= 0 or source_height <= 0:
            raise SurfaceError(f"source image has no pixels ({source_width}x{source_height})")

        fit = cover_fit_geometry(source_width, source_height, target_width, target_height)

        try:
            rgb = stack.enter_context(source.convert("RGB"))
            scaled = stack.enter_context(
                rgb.resize((fit.scaled_width, fit.scaled_height), Image.Resampling.LANCZOS)
            )
            cropped = stack.enter_context(scaled.crop(fit.box))
        except (OSError, ValueError, MemoryError) as e:
            raise SurfaceError(f"could not prepare raster surface: {e}") from e

        buffer = io.BytesIO()
        try:
            cropped.save(buffer, format="JPEG", quality=quality)
        except (OSError, ValueError) as e:
            raise EncodeError(f"JPEG encode failed: {e}") from e

    data = buffer.getvalue()
    if not data:
        raise EncodeError("JPEG encode produced no output")

    logger.info(
        "Conformed reference image %dx%d → %dx%d (scale=%.3f, crop=%s)",
        source_width, source_height, target_width, target_height, fit.scale, fit.box,
    )
    return ConformedImage(data=data, width=target_width, height=target_height)
