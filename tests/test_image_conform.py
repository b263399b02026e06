import io

import pytest
from PIL import ExifTags, Image

from conftest import make_image
from sora_studio.errors import DecodeError, EncodeError, SurfaceError, ValidationError
from sora_studio.schemas.generation import ReferenceImage
from sora_studio.services.image_conform import conform, cover_fit_geometry, parse_size


def _decode(data):
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return img.format, img.size, img.convert("RGB")


def test_matching_image_is_returned_byte_identical():
    original = make_image(1280, 720)
    image = ReferenceImage(data=original, mime_type="image/png", filename="ref.png")

    result = conform(image, 1280, 720)

    assert result.data == original
    assert result.resized is False
    assert result.mime_type == "image/png"
    assert (result.width, result.height) == (1280, 720)


def test_landscape_source_is_cropped_to_exact_target():
    image = ReferenceImage(data=make_image(1920, 1080), mime_type="image/png")

    result = conform(image, 1280, 720)

    fmt, size, _ = _decode(result.data)
    assert fmt == "JPEG"
    assert size == (1280, 720)
    assert result.resized is True
    assert result.mime_type == "image/jpeg"


def test_portrait_source_into_landscape_target():
    result = conform(ReferenceImage(data=make_image(720, 1280)), 1280, 720)
    assert _decode(result.data)[1] == (1280, 720)


def test_small_source_is_scaled_up():
    result = conform(ReferenceImage(data=make_image(100, 50)), 720, 1280)
    assert _decode(result.data)[1] == (720, 1280)


def test_alpha_source_is_flattened_to_jpeg():
    data = make_image(400, 400, color=(10, 200, 10, 128), mode="RGBA")
    result = conform(ReferenceImage(data=data, mime_type="image/png"), 1280, 720)
    fmt, size, _ = _decode(result.data)
    assert (fmt, size) == ("JPEG", (1280, 720))


def test_crop_offsets_are_symmetric_for_wide_source():
    fit = cover_fit_geometry(2000, 1000, 1280, 720)

    assert fit.scale == pytest.approx(0.72)
    assert (fit.scaled_width, fit.scaled_height) == (1440, 720)
    left, top, right, bottom = fit.box
    assert (right - left, bottom - top) == (1280, 720)
    assert left == fit.scaled_width - right == 80
    assert top == fit.scaled_height - bottom == 0


def test_odd_excess_differs_by_at_most_one_pixel():
    fit = cover_fit_geometry(1001, 720, 1000, 720)
    left, top, right, bottom = fit.box
    assert abs(left - (fit.scaled_width - right)) <= 1
    assert (right - left, bottom - top) == (1000, 720)


def test_crop_keeps_the_center_of_the_source():
    # Blue side bands narrower than the cropped excess, red everywhere else
    img = Image.new("RGB", (2000, 1000), color=(255, 0, 0))
    img.paste((0, 0, 255), (0, 0, 100, 1000))
    img.paste((0, 0, 255), (1900, 0, 2000, 1000))
    buf = io.BytesIO()
    img.save(buf, format="PNG")

    result = conform(ReferenceImage(data=buf.getvalue()), 1280, 720)

    _, _, rgb = _decode(result.data)
    for x in (0, 640, 1279):
        r, g, b = rgb.getpixel((x, 360))
        assert r > 200 and b < 60


def test_undecodable_bytes_raise_decode_error():
    with pytest.raises(DecodeError):
        conform(ReferenceImage(data=b"definitely not an image"), 1280, 720)


def test_oversized_image_raises_decode_error(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(DecodeError):
        conform(ReferenceImage(data=make_image(200, 200)), 1280, 720)


def _rotated_phone_photo():
    """Stored 1920x1080 with Orientation=6, displayed as 1080x1920.

    The stored left half (blue) is the displayed top, the right half (red) the
    displayed bottom.
    """
    img = Image.new("RGB", (1920, 1080), color=(220, 20, 20))
    img.paste((20, 20, 220), (0, 0, 960, 1080))
    exif = Image.Exif()
    exif[ExifTags.Base.Orientation] = 6
    buf = io.BytesIO()
    img.save(buf, format="JPEG", exif=exif)
    return buf.getvalue()


def test_exif_orientation_is_applied_before_cropping():
    result = conform(ReferenceImage(data=_rotated_phone_photo()), 720, 1280)

    _, size, rgb = _decode(result.data)
    assert size == (720, 1280)
    top_r, _, top_b = rgb.getpixel((360, 40))
    bottom_r, _, bottom_b = rgb.getpixel((360, 1240))
    assert top_b > 150 and top_r < 100
    assert bottom_r > 150 and bottom_b < 100


def test_rotated_image_with_matching_stored_size_is_re_encoded():
    result = conform(ReferenceImage(data=_rotated_phone_photo()), 1920, 1080)

    assert result.resized is True
    _, size, _ = _decode(result.data)
    assert size == (1920, 1080)


def test_invalid_target_raises_surface_error():
    with pytest.raises(SurfaceError):
        conform(ReferenceImage(data=make_image(10, 10)), 0, 720)


def test_encode_failure_raises_encode_error(monkeypatch):
    source = make_image(64, 48)

    def broken_save(self, fp, format=None, **params):
        raise OSError("encoder unavailable")

    monkeypatch.setattr(Image.Image, "save", broken_save)

    with pytest.raises(EncodeError):
        conform(ReferenceImage(data=source), 1280, 720)


def test_parse_size():
    assert parse_size("1792x1024") == (1792, 1024)
    with pytest.raises(ValidationError):
        parse_size("1280*720")
    with pytest.raises(ValidationError):
        parse_size("0x720")
