import asyncio
import io

import pytest
from PIL import Image

from conftest import image_dimensions, make_image_bytes
from models import ImageFile, UploadCategory, UploadOptions, resolve_upload_options
from resampler import PillowImageCodec, Resampler, compute_target_size


class RecordingCodec(PillowImageCodec):
    def __init__(self):
        self.qualities = []

    def encode(self, raster, content_type, quality):
        self.qualities.append(quality)
        return super().encode(raster, content_type, quality)


class FailingEncodeCodec(PillowImageCodec):
    def encode(self, raster, content_type, quality):
        raise OSError("encoder exploded")


@pytest.mark.parametrize(
    "source, bounds, expected",
    [
        ((2000, 3000), (1200, 1200), (800, 1200)),
        ((4000, 1000), (1200, 1200), (1200, 300)),
        ((1600, 1200), (800, 800), (800, 600)),
        ((500, 400), (1200, 1200), (500, 400)),
        ((1200, 1200), (1200, 1200), (1200, 1200)),
    ],
)
def test_compute_target_size(source, bounds, expected):
    assert compute_target_size(*source, *bounds) == expected


@pytest.mark.parametrize("width, height", [(2000, 3000), (3001, 1999), (5000, 37), (1201, 1200), (999, 4321)])
def test_scaled_size_keeps_aspect_ratio_within_bounds(width, height):
    target_width, target_height = compute_target_size(width, height, 1200, 1200)
    assert target_width <= 1200 and target_height <= 1200
    # one pixel of rounding on the shorter axis
    assert target_width / target_height == pytest.approx(width / height, rel=1 / min(target_width, target_height) + 1e-9)


def test_resample_downscales_large_jpeg():
    source = ImageFile(name="portrait.jpg", content_type="image/jpeg", data=make_image_bytes(2000, 3000))
    options = resolve_upload_options(UploadCategory.GALLERY)

    optimized = asyncio.run(Resampler().resample(source, options))

    assert optimized.name == "portrait.jpg"
    assert optimized.content_type == "image/jpeg"
    assert image_dimensions(optimized.data) == (800, 1200)


def test_resample_does_not_upscale_small_image():
    source = ImageFile(name="tiny.png", content_type="image/png", data=make_image_bytes(100, 50, "PNG"))
    options = resolve_upload_options(UploadCategory.PROFILE)

    optimized = asyncio.run(Resampler().resample(source, options))

    assert image_dimensions(optimized.data) == (100, 50)
    with Image.open(io.BytesIO(optimized.data)) as stored_image:
        assert stored_image.format == "PNG"


def test_quality_is_passed_to_encoder():
    codec = RecordingCodec()
    source = ImageFile(name="a.webp", content_type="image/webp", data=make_image_bytes(300, 300, "WEBP"))

    asyncio.run(Resampler(codec).resample(source, resolve_upload_options(UploadCategory.GALLERY)))

    assert codec.qualities == [0.8]


def test_transparent_image_declared_as_jpeg_is_flattened():
    source = ImageFile(name="logo.jpg", content_type="image/jpeg", data=make_image_bytes(64, 64, "PNG", "RGBA"))

    optimized = asyncio.run(Resampler().resample(source, resolve_upload_options(UploadCategory.GALLERY)))

    with Image.open(io.BytesIO(optimized.data)) as stored_image:
        assert stored_image.format == "JPEG"
        assert stored_image.mode == "RGB"


def test_corrupt_bytes_return_original_file():
    source = ImageFile(name="broken.jpg", content_type="image/jpeg", data=b"\xff\xd8not really a jpeg")

    optimized = asyncio.run(Resampler().resample(source, resolve_upload_options(UploadCategory.GALLERY)))

    assert optimized is source


def test_encode_failure_returns_original_file():
    source = ImageFile(name="a.png", content_type="image/png", data=make_image_bytes(2000, 2000, "PNG"))

    optimized = asyncio.run(
        Resampler(FailingEncodeCodec()).resample(source, resolve_upload_options(UploadCategory.GALLERY))
    )

    assert optimized is source


def test_partial_options_still_bound_the_image():
    source = ImageFile(name="square.jpg", content_type="image/jpeg", data=make_image_bytes(3000, 3000))

    optimized = asyncio.run(Resampler().resample(source, UploadOptions(quality=0.5)))

    assert optimized is not source
    assert image_dimensions(optimized.data) == (1200, 1200)


def test_partial_options_use_the_given_category():
    source = ImageFile(name="me.jpg", content_type="image/jpeg", data=make_image_bytes(1600, 1200))

    optimized = asyncio.run(Resampler().resample(source, {"quality": 0.5}, UploadCategory.PROFILE))

    assert image_dimensions(optimized.data) == (800, 600)
