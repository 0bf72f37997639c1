"""
Image resampling: downscale to fit category bounds and recompress before upload.

Decoding and encoding go through an ImageCodec so the scaling logic does not
depend on a particular imaging library. Optimization is best-effort: any
decode or encode failure hands back the original file untouched.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from PIL import Image, ImageOps
import asyncio
import io
import logging

from models import ImageFile, OptionsInput, ResolvedUploadOptions, UploadCategory, resolve_upload_options
from utils import normalize_media_type

log_handler = logging.getLogger(__name__)

RasterImage = Image.Image

PILLOW_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}
LOSSY_FORMATS = {"JPEG", "WEBP"}


class ImageCodec(ABC):
    """Decode bytes to a raster surface, resize it and encode it back"""

    @abstractmethod
    def decode(self, data: bytes) -> RasterImage:
        """Decode image bytes. Raises on corrupt or unsupported input."""

    @abstractmethod
    def resize(self, raster: RasterImage, size: Tuple[int, int]) -> RasterImage:
        """Render the raster onto a surface of the given (width, height)."""

    @abstractmethod
    def encode(self, raster: RasterImage, content_type: str, quality: float) -> bytes:
        """Encode the raster as content_type. quality is a 0-1 lossy factor."""


class PillowImageCodec(ImageCodec):
    def decode(self, data: bytes) -> RasterImage:
        source_image = Image.open(io.BytesIO(data))
        source_image.load()
        # Apply camera orientation so width/height match what the user sees
        return ImageOps.exif_transpose(source_image)

    def resize(self, raster: RasterImage, size: Tuple[int, int]) -> RasterImage:
        return raster.resize(size, Image.Resampling.LANCZOS)

    def encode(self, raster: RasterImage, content_type: str, quality: float) -> bytes:
        image_format = PILLOW_FORMATS.get(normalize_media_type(content_type))
        if image_format is None:
            raise ValueError(f"No encoder for content type '{content_type}'")

        if image_format == "JPEG" and raster.mode not in ("RGB", "L", "CMYK"):
            raster = _flatten_onto_white(raster)

        save_options = {"optimize": True}
        if image_format in LOSSY_FORMATS:
            # Pillow takes an integer quality in 0-100
            save_options["quality"] = max(1, min(100, round(quality * 100)))

        byte_buffer = io.BytesIO()
        raster.save(byte_buffer, format=image_format, **save_options)
        return byte_buffer.getvalue()


def _flatten_onto_white(raster: RasterImage) -> RasterImage:
    if raster.mode == "P":
        raster = raster.convert("RGBA")
    if raster.mode in ("RGBA", "LA"):
        white_canvas = Image.new("RGB", raster.size, (255, 255, 255))
        white_canvas.paste(raster, mask=raster.split()[-1])
        return white_canvas
    return raster.convert("RGB")


def compute_target_size(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """
    Fit (width, height) inside (max_width, max_height) without upscaling.

    The ratio is the smaller of the two axis ratios so neither axis exceeds
    its bound and the aspect ratio is kept.
    """
    if width <= max_width and height <= max_height:
        return width, height

    ratio = min(max_width / width, max_height / height)
    target_width = min(max_width, max(1, round(width * ratio)))
    target_height = min(max_height, max(1, round(height * ratio)))
    return target_width, target_height


class Resampler:
    def __init__(self, codec: Optional[ImageCodec] = None):
        self.codec = codec or PillowImageCodec()

    async def resample(
        self,
        image_file: ImageFile,
        options: OptionsInput = None,
        category: UploadCategory = UploadCategory.GALLERY,
    ) -> ImageFile:
        """
        Downscale and recompress an image, or return it unchanged on failure.
        Unset options fall back to the category defaults.

        Returns:
            ImageFile: Same name and content type as the input, re-encoded bytes
        """
        options = resolve_upload_options(category, options)
        try:
            return await asyncio.to_thread(self._resample, image_file, options)
        except Exception as resample_error:
            log_handler.warning(
                f"Image optimization skipped for {image_file.name}, uploading original: {resample_error}"
            )
            return image_file

    def _resample(self, image_file: ImageFile, options: ResolvedUploadOptions) -> ImageFile:
        raster = self.codec.decode(image_file.data)
        source_size = (raster.width, raster.height)
        target_size = compute_target_size(
            raster.width, raster.height, options.max_width, options.max_height
        )

        if target_size != source_size:
            raster = self.codec.resize(raster, target_size)

        encoded = self.codec.encode(raster, image_file.content_type, options.quality)
        log_handler.debug(
            f"Resampled {image_file.name}: {source_size} -> {target_size}, "
            f"{image_file.size} -> {len(encoded)} bytes"
        )
        return ImageFile(name=image_file.name, content_type=image_file.content_type, data=encoded)
