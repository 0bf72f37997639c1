"""
Validation and small helpers used before any image is processed or stored
"""

from typing import Optional

import httpx
import logging

from config import settings
from errors import InvalidTypeError, OversizeFileError, UnsupportedFormatError
from models import ImageFile, OptionsInput, UploadCategory, resolve_upload_options

log_handler = logging.getLogger(__name__)

MEDIA_TYPE_ALIASES = {"image/jpg": "image/jpeg"}


def normalize_media_type(content_type: Optional[str]) -> str:
    """Lowercase a declared media type, drop parameters and resolve aliases"""
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    return MEDIA_TYPE_ALIASES.get(media_type, media_type)


def validate_image_file(
    image_file: ImageFile,
    options: OptionsInput = None,
    category: UploadCategory = UploadCategory.GALLERY,
) -> None:
    """
    Reject files that break the type or size policy

    Checks run in order: image media type, byte size, format allow-list.
    Nothing is decoded or sent anywhere. Unset options fall back to the
    category defaults.

    Raises:
        InvalidTypeError: Declared media type is not an image type
        OversizeFileError: Byte length exceeds options.max_size_mb
        UnsupportedFormatError: Image type is not jpeg, png or webp
    """
    options = resolve_upload_options(category, options)
    declared_type = normalize_media_type(image_file.content_type)

    if not declared_type.startswith("image/"):
        raise InvalidTypeError(image_file.content_type)

    if image_file.size > options.max_size_bytes:
        log_handler.info(
            f"Rejected {image_file.name}: {render_readable_size(image_file.size)} "
            f"exceeds {options.max_size_mb:g} MB"
        )
        raise OversizeFileError(options.max_size_mb, image_file.size)

    if declared_type not in settings.allowed_image_types_list:
        raise UnsupportedFormatError(image_file.content_type)


def render_readable_size(bytes_count: float) -> str:
    """Convert byte count to human-friendly format"""
    for size_unit in ["B", "KB", "MB", "GB"]:
        if bytes_count < 1024.0:
            return f"{bytes_count:.2f} {size_unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.2f} TB"


async def verify_image_url(
    url: str,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    Check that a stored image URL still serves an image

    Returns:
        bool: True for a 2xx response with an image/* content type
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.head(url, follow_redirects=True)
    except httpx.HTTPError as check_error:
        log_handler.warning(f"Image URL check failed for {url}: {check_error}")
        return False

    content_type = response.headers.get("content-type", "")
    return response.is_success and content_type.lower().startswith("image/")
