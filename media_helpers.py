"""
Helper utilities for media route and pipeline operations
Contains storage naming, batch accounting and ownership checks
"""

from fastapi import HTTPException, status
from typing import Optional, Tuple
import logging
import re
import time

from errors import MediaPipelineError, TooManyFilesError
from models import CATEGORY_POLICIES, UploadCategory

log_handler = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")
FALLBACK_FILENAME = "image"


def sanitize_file_name(original_file_name: str) -> str:
    """Strip every character outside [A-Za-z0-9._-]"""
    return UNSAFE_FILENAME_CHARS.sub("", original_file_name or "") or FALLBACK_FILENAME


def build_storage_path(
    user_id: str,
    category: UploadCategory,
    original_file_name: str,
    timestamp_ms: Optional[int] = None,
) -> Tuple[str, str]:
    """
    Derive the stored file name and storage path for an upload

    Args:
        user_id: Authenticated account identifier
        category: Upload category bucket
        original_file_name: Name the file was submitted with
        timestamp_ms: Unix time in milliseconds, defaults to now

    Returns:
        tuple: (file_name, path) as "{ts}-{name}" and
        "users/{user_id}/{category}/{ts}-{name}"
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    category = UploadCategory(category)
    file_name = f"{timestamp_ms}-{sanitize_file_name(original_file_name)}"
    return file_name, f"users/{user_id}/{category.value}/{file_name}"


def check_batch_capacity(
    category: UploadCategory,
    existing_count: int,
    index: int,
    max_count: Optional[int] = None,
) -> None:
    """
    Confirm that the file at `index` of a batch still fits the category limit

    Raises:
        TooManyFilesError: existing_count + index + 1 exceeds max_count
    """
    if max_count is None:
        max_count = CATEGORY_POLICIES[UploadCategory(category)].max_count

    requested_count = existing_count + index + 1
    if requested_count > max_count:
        raise TooManyFilesError(max_count, requested_count)


def user_storage_prefix(account_identifier: str) -> str:
    return f"users/{account_identifier}/"


def confirm_path_ownership(storage_path: str, account_identifier: str) -> str:
    """
    Confirm a storage path belongs to the requesting account

    Args:
        storage_path: Storage-internal key of the object
        account_identifier: Unique identifier for the requesting account

    Returns:
        str: The storage path, unchanged

    Raises:
        HTTPException: When the path is outside the account's prefix
    """
    segments = storage_path.split("/")
    if not storage_path.startswith(user_storage_prefix(account_identifier)) or ".." in segments:
        log_handler.warning(f"Ownership check failed for {storage_path} by {account_identifier}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Authorization failed: insufficient rights to access this image",
        )
    return storage_path


def pipeline_error_to_http(pipeline_error: MediaPipelineError) -> HTTPException:
    """Translate a pipeline failure into the HTTP error surfaced to the client"""
    return HTTPException(
        status_code=pipeline_error.status_code,
        detail=pipeline_error.to_dict(),
    )
