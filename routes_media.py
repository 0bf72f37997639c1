from fastapi import APIRouter, HTTPException, status, Depends, UploadFile, File, Form, Query
from pydantic import ValidationError
from typing import Optional, List
import logging

from auth import get_current_user_id
from coordinator import UploadCoordinator
from errors import MediaPipelineError
from media_helpers import confirm_path_ownership, pipeline_error_to_http
from models import (
    BatchStrategy,
    ImageFile,
    MediaDeleteResponse,
    UploadBatchResponse,
    UploadCategory,
    UploadOptions,
)
from storage import blob_storage

log_handler = logging.getLogger(__name__)

api_router = APIRouter(prefix="/media", tags=["Media Management"])


def get_upload_coordinator() -> UploadCoordinator:
    return UploadCoordinator(blob_storage)


@api_router.post("/{category}", response_model=UploadBatchResponse, status_code=status.HTTP_201_CREATED)
async def upload_category_images(
    category: UploadCategory,
    files: List[UploadFile] = File(...),
    existingCount: int = Form(0, ge=0),
    maxSizeMB: Optional[float] = Form(None),
    maxWidth: Optional[int] = Form(None),
    maxHeight: Optional[int] = Form(None),
    quality: Optional[float] = Form(None),
    strategy: BatchStrategy = Query(BatchStrategy.SEQUENTIAL),
    account_identifier: str = Depends(get_current_user_id),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    """
    Validate, optimize and store one or more images in a category
    """
    try:
        upload_options = UploadOptions(
            maxSizeMB=maxSizeMB,
            maxWidth=maxWidth,
            maxHeight=maxHeight,
            quality=quality,
        )
    except ValidationError as options_error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=options_error.errors(include_url=False, include_context=False),
        )

    try:
        image_files = [
            ImageFile(
                name=uploaded_file.filename or "",
                content_type=uploaded_file.content_type or "",
                data=await uploaded_file.read(),
            )
            for uploaded_file in files
        ]

        upload_results = await coordinator.upload_many(
            image_files,
            account_identifier,
            category,
            upload_options,
            existing_count=existingCount,
            strategy=strategy,
        )

        return UploadBatchResponse(items=upload_results, total=len(upload_results))

    except MediaPipelineError as pipeline_error:
        log_handler.warning(f"Upload to {category.value} rejected for {account_identifier}: {pipeline_error}")
        raise pipeline_error_to_http(pipeline_error)
    except Exception as system_error:
        log_handler.error(f"Image upload failed: {system_error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Upload failed, please try again",
        )


@api_router.delete("", response_model=MediaDeleteResponse, status_code=status.HTTP_200_OK)
async def remove_image(
    path: Optional[str] = Query(None, min_length=1),
    url: Optional[str] = Query(None, min_length=1),
    account_identifier: str = Depends(get_current_user_id),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    """
    Delete a stored image by its storage path, or by its URL for legacy references
    """
    if path is None and url is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either path or url must be provided",
        )

    storage_path = coordinator.resolve_reference(storage_path=path, url=url)
    if storage_path is None:
        return MediaDeleteResponse(path=None, remoteDeleted=False)

    confirm_path_ownership(storage_path, account_identifier)

    try:
        await coordinator.delete_image(storage_path)
        return MediaDeleteResponse(path=storage_path, remoteDeleted=True)

    except MediaPipelineError as pipeline_error:
        log_handler.error(f"Image deletion failed for {storage_path}: {pipeline_error}")
        raise pipeline_error_to_http(pipeline_error)
    except Exception as deletion_error:
        log_handler.error(f"Image deletion failed: {deletion_error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete image, please try again",
        )

