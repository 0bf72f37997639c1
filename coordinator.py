"""
Upload coordination: validate -> resample -> name -> store, for one file or a
batch, plus the delete path for previously returned references.

Batches run under one of two explicit strategies (see models.BatchStrategy).
The sequential strategy is the default and the only one that reports
progress. Neither strategy rolls back objects stored before a failure.
"""

from typing import Callable, List, Optional, Sequence
import asyncio
import logging

from errors import MediaPipelineError, NotFoundError, StoreUnavailableError
from media_helpers import build_storage_path, check_batch_capacity
from models import (
    BatchStrategy,
    ImageFile,
    OptionsInput,
    UploadCategory,
    UploadResult,
    resolve_upload_options,
)
from resampler import Resampler
from storage import StorageClient
from utils import validate_image_file

log_handler = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class UploadCoordinator:
    def __init__(
        self,
        storage: StorageClient,
        resampler: Optional[Resampler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            storage: Blob store the objects are written to
            resampler: Image optimizer, a Pillow-backed one by default
            clock: Returns unix time in milliseconds, used for naming
        """
        self.storage = storage
        self.resampler = resampler or Resampler()
        self.clock = clock

    async def upload_one(
        self,
        image_file: ImageFile,
        user_id: str,
        category: UploadCategory,
        options: OptionsInput = None,
    ) -> UploadResult:
        """
        Upload a single image

        The first failing stage short-circuits. Validation failures happen
        before anything is decoded or sent; resampling failures are absorbed
        by the resampler; store failures surface as typed errors.

        Raises:
            MediaPipelineError: Validation or store failure
        """
        category = UploadCategory(category)
        resolved_options = resolve_upload_options(category, options)

        validate_image_file(image_file, resolved_options, category)

        optimized_file = await self.resampler.resample(image_file, resolved_options, category)

        timestamp_ms = self.clock() if self.clock else None
        file_name, storage_path = build_storage_path(
            user_id, category, image_file.name, timestamp_ms
        )

        try:
            download_url = await self.storage.put(
                storage_path, optimized_file.data, optimized_file.content_type
            )
        except MediaPipelineError:
            raise
        except Exception as store_error:
            log_handler.error(f"Image upload failed for {storage_path}: {store_error}")
            raise StoreUnavailableError(details={"path": storage_path}) from store_error

        log_handler.info(f"Stored {image_file.name} for {user_id} at {storage_path}")
        return UploadResult(url=download_url, path=storage_path, fileName=file_name)

    async def upload_many(
        self,
        image_files: Sequence[ImageFile],
        user_id: str,
        category: UploadCategory,
        options: OptionsInput = None,
        existing_count: int = 0,
        max_count: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        strategy: BatchStrategy = BatchStrategy.SEQUENTIAL,
    ) -> List[UploadResult]:
        """Upload a batch with the chosen strategy. Sequential by default."""
        if BatchStrategy(strategy) is BatchStrategy.PARALLEL:
            if on_progress is not None:
                raise ValueError("Progress reporting is only available for sequential batches")
            return await self.upload_many_parallel(
                image_files, user_id, category, options, existing_count, max_count
            )
        return await self.upload_many_sequential(
            image_files, user_id, category, options, existing_count, max_count, on_progress
        )

    async def upload_many_sequential(
        self,
        image_files: Sequence[ImageFile],
        user_id: str,
        category: UploadCategory,
        options: OptionsInput = None,
        existing_count: int = 0,
        max_count: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[UploadResult]:
        """
        Upload files one at a time, in input order

        Each file is checked against the aggregate count right before it is
        processed, so earlier files stay stored when a later one is refused.
        on_progress receives (completed / total) * 100 after each file.
        """
        upload_results: List[UploadResult] = []
        total_count = len(image_files)

        for index, image_file in enumerate(image_files):
            check_batch_capacity(category, existing_count, index, max_count)
            upload_results.append(
                await self.upload_one(image_file, user_id, category, options)
            )

            progress = len(upload_results) / total_count * 100
            log_handler.debug(f"Batch upload progress for {user_id}: {progress:.0f}%")
            if on_progress is not None:
                on_progress(progress)

        return upload_results

    async def upload_many_parallel(
        self,
        image_files: Sequence[ImageFile],
        user_id: str,
        category: UploadCategory,
        options: OptionsInput = None,
        existing_count: int = 0,
        max_count: Optional[int] = None,
    ) -> List[UploadResult]:
        """
        Dispatch every upload at once, without progress reporting

        Waits until every dispatched upload has settled, then raises the
        failure of the earliest file in input order if any failed.
        """

        async def upload_at(index: int, image_file: ImageFile) -> UploadResult:
            check_batch_capacity(category, existing_count, index, max_count)
            return await self.upload_one(image_file, user_id, category, options)

        settled = await asyncio.gather(
            *(upload_at(index, image_file) for index, image_file in enumerate(image_files)),
            return_exceptions=True,
        )

        failures = [outcome for outcome in settled if isinstance(outcome, BaseException)]
        if failures:
            log_handler.error(
                f"Parallel upload for {user_id}: {len(failures)} of {len(settled)} failed"
            )
            raise failures[0]
        return list(settled)

    async def delete_image(self, storage_path: str) -> None:
        """
        Delete a stored object by path. An already-missing object counts as deleted.

        Raises:
            MediaPipelineError: Any store failure other than NotFound
        """
        try:
            await self.storage.delete(storage_path)
        except NotFoundError:
            log_handler.info(f"Image already absent, nothing to delete: {storage_path}")
        except MediaPipelineError:
            raise
        except Exception as delete_error:
            log_handler.error(f"Image deletion failed for {storage_path}: {delete_error}")
            raise StoreUnavailableError(
                "Failed to delete image, please try again", {"path": storage_path}
            ) from delete_error

    def resolve_reference(
        self,
        storage_path: Optional[str] = None,
        url: Optional[str] = None,
    ) -> Optional[str]:
        """
        Turn a delete reference into a storage path. A path wins over a URL.

        Returns:
            Optional[str]: None when only a URL was given and the store could
            not map it back to a path

        Raises:
            ValueError: Neither a path nor a URL was given
        """
        if storage_path is not None:
            return storage_path
        if url is None:
            raise ValueError("Either a storage path or a URL is required")

        storage_path = self.storage.resolve_path_from_url(url)
        if storage_path is None:
            log_handler.warning(f"Could not resolve a storage path from {url}, skipping remote delete")
        return storage_path

    async def remove_image(
        self,
        storage_path: Optional[str] = None,
        url: Optional[str] = None,
    ) -> bool:
        """
        Delete by path, or by a legacy URL when only the URL was kept

        Returns:
            bool: False when the URL could not be mapped to a path and the
            remote delete was skipped; the caller may still drop its reference
        """
        storage_path = self.resolve_reference(storage_path, url)
        if storage_path is None:
            return False

        await self.delete_image(storage_path)
        return True
