"""
Blob store clients.

A StorageClient puts bytes at a path and returns a URL, deletes by path and
can map a previously issued URL back to its path. The pipeline never caches
existence; the store is the source of truth.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote, urlsplit
import errno
import logging
import re

import aiofiles
import aiofiles.os
import httpx

from config import Settings, settings
from errors import (
    CanceledError,
    NotFoundError,
    QuotaExceededError,
    StoreUnavailableError,
    UnauthorizedError,
)

log_handler = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
STORE_FULL_ERRNOS = (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC))


class StorageClient(ABC):
    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> str:
        """
        Store bytes at path and return a dereferenceable URL

        Raises:
            UnauthorizedError, QuotaExceededError, StoreUnavailableError, CanceledError
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """
        Remove the object at path

        Raises:
            NotFoundError: Object already absent
            StoreUnavailableError: Transient failure
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Ask the store whether an object is present at path"""

    @abstractmethod
    def resolve_path_from_url(self, url: str) -> Optional[str]:
        """Best-effort reverse mapping of a URL issued by put; None if not parseable"""


class FirebaseStorageClient(StorageClient):
    """Firebase / GCS object storage over its REST endpoint"""

    OBJECT_SEGMENT = re.compile(r"/o/([^/]+)$")

    def __init__(
        self,
        bucket: str,
        base_url: str = "https://firebasestorage.googleapis.com/v0",
        auth_token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.transport = transport

    @property
    def objects_url(self) -> str:
        return f"{self.base_url}/b/{self.bucket}/o"

    def object_url(self, path: str) -> str:
        return f"{self.objects_url}/{quote(path, safe='')}"

    def _headers(self) -> dict:
        if not self.auth_token:
            return {}
        return {"Authorization": f"Bearer {self.auth_token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def put(self, path: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> str:
        headers = {**self._headers(), "Content-Type": content_type}
        try:
            async with self._client() as client:
                response = await client.post(
                    self.objects_url,
                    params={"uploadType": "media", "name": path},
                    content=data,
                    headers=headers,
                )
        except httpx.HTTPError as transport_error:
            log_handler.error(f"Upload of {path} failed: {transport_error}")
            raise StoreUnavailableError(details={"path": path}) from transport_error

        _raise_for_store_status(response, path)

        download_tokens = _download_tokens(response)
        download_url = f"{self.object_url(path)}?alt=media"
        if download_tokens:
            download_url += f"&token={download_tokens.split(',')[0]}"
        return download_url

    async def delete(self, path: str) -> None:
        try:
            async with self._client() as client:
                response = await client.delete(self.object_url(path), headers=self._headers())
        except httpx.HTTPError as transport_error:
            log_handler.error(f"Delete of {path} failed: {transport_error}")
            raise StoreUnavailableError(
                "Failed to delete image, please try again", {"path": path}
            ) from transport_error

        _raise_for_store_status(response, path)

    async def exists(self, path: str) -> bool:
        try:
            async with self._client() as client:
                response = await client.get(self.object_url(path), headers=self._headers())
        except httpx.HTTPError as transport_error:
            raise StoreUnavailableError(details={"path": path}) from transport_error

        if response.status_code == 404:
            return False
        _raise_for_store_status(response, path)
        return True

    def resolve_path_from_url(self, url: str) -> Optional[str]:
        try:
            url_path = urlsplit(url).path
        except ValueError:
            return None

        path_match = self.OBJECT_SEGMENT.search(url_path)
        if not path_match:
            return None
        return unquote(path_match.group(1)) or None


def _raise_for_store_status(response: httpx.Response, path: str) -> None:
    if response.is_success:
        return

    status_code = response.status_code
    if status_code == 404:
        raise NotFoundError(path)

    details = {"path": path, "status": status_code}
    log_handler.error(f"Store returned {status_code} for {path}: {response.text[:200]}")

    if status_code in (402, 507) or (status_code == 403 and "quota" in response.text.lower()):
        raise QuotaExceededError(details=details)
    if status_code in (401, 403):
        raise UnauthorizedError(details=details)
    if status_code == 499:
        raise CanceledError(details=details)
    raise StoreUnavailableError(details=details)


def _download_tokens(response: httpx.Response) -> str:
    # the object is already stored here, so a body without metadata only loses the token
    try:
        metadata = response.json()
    except ValueError:
        log_handler.warning(f"Store returned {response.status_code} without object metadata, download URL has no token")
        return ""
    if not isinstance(metadata, dict):
        return ""
    return metadata.get("downloadTokens") or ""


class LocalStorageClient(StorageClient):
    """Objects stored as files under a root directory, served from a public prefix"""

    def __init__(self, root_dir: str, public_base_url: str = "/uploads"):
        self.root_dir = Path(root_dir).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _local_path(self, path: str) -> Path:
        target = (self.root_dir / path).resolve()
        if self.root_dir not in target.parents:
            raise UnauthorizedError("Storage path escapes the upload root", {"path": path})
        return target

    async def put(self, path: str, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> str:
        target = self._local_path(path)
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target, "wb") as out_file:
                await out_file.write(data)
        except PermissionError as write_error:
            raise UnauthorizedError(details={"path": path}) from write_error
        except OSError as write_error:
            log_handler.error(f"Saving {path} failed: {write_error}")
            if write_error.errno in STORE_FULL_ERRNOS:
                raise QuotaExceededError(details={"path": path}) from write_error
            raise StoreUnavailableError(details={"path": path}) from write_error

        log_handler.info(f"Saved upload to {target} ({len(data)} bytes)")
        return f"{self.public_base_url}/{quote(path)}"

    async def delete(self, path: str) -> None:
        target = self._local_path(path)
        try:
            await aiofiles.os.remove(target)
        except FileNotFoundError as missing_error:
            raise NotFoundError(path) from missing_error
        except PermissionError as delete_error:
            raise UnauthorizedError(details={"path": path}) from delete_error
        except OSError as delete_error:
            log_handler.error(f"Deleting {path} failed: {delete_error}")
            raise StoreUnavailableError(
                "Failed to delete image, please try again", {"path": path}
            ) from delete_error

    async def exists(self, path: str) -> bool:
        return await aiofiles.os.path.isfile(self._local_path(path))

    def resolve_path_from_url(self, url: str) -> Optional[str]:
        try:
            url_path = urlsplit(url).path
        except ValueError:
            return None

        prefix = urlsplit(self.public_base_url).path.rstrip("/") + "/"
        if not url_path.startswith(prefix):
            return None
        return unquote(url_path[len(prefix):]) or None


def create_storage_client(app_settings: Settings) -> StorageClient:
    backend = app_settings.storage_backend.lower()
    if backend == "firebase":
        return FirebaseStorageClient(
            bucket=app_settings.firebase_storage_bucket,
            base_url=app_settings.firebase_storage_base_url,
            auth_token=app_settings.firebase_auth_token,
            timeout=app_settings.storage_timeout_seconds,
        )
    if backend == "local":
        return LocalStorageClient(
            root_dir=app_settings.local_storage_dir,
            public_base_url=app_settings.local_public_base_url,
        )
    raise ValueError(f"Unknown storage backend '{app_settings.storage_backend}'")


blob_storage = create_storage_client(settings)
