import io
from typing import Dict, List, Optional
from urllib.parse import quote, unquote, urlsplit

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from coordinator import UploadCoordinator
from errors import NotFoundError
from main import app
from models import UploadCategory
from resampler import Resampler
from routes_media import get_upload_coordinator
from storage import DEFAULT_CONTENT_TYPE, StorageClient

FIXED_TIMESTAMP_MS = 1700000000000
MEMORY_STORE_BASE = "https://store.test/o/"


class InMemoryStorageClient(StorageClient):
    """Blob store double that records every call"""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.put_calls: List[str] = []
        self.delete_calls: List[str] = []
        self.put_error: Optional[Exception] = None

    async def put(self, path, data, content_type=DEFAULT_CONTENT_TYPE):
        self.put_calls.append(path)
        if self.put_error is not None:
            raise self.put_error
        self.objects[path] = data
        self.content_types[path] = content_type
        return f"{MEMORY_STORE_BASE}{quote(path, safe='')}?alt=media"

    async def delete(self, path):
        self.delete_calls.append(path)
        if path not in self.objects:
            raise NotFoundError(path)
        del self.objects[path]

    async def exists(self, path):
        return path in self.objects

    def resolve_path_from_url(self, url):
        if not url.startswith(MEMORY_STORE_BASE):
            return None
        return unquote(urlsplit(url).path.rsplit("/", 1)[-1]) or None


class CountingResampler(Resampler):
    def __init__(self, codec=None):
        super().__init__(codec)
        self.calls = 0

    async def resample(self, image_file, options=None, category=UploadCategory.GALLERY):
        self.calls += 1
        return await super().resample(image_file, options, category)


def make_image_bytes(width: int, height: int, image_format: str = "JPEG", mode: str = "RGB") -> bytes:
    color = (30, 120, 200, 128) if mode == "RGBA" else (30, 120, 200)
    source_image = Image.new(mode, (width, height), color)
    byte_buffer = io.BytesIO()
    source_image.save(byte_buffer, format=image_format)
    return byte_buffer.getvalue()


def image_dimensions(data: bytes):
    with Image.open(io.BytesIO(data)) as stored_image:
        return stored_image.size


@pytest.fixture
def memory_storage():
    return InMemoryStorageClient()


@pytest.fixture
def counting_resampler():
    return CountingResampler()


@pytest.fixture
def coordinator(memory_storage, counting_resampler):
    timestamps = iter(range(FIXED_TIMESTAMP_MS, FIXED_TIMESTAMP_MS + 10_000))
    return UploadCoordinator(
        memory_storage,
        resampler=counting_resampler,
        clock=lambda: next(timestamps),
    )


@pytest.fixture
def client(coordinator):
    app.dependency_overrides[get_upload_coordinator] = lambda: coordinator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
