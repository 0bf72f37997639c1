import pytest
from fastapi import HTTPException

import media_helpers
from errors import StoreUnavailableError, TooManyFilesError
from media_helpers import (
    build_storage_path,
    check_batch_capacity,
    confirm_path_ownership,
    pipeline_error_to_http,
    sanitize_file_name,
)
from models import UploadCategory


@pytest.mark.parametrize(
    "original, expected",
    [
        ("photo.jpg", "photo.jpg"),
        ("my photo (1).JPG", "myphoto1.JPG"),
        ("a_b-c.d.png", "a_b-c.d.png"),
        ("../../etc/passwd", "....etcpasswd"),
        ("证书.png", ".png"),
        ("证书", "image"),
    ],
)
def test_sanitize_file_name(original, expected):
    assert sanitize_file_name(original) == expected


def test_build_storage_path_layout():
    file_name, path = build_storage_path("u1", UploadCategory.GALLERY, "my photo.jpg", 1700000000000)
    assert file_name == "1700000000000-myphoto.jpg"
    assert path == "users/u1/gallery/1700000000000-myphoto.jpg"


def test_same_name_at_different_instants_never_collides():
    _, first = build_storage_path("u1", "certificates", "cert.png", 1700000000000)
    _, second = build_storage_path("u1", "certificates", "cert.png", 1700000000001)
    assert first != second


def test_build_storage_path_defaults_to_current_millis(monkeypatch):
    monkeypatch.setattr(media_helpers.time, "time", lambda: 1700000000.123)
    file_name, path = build_storage_path("u9", UploadCategory.PROFILE, "me.webp")
    assert file_name == "1700000000123-me.webp"
    assert path == "users/u9/profile/1700000000123-me.webp"


def test_batch_capacity_allows_up_to_max_count():
    check_batch_capacity(UploadCategory.GALLERY, existing_count=18, index=0)
    check_batch_capacity(UploadCategory.GALLERY, existing_count=18, index=1)
    with pytest.raises(TooManyFilesError) as exc_info:
        check_batch_capacity(UploadCategory.GALLERY, existing_count=18, index=2)
    assert exc_info.value.max_count == 20


def test_batch_capacity_uses_category_default_and_explicit_hint():
    with pytest.raises(TooManyFilesError):
        check_batch_capacity(UploadCategory.PROFILE, existing_count=1, index=0)
    check_batch_capacity(UploadCategory.PROFILE, existing_count=1, index=0, max_count=2)


def test_confirm_path_ownership():
    assert confirm_path_ownership("users/u1/gallery/a.jpg", "u1") == "users/u1/gallery/a.jpg"
    for foreign_path in ("users/u2/gallery/a.jpg", "users/u1/../u2/gallery/a.jpg", "users/u10/a.jpg"):
        with pytest.raises(HTTPException) as exc_info:
            confirm_path_ownership(foreign_path, "u1")
        assert exc_info.value.status_code == 403


def test_pipeline_error_to_http():
    http_error = pipeline_error_to_http(StoreUnavailableError())
    assert http_error.status_code == 503
    assert http_error.detail["error"] == "STORE_UNAVAILABLE"
    assert http_error.detail["retryable"] is True
