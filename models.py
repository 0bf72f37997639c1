"""
Data models for the media upload pipeline
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class UploadCategory(str, Enum):
    PROFILE = "profile"
    GALLERY = "gallery"
    CERTIFICATES = "certificates"


class BatchStrategy(str, Enum):
    """
    How a batch of files is dispatched to the store

    SEQUENTIAL uploads one file at a time and reports progress after each.
    PARALLEL dispatches every file at once and reports no progress.
    """

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass(frozen=True)
class ImageFile:
    """Raw file bytes plus the metadata the browser or client declared"""

    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class UploadOptions(BaseModel):
    """
    Per-call upload options. Every field is optional; unset fields fall back
    to the category policy when resolved.
    """

    model_config = ConfigDict(populate_by_name=True)

    max_size_mb: Optional[float] = Field(default=None, alias="maxSizeMB", gt=0)
    max_width: Optional[int] = Field(default=None, alias="maxWidth", gt=0)
    max_height: Optional[int] = Field(default=None, alias="maxHeight", gt=0)
    quality: Optional[float] = Field(default=None, ge=0, le=1)


class ResolvedUploadOptions(BaseModel):
    """Upload options with every field populated, as the validator and resampler need them"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    max_size_mb: float = Field(alias="maxSizeMB", gt=0)
    max_width: int = Field(alias="maxWidth", gt=0)
    max_height: int = Field(alias="maxHeight", gt=0)
    quality: float = Field(ge=0, le=1)

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


@dataclass(frozen=True)
class CategoryPolicy:
    max_count: int
    defaults: ResolvedUploadOptions


CATEGORY_POLICIES: Dict[UploadCategory, CategoryPolicy] = {
    UploadCategory.PROFILE: CategoryPolicy(
        max_count=1,
        defaults=ResolvedUploadOptions(max_size_mb=5, max_width=800, max_height=800, quality=0.9),
    ),
    UploadCategory.GALLERY: CategoryPolicy(
        max_count=20,
        defaults=ResolvedUploadOptions(max_size_mb=5, max_width=1200, max_height=1200, quality=0.8),
    ),
    UploadCategory.CERTIFICATES: CategoryPolicy(
        max_count=8,
        defaults=ResolvedUploadOptions(max_size_mb=10, max_width=1200, max_height=1200, quality=0.85),
    ),
}


OptionsInput = Union[ResolvedUploadOptions, UploadOptions, Mapping[str, Any], None]


def resolve_upload_options(category: UploadCategory, options: OptionsInput = None) -> ResolvedUploadOptions:
    """
    Merge caller options over the category defaults

    Args:
        category: Upload category whose policy supplies the defaults
        options: Partial options, as a model or a mapping using either
            field names or camelCase aliases. Already resolved options are
            returned as they are.

    Returns:
        ResolvedUploadOptions: Options with every field populated
    """
    if isinstance(options, ResolvedUploadOptions):
        return options

    category = UploadCategory(category)
    merged = CATEGORY_POLICIES[category].defaults.model_dump()

    if options is not None:
        if not isinstance(options, UploadOptions):
            options = UploadOptions.model_validate(dict(options))
        merged.update(options.model_dump(exclude_none=True))

    return ResolvedUploadOptions(**merged)


class UploadResult(BaseModel):
    """Reference to a stored object. url is for display, path is for deletion."""

    model_config = ConfigDict(frozen=True)

    url: str
    path: str
    fileName: str


class UploadBatchResponse(BaseModel):
    items: List[UploadResult]
    total: int


class MediaDeleteResponse(BaseModel):
    path: Optional[str] = None
    remoteDeleted: bool
