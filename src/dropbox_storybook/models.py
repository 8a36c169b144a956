"""Structured models returned by the Dropbox layer and the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FolderEntry(BaseModel):
    """One entry from ``files/list_folder`` as Dropbox returns it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tag: str = Field(alias=".tag")
    name: str
    id: str | None = None
    path_display: str | None = None
    path_lower: str | None = None
    size: int | None = None
    media_info: dict[str, Any] | None = None

    @property
    def dimensions(self) -> tuple[int | None, int | None]:
        metadata = (self.media_info or {}).get("metadata") or {}
        dims = metadata.get("dimensions") or {}
        return dims.get("width"), dims.get("height")


class ListFolderResult(BaseModel):
    entries: list[FolderEntry]
    cursor: str | None = None
    has_more: bool = False


class Photo(_WireModel):
    id: str
    name: str
    path: str
    url: str
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")
    width: int | None = None
    height: int | None = None
    size: int = 0


class PhotoPage(_WireModel):
    photos: list[Photo]
    cursor: str | None = None
    has_more: bool
    token_refreshed: bool = Field(default=False, alias="tokenRefreshed")
    skipped: int = 0


class PhotoCount(_WireModel):
    count: int
    folder_path: str = Field(alias="folderPath")
    token_refreshed: bool = Field(default=False, alias="tokenRefreshed")


class MoveFailure(_WireModel):
    path: str
    error: str


class BatchMoveResult(_WireModel):
    success: list[str] = Field(default_factory=list)
    failed: list[MoveFailure] = Field(default_factory=list)
    folder_created: bool = Field(default=False, alias="folderCreated")


class BatchMoveRequest(BaseModel):
    paths: list[str] = Field(min_length=1)
    destination_folder: str = Field(alias="destinationFolder", min_length=1)


class DuplicateGroup(_WireModel):
    id: str
    hash: str
    photos: list[Photo]


class DuplicatePage(_WireModel):
    groups: list[DuplicateGroup]
    cursor: str | None = None
    has_more: bool
    token_refreshed: bool = Field(default=False, alias="tokenRefreshed")


class DateRange(BaseModel):
    start: datetime
    end: datetime


class PhotoFilter(BaseModel):
    """Closed set of listing filters; every field that is set must match."""

    model_config = ConfigDict(extra="forbid")

    tags: list[str] | None = None
    date_range: DateRange | None = None
    search_term: str | None = None


class StoredPhoto(_WireModel):
    photo_id: str
    owner_id: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    dropbox_file_id: str | None = None
    dropbox_url: str | None = None
    dropbox_metadata: dict[str, Any] | None = None
    hash: str | None = None
    file_size: int | None = None
    source: list[str] = Field(default_factory=list)


class Collection(_WireModel):
    collection_id: str
    user_id: str
    name: str
    photo_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    type: Literal["album", "scrapbook"] = "album"
    created_at: datetime
    updated_at: datetime


class CollectionCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    photo_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    type: Literal["album", "scrapbook"] = "album"


class CollectionUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1)
    photo_ids: list[str] | None = None
    tags: list[str] | None = None
    type: Literal["album", "scrapbook"] | None = None


class ScrapbookPage(_WireModel):
    id: str
    template: Literal["full-bleed", "two-up", "grid"]
    photos: list[StoredPhoto]
    caption: str = ""
