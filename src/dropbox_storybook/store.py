"""Gallery data store: photo records and user collections."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Protocol

from .errors import NotFoundError
from .models import Collection, CollectionCreate, CollectionUpdate, PhotoFilter, StoredPhoto

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def matches(photo: StoredPhoto, filters: PhotoFilter) -> bool:
    if filters.tags and not any(tag in photo.tags for tag in filters.tags):
        return False
    if filters.date_range is not None:
        created = _aware(photo.created_at)
        if not (_aware(filters.date_range.start) <= created <= _aware(filters.date_range.end)):
            return False
    if filters.search_term:
        term = filters.search_term.lower()
        name = str((photo.dropbox_metadata or {}).get("name") or "").lower()
        if term not in name and not any(term in tag.lower() for tag in photo.tags):
            return False
    return True


class GalleryStore(Protocol):
    async def get_photos(self, owner_id: str, filters: PhotoFilter | None = None) -> list[StoredPhoto]: ...

    async def get_photo(self, photo_id: str) -> StoredPhoto | None: ...

    async def create_photo(self, photo: dict[str, Any]) -> StoredPhoto: ...

    async def delete_photo(self, photo_id: str) -> None: ...

    async def get_collections(
        self, user_id: str, type: Literal["album", "scrapbook"] | None = None
    ) -> list[Collection]: ...

    async def get_collection(self, collection_id: str) -> Collection | None: ...

    async def create_collection(self, user_id: str, data: CollectionCreate) -> Collection: ...

    async def update_collection(self, collection_id: str, updates: CollectionUpdate) -> Collection: ...

    async def delete_collection(self, collection_id: str) -> None: ...

    async def add_photos_to_collection(self, collection_id: str, photo_ids: list[str]) -> Collection: ...

    async def remove_photos_from_collection(self, collection_id: str, photo_ids: list[str]) -> Collection: ...


class InMemoryStore:
    """Store kept in process memory; changes last for the life of the process."""

    def __init__(
        self,
        photos: list[StoredPhoto] | None = None,
        collections: list[Collection] | None = None,
    ) -> None:
        self._photos: dict[str, StoredPhoto] = {p.photo_id: p for p in photos or []}
        self._collections: dict[str, Collection] = {c.collection_id: c for c in collections or []}

    @classmethod
    def from_file(cls, path: str | Path) -> InMemoryStore:
        """Load ``{"photos": [...], "collections": [...]}`` from a JSON file."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        photos = [StoredPhoto.model_validate(p) for p in raw.get("photos") or []]
        collections = [Collection.model_validate(c) for c in raw.get("collections") or []]
        logger.info("Seeded store with %d photos and %d collections", len(photos), len(collections))
        return cls(photos=photos, collections=collections)

    def _require_collection(self, collection_id: str) -> Collection:
        collection = self._collections.get(collection_id)
        if collection is None:
            raise NotFoundError(f"Collection {collection_id} not found")
        return collection

    async def get_photos(self, owner_id: str, filters: PhotoFilter | None = None) -> list[StoredPhoto]:
        photos = [p for p in self._photos.values() if p.owner_id == owner_id]
        if filters is None:
            return photos
        return [p for p in photos if matches(p, filters)]

    async def get_photo(self, photo_id: str) -> StoredPhoto | None:
        return self._photos.get(photo_id)

    async def create_photo(self, photo: dict[str, Any]) -> StoredPhoto:
        now = _now()
        record = StoredPhoto.model_validate(
            {**photo, "photo_id": f"photo-{uuid.uuid4().hex[:12]}", "created_at": now, "updated_at": now}
        )
        self._photos[record.photo_id] = record
        return record

    async def delete_photo(self, photo_id: str) -> None:
        if self._photos.pop(photo_id, None) is None:
            raise NotFoundError(f"Photo {photo_id} not found")
        for collection in self._collections.values():
            if photo_id in collection.photo_ids:
                collection.photo_ids = [i for i in collection.photo_ids if i != photo_id]

    async def get_collections(
        self, user_id: str, type: Literal["album", "scrapbook"] | None = None
    ) -> list[Collection]:
        return [
            c
            for c in self._collections.values()
            if c.user_id == user_id and (type is None or c.type == type)
        ]

    async def get_collection(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)

    async def create_collection(self, user_id: str, data: CollectionCreate) -> Collection:
        now = _now()
        collection = Collection(
            collection_id=f"coll-{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self._collections[collection.collection_id] = collection
        return collection

    async def update_collection(self, collection_id: str, updates: CollectionUpdate) -> Collection:
        collection = self._require_collection(collection_id)
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        updated = collection.model_copy(update={**changes, "updated_at": _now()})
        self._collections[collection_id] = updated
        return updated

    async def delete_collection(self, collection_id: str) -> None:
        self._require_collection(collection_id)
        del self._collections[collection_id]

    async def add_photos_to_collection(self, collection_id: str, photo_ids: list[str]) -> Collection:
        collection = self._require_collection(collection_id)
        for photo_id in photo_ids:
            if photo_id not in collection.photo_ids:
                collection.photo_ids.append(photo_id)
        collection.updated_at = _now()
        return collection

    async def remove_photos_from_collection(self, collection_id: str, photo_ids: list[str]) -> Collection:
        collection = self._require_collection(collection_id)
        drop = set(photo_ids)
        collection.photo_ids = [i for i in collection.photo_ids if i not in drop]
        collection.updated_at = _now()
        return collection
