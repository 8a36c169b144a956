"""Resolve Dropbox folder listings into pages of displayable photos."""

from __future__ import annotations

import asyncio
import logging

from .dropbox_client import DropboxClient, filter_images
from .models import FolderEntry, Photo, PhotoPage
from .token_refresh import RefreshingCaller

logger = logging.getLogger(__name__)


def _chunks(items: list[FolderEntry], size: int) -> list[list[FolderEntry]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class PhotoListing:
    """Lists a folder page by page and attaches a link and thumbnail to each image."""

    def __init__(
        self,
        client: DropboxClient,
        *,
        batch_size: int = 10,
        min_page_size: int = 50,
        thumbnail_size: str = "w256h256",
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._client = client
        self._batch_size = batch_size
        self._min_page_size = min_page_size
        self._thumbnail_size = thumbnail_size

    async def list_images(
        self,
        call: RefreshingCaller,
        folder: str,
        cursor: str | None = None,
    ) -> tuple[list[FolderEntry], str | None, bool]:
        """Collect image entries from one or more listing pages.

        Keeps following the cursor until ``min_page_size`` images are gathered
        or the listing is exhausted; every image from every page fetched is
        returned, so the returned cursor never skips entries.
        """
        images: list[FolderEntry] = []
        has_more = True
        while has_more and len(images) < self._min_page_size:
            current = cursor
            result = await call(lambda token: self._client.list_folder(token, folder, current))
            images.extend(filter_images(result.entries))
            cursor = result.cursor
            has_more = result.has_more and bool(result.cursor)
        return images, cursor, has_more

    async def _resolve(self, call: RefreshingCaller, entry: FolderEntry) -> Photo | None:
        path = entry.path_display or entry.path_lower or entry.name
        # Both requests finish before the entry is judged, so a batch never
        # leaves a request running behind it.
        results = await asyncio.gather(
            call(lambda token: self._client.get_thumbnail(token, path, self._thumbnail_size)),
            call(lambda token: self._client.get_temporary_link(token, path)),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        failures = [r for r in results if isinstance(r, Exception)]
        if failures:
            logger.warning("Dropping %s: could not resolve link/thumbnail: %s", path, failures[0])
            return None
        thumbnail_url, url = results
        if not url or not thumbnail_url:
            logger.warning("Dropping %s: empty link or thumbnail", path)
            return None
        width, height = entry.dimensions
        return Photo(
            id=entry.id or path,
            name=entry.name,
            path=path,
            url=url,
            thumbnail_url=thumbnail_url,
            width=width,
            height=height,
            size=entry.size or 0,
        )

    async def resolve_all(self, call: RefreshingCaller, entries: list[FolderEntry]) -> list[Photo | None]:
        """Resolve entries batch by batch; unresolvable entries come back as None."""
        resolved: list[Photo | None] = []
        for batch in _chunks(entries, self._batch_size):
            resolved.extend(await asyncio.gather(*(self._resolve(call, e) for e in batch)))
        return resolved

    async def page(
        self,
        call: RefreshingCaller,
        folder: str,
        cursor: str | None = None,
    ) -> PhotoPage:
        images, next_cursor, has_more = await self.list_images(call, folder, cursor)
        resolved = await self.resolve_all(call, images)
        photos = [p for p in resolved if p is not None]
        skipped = len(resolved) - len(photos)
        if skipped:
            logger.warning("Skipped %d of %d photos in %s", skipped, len(resolved), folder)
        logger.info("Loaded %d photos from %s (has_more=%s)", len(photos), folder, has_more)
        return PhotoPage(
            photos=photos,
            cursor=next_cursor,
            has_more=has_more,
            token_refreshed=call.token_refreshed,
            skipped=skipped,
        )

    async def count(self, call: RefreshingCaller, folder: str) -> int:
        """Walk every listing page of ``folder`` and count the images."""
        total = 0
        cursor: str | None = None
        while True:
            current = cursor
            result = await call(lambda token: self._client.list_folder(token, folder, current))
            total += len(filter_images(result.entries))
            if not result.has_more or not result.cursor:
                return total
            cursor = result.cursor
