"""FastMCP server exposing the gallery's Dropbox operations as tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from .batch_move import batch_move_files
from .duplicates import find_duplicate_groups
from .models import BatchMoveResult, Collection, DuplicatePage, PhotoCount, PhotoPage, ScrapbookPage
from .scrapbook import generate_pages
from .token_refresh import RefreshingCaller

if TYPE_CHECKING:
    from .asgi import AppState


class GalleryTools:
    """Tool implementations acting on behalf of the configured ``MCP_USER``."""

    def __init__(self, state: AppState) -> None:
        self._state = state
        self._settings = state.settings

    def _user(self) -> str:
        username = self._settings.mcp_user
        if not username:
            raise ValueError("MCP_USER is not configured")
        return username

    def _caller(self) -> RefreshingCaller:
        username = self._user()
        call = self._state.caller_for(username)
        if call is None:
            raise ValueError(f"No Dropbox token configured for {username}")
        return call

    async def photos_list(self, cursor: str | None = None) -> PhotoPage:
        return await self._state.listing.page(self._caller(), self._settings.dropbox_photos_folder, cursor)

    async def photos_count(self, folder: str | None = None) -> PhotoCount:
        call = self._caller()
        folder_path = folder or self._settings.dropbox_photos_folder
        count = await self._state.listing.count(call, folder_path)
        return PhotoCount(count=count, folder_path=folder_path, token_refreshed=call.token_refreshed)

    async def photos_move_batch(self, paths: list[str], destination_folder: str | None = None) -> BatchMoveResult:
        if not paths:
            raise ValueError("'paths' must not be empty")
        folder = destination_folder or self._settings.dropbox_duplicates_folder
        return await batch_move_files(self._state.dropbox, self._caller(), paths, folder)

    async def duplicates_find(self, cursor: str | None = None) -> DuplicatePage:
        page = await self._state.listing.page(self._caller(), self._settings.dropbox_photos_folder, cursor)
        return DuplicatePage(
            groups=find_duplicate_groups(page.photos),
            cursor=page.cursor,
            has_more=page.has_more,
            token_refreshed=page.token_refreshed,
        )

    async def collections_list(self, collection_type: str | None = None) -> list[Collection]:
        if collection_type not in (None, "album", "scrapbook"):
            raise ValueError("collection_type must be 'album' or 'scrapbook'")
        return await self._state.store.get_collections(self._user(), collection_type)

    async def scrapbook_pages(self, collection_id: str) -> list[ScrapbookPage]:
        store = self._state.store
        collection = await store.get_collection(collection_id)
        if collection is None or collection.user_id != self._user():
            raise ValueError(f"Collection {collection_id} not found")
        found = [await store.get_photo(photo_id) for photo_id in collection.photo_ids]
        return generate_pages([p for p in found if p is not None])


def create_mcp_server(state: AppState) -> FastMCP:
    tools = GalleryTools(state)

    mcp = FastMCP(
        "Storybook",
        instructions=(
            "Browse the photo gallery stored in Dropbox, find likely duplicates and move "
            "them aside, and read the user's albums and scrapbooks."
        ),
        # Configure Streamable HTTP behavior (FastMCP.streamable_http_app() no longer accepts these
        # as parameters in newer mcp versions).
        stateless_http=True,
        json_response=True,
    )

    @mcp.tool()
    async def photos_list(cursor: str | None = None) -> PhotoPage:
        """List a page of photos; pass the returned cursor to get the next page."""
        return await tools.photos_list(cursor)

    @mcp.tool()
    async def photos_count(folder: str | None = None) -> PhotoCount:
        """Count every image in a Dropbox folder (default: the gallery folder)."""
        return await tools.photos_count(folder)

    @mcp.tool()
    async def photos_move_batch(
        paths: list[str],
        destination_folder: str | None = None,
    ) -> BatchMoveResult:
        """Move files into a folder (default: the duplicates folder). Nothing is deleted."""
        return await tools.photos_move_batch(paths, destination_folder)

    @mcp.tool()
    async def duplicates_find(cursor: str | None = None) -> DuplicatePage:
        """Group photos on one listing page that look like duplicates."""
        return await tools.duplicates_find(cursor)

    @mcp.tool()
    async def collections_list(collection_type: str | None = None) -> list[Collection]:
        """List the user's albums and scrapbooks."""
        return await tools.collections_list(collection_type)

    @mcp.tool()
    async def scrapbook_pages(collection_id: str) -> list[ScrapbookPage]:
        """Lay out a collection's photos as scrapbook pages."""
        return await tools.scrapbook_pages(collection_id)

    return mcp
