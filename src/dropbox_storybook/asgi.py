"""ASGI app hosting the gallery API (and, optionally, the MCP endpoint)."""

from __future__ import annotations

import contextlib
import logging
import secrets
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .batch_move import batch_move_files
from .dropbox_client import DropboxClient
from .duplicates import find_duplicate_groups
from .errors import DropboxApiError, NotFoundError, TokenRefreshError, is_auth_failure
from .models import (
    BatchMoveRequest,
    CollectionCreate,
    CollectionUpdate,
    DateRange,
    DuplicatePage,
    PhotoCount,
    PhotoFilter,
)
from .photos import PhotoListing
from .scrapbook import generate_pages
from .sessions import SESSION_COOKIE, SessionStore, validate_access_code
from .settings import Settings
from .store import GalleryStore, InMemoryStore
from .token_refresh import RefreshingCaller
from .token_store import InMemoryTokenStore, TokenStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppState:
    settings: Settings
    dropbox: DropboxClient
    listing: PhotoListing
    tokens: TokenStore
    store: GalleryStore
    sessions: SessionStore = field(default_factory=SessionStore)

    def caller_for(self, username: str) -> RefreshingCaller | None:
        token = self.tokens.get_access_token(username)
        if not token:
            return None
        return RefreshingCaller(
            username,
            token,
            self.tokens.get_refresh_token(username),
            refresher=self.dropbox.refresh_access_token,
            token_store=self.tokens,
        )


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# Transport errors and unparseable Dropbox replies are answered like API errors.
DROPBOX_FAILURES = (DropboxApiError, httpx.HTTPError, ValidationError)


def _dropbox_failure(exc: Exception, message: str) -> JSONResponse:
    if isinstance(exc, TokenRefreshError):
        return _error("Invalid or expired access token", 401)
    if isinstance(exc, DropboxApiError) and is_auth_failure(exc):
        return _error("Invalid or expired access token", 401)
    return _error(message, 500)


class SessionMiddleware(BaseHTTPMiddleware):
    """Resolves the session cookie to ``request.state.username``."""

    def __init__(self, app: Starlette, *, sessions: SessionStore) -> None:
        super().__init__(app)
        self._sessions = sessions

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request.state.username = self._sessions.username(request.cookies.get(SESSION_COOKIE))
        return await call_next(request)


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Guards the MCP mount with an ``X-API-Key`` header."""

    def __init__(self, app: Starlette, *, api_key: str) -> None:
        super().__init__(app)
        self._api_key = api_key

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if not request.url.path.startswith("/mcp"):
            return await call_next(request)
        presented = request.headers.get("x-api-key")
        if not presented or not secrets.compare_digest(presented, self._api_key):
            return _error("unauthorized", 401)
        return await call_next(request)


def _state(request: Request) -> AppState:
    return request.app.state.storybook


def _username(request: Request) -> str | None:
    return getattr(request.state, "username", None)


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


async def health(_: Request) -> Response:
    return JSONResponse({"ok": True})


async def login(request: Request) -> Response:
    state = _state(request)
    body = await _json_body(request)
    if not isinstance(body, dict) or not body.get("token") or not body.get("username"):
        return _error("Missing access code or username", 400)
    username = str(body["username"])
    if username not in state.settings.storybook_users:
        return _error("Invalid username", 401)
    if not validate_access_code(state.settings.storybook_users, username, str(body["token"])):
        return _error("Invalid access code", 401)

    session_id = state.sessions.login(username)
    logger.info("User %s logged in", username)
    response = JSONResponse({"success": True, "redirectUrl": f"/{username}/viewer"})
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")
    return response


async def logout(request: Request) -> Response:
    _state(request).sessions.logout(request.cookies.get(SESSION_COOKIE))
    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE)
    return response


def _session_caller(request: Request) -> RefreshingCaller | JSONResponse:
    username = _username(request)
    if not username:
        return _error("Unauthorized", 401)
    call = _state(request).caller_for(username)
    if call is None:
        return _error("User configuration error: No Dropbox token found", 500)
    return call


def _with_refresh_header(response: JSONResponse, refreshed: bool) -> JSONResponse:
    if refreshed:
        response.headers["X-Token-Refreshed"] = "true"
    return response


async def dropbox_photos(request: Request) -> Response:
    call = _session_caller(request)
    if isinstance(call, JSONResponse):
        return call
    state = _state(request)
    cursor = request.query_params.get("cursor") or None
    try:
        page = await state.listing.page(call, state.settings.dropbox_photos_folder, cursor)
    except DROPBOX_FAILURES as exc:
        logger.error("Dropbox listing failed: %s", exc)
        return _dropbox_failure(exc, "Failed to fetch photos from Dropbox")
    return _with_refresh_header(JSONResponse(page.to_wire()), page.token_refreshed)


async def dropbox_photo_count(request: Request) -> Response:
    call = _session_caller(request)
    if isinstance(call, JSONResponse):
        return call
    state = _state(request)
    folder = request.query_params.get("folder") or state.settings.dropbox_photos_folder
    try:
        count = await state.listing.count(call, folder)
    except DROPBOX_FAILURES as exc:
        logger.error("Photo count failed: %s", exc)
        return _dropbox_failure(exc, "Failed to count photos")
    result = PhotoCount(count=count, folder_path=folder, token_refreshed=call.token_refreshed)
    return _with_refresh_header(JSONResponse(result.to_wire()), call.token_refreshed)


async def dropbox_move_batch(request: Request) -> Response:
    call = _session_caller(request)
    if isinstance(call, JSONResponse):
        return call
    body = await _json_body(request)
    try:
        move = BatchMoveRequest.model_validate(body)
    except ValidationError:
        return _error(
            "Invalid request: paths must be a non-empty array and destinationFolder is required",
            400,
        )

    state = _state(request)
    logger.info("Moving %d files to %s", len(move.paths), move.destination_folder)
    try:
        result = await batch_move_files(state.dropbox, call, move.paths, move.destination_folder)
    except DROPBOX_FAILURES as exc:
        logger.error("Batch move failed: %s", exc)
        return _dropbox_failure(exc, "Failed to move files")
    return _with_refresh_header(JSONResponse(result.to_wire()), call.token_refreshed)


async def dropbox_duplicates(request: Request) -> Response:
    call = _session_caller(request)
    if isinstance(call, JSONResponse):
        return call
    state = _state(request)
    cursor = request.query_params.get("cursor") or None
    try:
        page = await state.listing.page(call, state.settings.dropbox_photos_folder, cursor)
    except DROPBOX_FAILURES as exc:
        logger.error("Duplicate scan failed: %s", exc)
        return _dropbox_failure(exc, "Failed to fetch photos from Dropbox")
    result = DuplicatePage(
        groups=find_duplicate_groups(page.photos),
        cursor=page.cursor,
        has_more=page.has_more,
        token_refreshed=page.token_refreshed,
    )
    return _with_refresh_header(JSONResponse(result.to_wire()), page.token_refreshed)


def _photo_filter(request: Request) -> PhotoFilter:
    params = request.query_params
    tags = [t for t in (params.get("tags") or "").split(",") if t]
    date_range = None
    if params.get("startDate") and params.get("endDate"):
        date_range = DateRange.model_validate({"start": params["startDate"], "end": params["endDate"]})
    return PhotoFilter(
        tags=tags or None,
        date_range=date_range,
        search_term=params.get("searchTerm") or None,
    )


async def photos(request: Request) -> Response:
    username = _username(request)
    if not username:
        return _error("Unauthorized", 401)
    try:
        filters = _photo_filter(request)
    except ValidationError:
        return _error("Invalid filter", 400)
    found = await _state(request).store.get_photos(username, filters)
    return JSONResponse({"photos": [p.to_wire() for p in found]})


async def collections(request: Request) -> Response:
    username = _username(request)
    if not username:
        return _error("Unauthorized", 401)
    store = _state(request).store

    if request.method == "POST":
        try:
            data = CollectionCreate.model_validate(await _json_body(request))
        except ValidationError:
            return _error("Invalid collection", 400)
        created = await store.create_collection(username, data)
        return JSONResponse({"collection": created.to_wire()}, status_code=201)

    kind = request.query_params.get("type")
    if kind not in (None, "album", "scrapbook"):
        return _error("type must be 'album' or 'scrapbook'", 400)
    found = await store.get_collections(username, kind)
    return JSONResponse({"collections": [c.to_wire() for c in found]})


async def collection_detail(request: Request) -> Response:
    username = _username(request)
    if not username:
        return _error("Unauthorized", 401)
    store = _state(request).store
    collection_id = request.path_params["collection_id"]
    collection = await store.get_collection(collection_id)
    if collection is None or collection.user_id != username:
        return _error("Collection not found", 404)

    if request.method == "DELETE":
        await store.delete_collection(collection_id)
        return JSONResponse({"success": True})

    if request.method == "PUT":
        try:
            updates = CollectionUpdate.model_validate(await _json_body(request))
        except ValidationError:
            return _error("Invalid collection update", 400)
        updated = await store.update_collection(collection_id, updates)
        return JSONResponse({"collection": updated.to_wire()})

    found = [await store.get_photo(photo_id) for photo_id in collection.photo_ids]
    return JSONResponse(
        {
            "collection": collection.to_wire(),
            "photos": [p.to_wire() for p in found if p is not None],
        }
    )


async def collection_pages(request: Request) -> Response:
    username = _username(request)
    if not username:
        return _error("Unauthorized", 401)
    store = _state(request).store
    collection = await store.get_collection(request.path_params["collection_id"])
    if collection is None or collection.user_id != username:
        return _error("Collection not found", 404)
    found = [await store.get_photo(photo_id) for photo_id in collection.photo_ids]
    pages = generate_pages([p for p in found if p is not None])
    return JSONResponse(
        {
            "collection": collection.to_wire(),
            "pages": [page.to_wire() for page in pages],
        }
    )


async def collection_photos(request: Request) -> Response:
    username = _username(request)
    if not username:
        return _error("Unauthorized", 401)
    body = await _json_body(request)
    photo_ids = body.get("photo_ids") if isinstance(body, dict) else None
    if not isinstance(photo_ids, list) or not all(isinstance(i, str) for i in photo_ids):
        return _error("photo_ids array is required", 400)

    store = _state(request).store
    collection_id = request.path_params["collection_id"]
    collection = await store.get_collection(collection_id)
    if collection is None or collection.user_id != username:
        return _error("Collection not found", 404)
    try:
        if request.method == "DELETE":
            updated = await store.remove_photos_from_collection(collection_id, photo_ids)
        else:
            updated = await store.add_photos_to_collection(collection_id, photo_ids)
    except NotFoundError:
        return _error("Collection not found", 404)
    return JSONResponse({"collection": updated.to_wire()})


def create_app(
    settings: Settings | None = None,
    *,
    dropbox: DropboxClient | None = None,
    store: GalleryStore | None = None,
    tokens: TokenStore | None = None,
) -> Starlette:
    settings = settings or Settings()
    if dropbox is None:
        dropbox = DropboxClient(
            api_base=settings.dropbox_api_base,
            content_base=settings.dropbox_content_base,
            token_url=settings.dropbox_token_url,
            app_key=settings.dropbox_app_key,
            app_secret=settings.dropbox_app_secret,
            timeout_seconds=settings.http_timeout_seconds,
        )
    if store is None:
        store = (
            InMemoryStore.from_file(settings.storybook_seed_file)
            if settings.storybook_seed_file
            else InMemoryStore()
        )
    state = AppState(
        settings=settings,
        dropbox=dropbox,
        listing=PhotoListing(
            dropbox,
            batch_size=settings.photo_batch_size,
            min_page_size=settings.photo_page_min_size,
            thumbnail_size=settings.thumbnail_size,
        ),
        tokens=tokens if tokens is not None else InMemoryTokenStore(settings.storybook_users),
        store=store,
    )

    mcp = None
    if settings.mcp_api_key:
        from .mcp_server import create_mcp_server

        mcp = create_mcp_server(state)

    @contextlib.asynccontextmanager
    async def lifespan(_: Starlette) -> AsyncIterator[None]:
        try:
            if mcp is None:
                yield
            else:
                # Streamable HTTP transport uses a session manager.
                async with mcp.session_manager.run():
                    yield
        finally:
            await dropbox.aclose()

    app = Starlette(
        routes=[
            Route("/health", endpoint=health, methods=["GET"]),
            Route("/api/auth/login", endpoint=login, methods=["POST"]),
            Route("/api/auth/logout", endpoint=logout, methods=["POST"]),
            Route("/api/dropbox/photos", endpoint=dropbox_photos, methods=["GET"]),
            Route("/api/dropbox/photos/count", endpoint=dropbox_photo_count, methods=["GET"]),
            Route("/api/dropbox/move-batch", endpoint=dropbox_move_batch, methods=["POST"]),
            Route("/api/dropbox/duplicates", endpoint=dropbox_duplicates, methods=["GET"]),
            Route("/api/photos", endpoint=photos, methods=["GET"]),
            Route("/api/collections", endpoint=collections, methods=["GET", "POST"]),
            Route(
                "/api/collections/{collection_id}",
                endpoint=collection_detail,
                methods=["GET", "PUT", "DELETE"],
            ),
            Route(
                "/api/collections/{collection_id}/photos",
                endpoint=collection_photos,
                methods=["POST", "DELETE"],
            ),
            Route(
                "/api/collections/{collection_id}/pages",
                endpoint=collection_pages,
                methods=["GET"],
            ),
        ],
        lifespan=lifespan,
    )
    app.state.storybook = state

    if mcp is not None:
        # Mount MCP at /mcp (default for streamable-http when mounted at /).
        app.mount("/", mcp.streamable_http_app())
        app.add_middleware(ApiKeyMiddleware, api_key=settings.mcp_api_key)
    app.add_middleware(SessionMiddleware, sessions=state.sessions)
    return app
