"""Async client for the Dropbox HTTP API (v2)."""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from .errors import DropboxApiError, DropboxAuthError, FolderProvisioningError, TokenRefreshError
from .models import FolderEntry, ListFolderResult

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".heic", ".gif", ".webp", ".bmp", ".tiff")


def is_image_name(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def filter_images(entries: Iterable[FolderEntry]) -> list[FolderEntry]:
    """Keep file entries whose name carries an image extension."""
    return [e for e in entries if e.tag == "file" and is_image_name(e.name)]


class DropboxClient:
    """Thin wrapper around the Dropbox RPC, content and OAuth endpoints.

    The client holds no token of its own: every call takes the access token to
    use, so one instance can serve all users and the refresh wrapper can retry
    a call with a new token.
    """

    def __init__(
        self,
        *,
        api_base: str = "https://api.dropboxapi.com/2",
        content_base: str = "https://content.dropboxapi.com/2",
        token_url: str = "https://api.dropbox.com/oauth2/token",
        app_key: str | None = None,
        app_secret: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._content_base = content_base.rstrip("/")
        self._token_url = token_url
        self._app_key = app_key
        self._app_secret = app_secret
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _raise_for_status(resp: httpx.Response, endpoint: str) -> None:
        if resp.status_code < 400:
            return
        text = (resp.text or "").strip()
        if resp.status_code == 401:
            raise DropboxAuthError(status_code=401, endpoint=endpoint, response_text=text)
        raise DropboxApiError(status_code=resp.status_code, endpoint=endpoint, response_text=text)

    async def rpc(self, token: str, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body to an RPC endpoint and return the decoded JSON reply."""
        resp = await self._client.post(
            f"{self._api_base}/{endpoint}",
            headers={"Authorization": f"Bearer {token}"},
            json=payload,
        )
        self._raise_for_status(resp, endpoint)
        data = resp.json()
        if not isinstance(data, dict):
            raise DropboxApiError(
                status_code=resp.status_code,
                endpoint=endpoint,
                response_text=f"Unexpected JSON type: {type(data).__name__}",
            )
        return data

    async def content(self, token: str, endpoint: str, arg: dict[str, Any]) -> bytes:
        """Call a content endpoint; arguments travel in the Dropbox-API-Arg header."""
        resp = await self._client.post(
            f"{self._content_base}/{endpoint}",
            headers={
                "Authorization": f"Bearer {token}",
                "Dropbox-API-Arg": json.dumps(arg),
            },
        )
        self._raise_for_status(resp, endpoint)
        return resp.content

    async def list_folder(
        self,
        token: str,
        path: str,
        cursor: str | None = None,
    ) -> ListFolderResult:
        """Start a recursive listing of ``path``, or continue one from ``cursor``."""
        if cursor:
            raw = await self.rpc(token, "files/list_folder/continue", {"cursor": cursor})
        else:
            raw = await self.rpc(
                token,
                "files/list_folder",
                {"path": path, "recursive": True, "include_media_info": True},
            )
        result = ListFolderResult.model_validate(raw)
        logger.info("Fetched %d entries from Dropbox (has_more=%s)", len(result.entries), result.has_more)
        return result

    async def get_temporary_link(self, token: str, path: str) -> str:
        raw = await self.rpc(token, "files/get_temporary_link", {"path": path})
        return str(raw["link"])

    async def get_thumbnail(self, token: str, path: str, size: str = "w256h256") -> str:
        """Fetch a JPEG thumbnail and return it as an inline ``data:`` URL."""
        data = await self.content(
            token,
            "files/get_thumbnail_v2",
            {
                "resource": {".tag": "path", "path": path},
                "format": "jpeg",
                "size": size,
                "mode": "strict",
            },
        )
        return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")

    async def folder_exists(self, token: str, path: str) -> bool:
        # Not-found and transient failures both read as "missing".
        try:
            raw = await self.rpc(token, "files/get_metadata", {"path": path})
        except (DropboxApiError, httpx.HTTPError) as exc:
            logger.warning("Metadata probe for %s failed, treating as missing: %s", path, exc)
            return False
        return raw.get(".tag") == "folder"

    async def create_folder(self, token: str, path: str) -> None:
        try:
            raw = await self.rpc(token, "files/create_folder_v2", {"path": path, "autorename": False})
        except DropboxAuthError:
            raise
        except DropboxApiError as exc:
            if exc.status_code == 409:
                logger.info("Folder %s already exists, continuing", path)
                return
            raise FolderProvisioningError(
                status_code=exc.status_code,
                endpoint=exc.endpoint,
                response_text=exc.response_text,
            ) from exc
        logger.info("Created folder %s", (raw.get("metadata") or {}).get("path_display", path))

    async def move_file(self, token: str, from_path: str, to_path: str) -> None:
        raw = await self.rpc(
            token,
            "files/move_v2",
            {
                "from_path": from_path,
                "to_path": to_path,
                "autorename": False,
                "allow_ownership_transfer": False,
            },
        )
        logger.info("Moved %s -> %s", from_path, (raw.get("metadata") or {}).get("path_display", to_path))

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new short-lived access token."""
        if not self._app_key or not self._app_secret:
            raise TokenRefreshError(
                status_code=0,
                endpoint="oauth2/token",
                response_text="DROPBOX_APP_KEY and DROPBOX_APP_SECRET are required to refresh tokens",
            )
        basic = base64.b64encode(f"{self._app_key}:{self._app_secret}".encode()).decode("ascii")
        resp = await self._client.post(
            self._token_url,
            headers={"Authorization": f"Basic {basic}"},
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
        )
        if resp.status_code >= 400:
            raise TokenRefreshError(
                status_code=resp.status_code,
                endpoint="oauth2/token",
                response_text=(resp.text or "").strip(),
            )
        access_token = resp.json().get("access_token")
        if not access_token:
            raise TokenRefreshError(
                status_code=resp.status_code,
                endpoint="oauth2/token",
                response_text="Token response did not include access_token",
            )
        logger.info("Refreshed Dropbox access token")
        return str(access_token)
