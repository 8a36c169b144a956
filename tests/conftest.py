from __future__ import annotations

import base64
import json
import posixpath
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from dropbox_storybook.dropbox_client import DropboxClient

API_BASE = "https://api.dropbox.test/2"
CONTENT_BASE = "https://content.dropbox.test/2"
TOKEN_URL = "https://api.dropbox.test/oauth2/token"


def file_entry(path: str, *, size: int = 1024, width: int | None = None, height: int | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {
        ".tag": "file",
        "id": f"id:{path}",
        "name": posixpath.basename(path),
        "path_display": path,
        "path_lower": path.lower(),
        "size": size,
    }
    if width is not None:
        entry["media_info"] = {
            ".tag": "metadata",
            "metadata": {"dimensions": {"width": width, "height": height}},
        }
    return entry


def folder_entry(path: str) -> dict[str, Any]:
    return {".tag": "folder", "id": f"id:{path}", "name": posixpath.basename(path), "path_display": path}


class FakeDropbox:
    """In-process stand-in for the Dropbox endpoints the client calls."""

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []
        self.page_size = 2
        self.valid_tokens = {"good"}
        self.refresh_tokens = {"refresh-1": "fresh"}
        self.app_credentials = ("app-key", "app-secret")
        self.folders: set[str] = set()
        self.unprovisionable: set[str] = set()
        self.broken_thumbnails: set[str] = set()
        self.failing_moves: set[str] = set()
        self.moves: list[tuple[str, str]] = []
        self.calls: list[tuple[str, str | None]] = []
        self.thumbnail_args: list[dict[str, Any]] = []
        self.offline = False
        self.malformed_listing = False
        self._cursors: set[str] = set()

    def add_files(self, *paths: str, size: int = 1024) -> None:
        for path in paths:
            self.entries.append(file_entry(path, size=size))

    def count(self, endpoint: str) -> int:
        return sum(1 for name, _ in self.calls if name == endpoint)

    def _listing_page(self, offset: int) -> httpx.Response:
        chunk = self.entries[offset : offset + self.page_size]
        end = offset + len(chunk)
        cursor = f"cursor-{end}"
        self._cursors.add(cursor)
        return httpx.Response(
            200,
            json={"entries": chunk, "cursor": cursor, "has_more": end < len(self.entries)},
        )

    def _known_file(self, path: str) -> bool:
        return any(e["path_display"] == path for e in self.entries if e[".tag"] == "file")

    def _token_endpoint(self, request: httpx.Request) -> httpx.Response:
        key, secret = self.app_credentials
        expected = "Basic " + base64.b64encode(f"{key}:{secret}".encode()).decode()
        if request.headers.get("authorization") != expected:
            return httpx.Response(401, text="invalid_client")
        form = parse_qs(request.content.decode())
        if form.get("grant_type") != ["refresh_token"]:
            return httpx.Response(400, text="unsupported_grant_type")
        new_token = self.refresh_tokens.get((form.get("refresh_token") or [""])[0])
        if new_token is None:
            return httpx.Response(400, json={"error": "invalid_grant"})
        self.valid_tokens.add(new_token)
        return httpx.Response(200, json={"access_token": new_token, "token_type": "bearer", "expires_in": 14400})

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)
        url = str(request.url)
        if url == TOKEN_URL:
            self.calls.append(("oauth2/token", None))
            return self._token_endpoint(request)

        endpoint = request.url.path.removeprefix("/2/")
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        self.calls.append((endpoint, token))
        if token not in self.valid_tokens:
            return httpx.Response(401, text='{"error_summary": "expired_access_token/"}')

        if url.startswith(CONTENT_BASE):
            arg = json.loads(request.headers["dropbox-api-arg"])
            self.thumbnail_args.append(arg)
            path = arg["resource"]["path"]
            if path in self.broken_thumbnails or not self._known_file(path):
                return httpx.Response(409, text="unsupported_image")
            return httpx.Response(200, content=f"jpeg:{path}".encode())

        body = json.loads(request.content or b"{}")
        if self.malformed_listing and endpoint.startswith("files/list_folder"):
            return httpx.Response(200, json={"entries": "not-a-list"})
        if endpoint == "files/list_folder":
            return self._listing_page(0)
        if endpoint == "files/list_folder/continue":
            cursor = body["cursor"]
            if cursor not in self._cursors:
                return httpx.Response(409, text="reset")
            return self._listing_page(int(cursor.split("-")[1]))
        if endpoint == "files/get_temporary_link":
            if not self._known_file(body["path"]):
                return httpx.Response(409, text="path/not_found/")
            return httpx.Response(200, json={"link": f"https://dl.dropbox.test{body['path']}"})
        if endpoint == "files/get_metadata":
            if body["path"] in self.folders:
                return httpx.Response(200, json=folder_entry(body["path"]))
            return httpx.Response(409, text="path/not_found/")
        if endpoint == "files/create_folder_v2":
            path = body["path"]
            if path in self.unprovisionable:
                return httpx.Response(403, text="no_write_permission")
            if path in self.folders:
                return httpx.Response(409, text="path/conflict/folder/")
            self.folders.add(path)
            return httpx.Response(200, json={"metadata": folder_entry(path)})
        if endpoint == "files/move_v2":
            if body["from_path"] in self.failing_moves:
                return httpx.Response(409, text="from_lookup/not_found/")
            self.moves.append((body["from_path"], body["to_path"]))
            return httpx.Response(200, json={"metadata": file_entry(body["to_path"])})
        return httpx.Response(404, text=f"unknown endpoint {endpoint}")


@pytest.fixture()
def fake_dropbox() -> FakeDropbox:
    return FakeDropbox()


@pytest.fixture()
def dropbox_client(fake_dropbox: FakeDropbox) -> DropboxClient:
    return DropboxClient(
        api_base=API_BASE,
        content_base=CONTENT_BASE,
        token_url=TOKEN_URL,
        app_key="app-key",
        app_secret="app-secret",
        transport=httpx.MockTransport(fake_dropbox.handler),
    )
