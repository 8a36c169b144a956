"""Per-user Dropbox token storage."""

from __future__ import annotations

import logging
from typing import Protocol

from .settings import UserCredentials

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    def get_access_token(self, username: str) -> str | None: ...

    def get_refresh_token(self, username: str) -> str | None: ...

    def save_access_token(self, username: str, token: str) -> None: ...


class InMemoryTokenStore:
    """Token pairs kept in process memory, seeded from configuration."""

    def __init__(self, users: dict[str, UserCredentials] | None = None) -> None:
        self._access: dict[str, str] = {}
        self._refresh: dict[str, str] = {}
        for username, creds in (users or {}).items():
            if creds.dropbox_token:
                self._access[username] = creds.dropbox_token
            if creds.dropbox_refresh_token:
                self._refresh[username] = creds.dropbox_refresh_token

    def get_access_token(self, username: str) -> str | None:
        return self._access.get(username)

    def get_refresh_token(self, username: str) -> str | None:
        return self._refresh.get(username)

    def save_access_token(self, username: str, token: str) -> None:
        logger.info("Stored refreshed access token for %s", username)
        self._access[username] = token
