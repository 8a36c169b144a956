"""Retry a Dropbox call once after refreshing an expired access token."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import is_auth_failure
from .token_store import TokenStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

Refresher = Callable[[str], Awaitable[str]]


@dataclass(frozen=True, slots=True)
class Refreshed(Generic[T]):
    data: T
    token_refreshed: bool
    access_token: str


async def with_token_refresh(
    username: str,
    access_token: str,
    refresh_token: str | None,
    operation: Callable[[str], Awaitable[T]],
    *,
    refresher: Refresher,
    token_store: TokenStore | None = None,
) -> Refreshed[T]:
    """Run ``operation(access_token)``; on an auth failure refresh and retry once.

    Non-auth failures propagate untouched. When no refresh token is available the
    original auth failure propagates. The retry's failure, if any, is final.
    """
    try:
        data = await operation(access_token)
        return Refreshed(data=data, token_refreshed=False, access_token=access_token)
    except Exception as exc:
        if not is_auth_failure(exc) or not refresh_token:
            raise
        logger.info("Access token for %s rejected, refreshing", username)

    new_token = await refresher(refresh_token)
    if token_store is not None:
        token_store.save_access_token(username, new_token)
    data = await operation(new_token)
    return Refreshed(data=data, token_refreshed=True, access_token=new_token)


class RefreshingCaller:
    """Binds one user's token pair to the refresh wrapper for a request.

    Every call goes through :func:`with_token_refresh`. A refreshed token is
    reused by later calls, and ``token_refreshed`` records whether any call had
    to refresh. Parallel calls that all hit an expired token each refresh on
    their own.
    """

    def __init__(
        self,
        username: str,
        access_token: str,
        refresh_token: str | None,
        *,
        refresher: Refresher,
        token_store: TokenStore | None = None,
    ) -> None:
        self.username = username
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.token_refreshed = False
        self._refresher = refresher
        self._token_store = token_store

    async def __call__(self, operation: Callable[[str], Awaitable[T]]) -> T:
        result = await with_token_refresh(
            self.username,
            self.access_token,
            self.refresh_token,
            operation,
            refresher=self._refresher,
            token_store=self._token_store,
        )
        if result.token_refreshed:
            self.token_refreshed = True
            self.access_token = result.access_token
        return result.data
