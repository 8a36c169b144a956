"""Domain errors."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False, slots=True)
class DropboxApiError(RuntimeError):
    """Raised when the Dropbox API returns a non-success response."""

    status_code: int
    endpoint: str
    response_text: str

    def __str__(self) -> str:
        return f"Dropbox API error: {self.status_code} - {self.endpoint}: {self.response_text}"


@dataclass(eq=False, slots=True)
class DropboxAuthError(DropboxApiError):
    """HTTP 401: the access token is invalid or expired."""


@dataclass(eq=False, slots=True)
class TokenRefreshError(DropboxApiError):
    """The OAuth token endpoint refused to issue a new access token."""


@dataclass(eq=False, slots=True)
class FolderProvisioningError(DropboxApiError):
    """The destination folder of a batch move could not be created."""


class NotFoundError(KeyError):
    """Raised by the gallery store for unknown photo or collection ids."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


def is_auth_failure(exc: BaseException) -> bool:
    """Return True when ``exc`` looks like an expired or rejected token."""
    if isinstance(exc, DropboxAuthError):
        return True
    if isinstance(exc, DropboxApiError) and exc.status_code == 401:
        return True
    message = str(exc).lower()
    return "401" in message or "expired" in message
