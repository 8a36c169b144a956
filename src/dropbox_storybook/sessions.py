"""Login sessions keyed by an opaque cookie value."""

from __future__ import annotations

import secrets

from .settings import UserCredentials

SESSION_COOKIE = "storybook_session"


def validate_access_code(users: dict[str, UserCredentials], username: str, code: str) -> bool:
    creds = users.get(username)
    if creds is None:
        return False
    return secrets.compare_digest(creds.access_code.encode(), code.encode())


class SessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}

    def login(self, username: str) -> str:
        session_id = secrets.token_urlsafe(32)
        self._sessions[session_id] = username
        return session_id

    def username(self, session_id: str | None) -> str | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def logout(self, session_id: str | None) -> None:
        if session_id:
            self._sessions.pop(session_id, None)
