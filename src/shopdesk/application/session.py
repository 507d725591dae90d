from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shopdesk.application.streams import Stream

log = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionSnapshot:
    status: SessionStatus
    username: Optional[str] = None
    email: Optional[str] = None


class SessionContext:
    """Holds the bearer token for one user. Passed to the data port explicitly."""

    def __init__(self) -> None:
        self._token: Optional[str] = None
        self.changes: Stream[SessionSnapshot] = Stream(SessionSnapshot(SessionStatus.ANONYMOUS))

    @property
    def status(self) -> SessionStatus:
        return self.changes.value.status

    @property
    def token(self) -> Optional[str]:
        return self._token if self.status is SessionStatus.AUTHENTICATED else None

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    def authenticate(self, token: str, username: Optional[str] = None, email: Optional[str] = None) -> None:
        if not token:
            raise ValueError("Token is required.")
        self._token = token
        self.changes.push(SessionSnapshot(SessionStatus.AUTHENTICATED, username, email))
        log.info("session_authenticated user=%s", username)

    def expire(self) -> None:
        if self.status is not SessionStatus.AUTHENTICATED:
            return
        snap = self.changes.value
        self._token = None
        self.changes.push(SessionSnapshot(SessionStatus.EXPIRED, snap.username, snap.email))
        log.warning("session_expired user=%s", snap.username)

    def clear(self) -> None:
        self._token = None
        self.changes.push(SessionSnapshot(SessionStatus.ANONYMOUS))
        log.info("session_cleared")
