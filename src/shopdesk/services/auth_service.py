from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
import re
from typing import Callable, Optional

from shopdesk.application.session import SessionContext
from shopdesk.domain.errors import AuthorizationError, ValidationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginPolicy:
    min_password_length: int = 8
    max_failed_attempts: int = 5
    lockout_seconds: int = 60


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _validate_secret_strength(secret: str, *, min_len: int) -> None:
    if len(secret) < min_len:
        raise ValidationError(f"Password must have at least {min_len} characters.", field="password")
    if not re.search(r"[A-Za-z]", secret):
        raise ValidationError("Password must include at least one letter.", field="password")
    if not re.search(r"\d", secret):
        raise ValidationError("Password must include at least one number.", field="password")


class AuthService:
    def __init__(
        self,
        repo,
        session: SessionContext,
        policy: LoginPolicy | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.session = session
        self.policy = policy or LoginPolicy()
        self.clock = clock
        self._failed: dict[str, int] = {}
        self._locked_until: dict[str, datetime] = {}

    def login(self, username: str, password: str) -> None:
        username_clean = (username or "").strip()
        if not username_clean:
            raise ValidationError("Username is required.", field="username")
        if not password:
            raise ValidationError("Password is required.", field="password")

        until = self._locked_until.get(username_clean)
        if until is not None and self.clock() < until:
            remaining = int((until - self.clock()).total_seconds())
            raise AuthorizationError(f"User is temporarily locked. Retry in {remaining}s.")

        try:
            body = self.repo.login(username_clean, password)
        except AuthorizationError:
            self._record_failure(username_clean)
            raise

        self._failed.pop(username_clean, None)
        self._locked_until.pop(username_clean, None)
        self.session.authenticate(
            str(body["token"]),
            username=body.get("username") or username_clean,
            email=body.get("email"),
        )

    def _record_failure(self, username: str) -> None:
        attempts = self._failed.get(username, 0) + 1
        self._failed[username] = attempts
        log.warning("login_failed user=%s attempts=%s", username, attempts)
        if attempts >= self.policy.max_failed_attempts:
            self._failed[username] = 0
            self._locked_until[username] = self.clock() + timedelta(seconds=self.policy.lockout_seconds)
            raise AuthorizationError("Too many failed attempts. User is temporarily locked.")

    def logout(self) -> None:
        self.session.clear()

    def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        identity_document: str,
        date_of_birth: date,
        today: Optional[date] = None,
    ) -> dict:
        user = (username or "").strip()
        mail = (email or "").strip()
        if not user:
            raise ValidationError("Username is required.", field="username")
        if not _EMAIL_RE.match(mail):
            raise ValidationError("Email is not valid.", field="email")
        _validate_secret_strength(password or "", min_len=self.policy.min_password_length)
        if not (first_name or "").strip() or not (last_name or "").strip():
            raise ValidationError("First and last name are required.", field="name")
        if not (identity_document or "").strip():
            raise ValidationError("Identity document is required.", field="identity_document")
        if date_of_birth >= (today or date.today()):
            raise ValidationError("Date of birth must be in the past.", field="date_of_birth")

        return self.repo.register({
            "username": user,
            "email": mail,
            "password": password,
            "firstName": first_name.strip(),
            "lastName": last_name.strip(),
            "identityDocument": identity_document.strip(),
            "dateOfBirth": date_of_birth.isoformat(),
        })
