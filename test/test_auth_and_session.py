from datetime import date, datetime, timedelta

import pytest

from shopdesk.application.session import SessionContext, SessionStatus
from shopdesk.application.streams import Stream
from shopdesk.domain.errors import AuthorizationError, ValidationError
from shopdesk.services.auth_service import AuthService, LoginPolicy


class FakeAuthRepo:
    def __init__(self, password="Secret123"):
        self.password = password
        self.registered = []

    def login(self, username, password):
        if password != self.password:
            raise AuthorizationError("Bad credentials")
        return {"token": f"token-{username}", "username": username, "email": f"{username}@example.com"}

    def register(self, fields):
        self.registered.append(fields)
        return {"id": 1, "username": fields["username"]}


class Clock:
    def __init__(self):
        self.now = datetime(2025, 1, 15, 12, 0)

    def __call__(self):
        return self.now


def test_session_lifecycle_is_observable():
    session = SessionContext()
    seen = []
    session.changes.subscribe(lambda s: seen.append(s.status))

    session.authenticate("abc", username="ana")
    assert session.token == "abc"
    session.expire()
    assert session.token is None
    session.expire()
    session.clear()

    assert seen == [
        SessionStatus.ANONYMOUS,
        SessionStatus.AUTHENTICATED,
        SessionStatus.EXPIRED,
        SessionStatus.ANONYMOUS,
    ]


def test_session_rejects_empty_token():
    with pytest.raises(ValueError):
        SessionContext().authenticate("")


def test_login_authenticates_session():
    session = SessionContext()
    auth = AuthService(FakeAuthRepo(), session)

    auth.login("  ana ", "Secret123")

    assert session.is_authenticated
    assert session.token == "token-ana"
    assert session.changes.value.email == "ana@example.com"

    auth.logout()
    assert session.status is SessionStatus.ANONYMOUS


def test_login_requires_both_fields():
    auth = AuthService(FakeAuthRepo(), SessionContext())
    with pytest.raises(ValidationError):
        auth.login("", "x")
    with pytest.raises(ValidationError):
        auth.login("ana", "")


def test_repeated_failures_lock_the_user_for_a_while():
    clock = Clock()
    session = SessionContext()
    auth = AuthService(FakeAuthRepo(), session, LoginPolicy(max_failed_attempts=3, lockout_seconds=60), clock=clock)

    for _ in range(2):
        with pytest.raises(AuthorizationError, match="Bad credentials"):
            auth.login("ana", "wrong")
    with pytest.raises(AuthorizationError, match="Too many failed attempts"):
        auth.login("ana", "wrong")

    with pytest.raises(AuthorizationError, match="temporarily locked"):
        auth.login("ana", "Secret123")

    clock.now += timedelta(seconds=61)
    auth.login("ana", "Secret123")
    assert session.is_authenticated


def test_register_validates_and_sends_camel_case_fields():
    repo = FakeAuthRepo()
    auth = AuthService(repo, SessionContext())

    auth.register("ana", "ana@example.com", "Secret123", "Ana", "Diaz", "123", date(1990, 5, 1), today=date(2025, 1, 1))

    assert repo.registered[0]["firstName"] == "Ana"
    assert repo.registered[0]["dateOfBirth"] == "1990-05-01"


@pytest.mark.parametrize(
    "kwargs, field",
    [
        ({"email": "not-an-email"}, "email"),
        ({"password": "short1"}, "password"),
        ({"password": "onlyletters"}, "password"),
        ({"identity_document": " "}, "identity_document"),
        ({"date_of_birth": date(2030, 1, 1)}, "date_of_birth"),
    ],
)
def test_register_rejects_bad_fields(kwargs, field):
    auth = AuthService(FakeAuthRepo(), SessionContext())
    args = {
        "username": "ana",
        "email": "ana@example.com",
        "password": "Secret123",
        "first_name": "Ana",
        "last_name": "Diaz",
        "identity_document": "123",
        "date_of_birth": date(1990, 5, 1),
        "today": date(2025, 1, 1),
    }
    args.update(kwargs)
    with pytest.raises(ValidationError) as exc:
        auth.register(**args)
    assert exc.value.field == field


def test_stream_replays_latest_and_survives_broken_subscriber():
    s = Stream()
    got = []

    def broken(_):
        raise RuntimeError("boom")

    s.subscribe(broken)
    s.push(1)
    unsubscribe = s.subscribe(got.append)
    s.push(2)
    s.push_if_changed(2)
    unsubscribe()
    s.push(3)

    assert got == [1, 2]
    assert s.value == 3
    assert s.subscriber_count == 1


def test_stream_without_replay_only_sees_new_values():
    s = Stream(replay=False)
    got = []
    s.push("old")
    s.subscribe(got.append)
    s.push("new")
    assert got == ["new"]
