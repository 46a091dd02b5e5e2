from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from starlette.requests import Request

from expense_api import security
from expense_api.config import Settings
from expense_api.errors import AuthError, ValidationError

SETTINGS = Settings(access_token_secret="test-secret", access_token_expire_minutes=5)
USER = SimpleNamespace(id="a" * 32, email="ivy@x.io", username="ivy")


def _request(headers: dict[str, str]) -> Request:
    raw = [(key.lower().encode(), value.encode()) for key, value in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


def test_hash_and_verify_password() -> None:
    hashed = security.hash_password("secret1")
    assert hashed != "secret1"
    assert security.verify_password("secret1", hashed)
    assert not security.verify_password("secret2", hashed)


def test_verify_password_with_garbage_hash() -> None:
    assert security.verify_password("secret1", "not-a-bcrypt-hash") is False


def test_hash_password_rejects_overlong_input() -> None:
    with pytest.raises(ValidationError):
        security.hash_password("x" * 73)


def test_access_token_round_trip() -> None:
    token = security.create_access_token(USER, SETTINGS)
    payload = security.decode_access_token(token, SETTINGS)
    assert payload["sub"] == USER.id
    assert payload["email"] == "ivy@x.io"
    assert payload["username"] == "ivy"


def test_expired_token_is_rejected() -> None:
    issued = datetime.now(tz=UTC) - timedelta(minutes=10)
    token = security.create_access_token(USER, SETTINGS, now=issued)
    with pytest.raises(AuthError, match="Invalid access token"):
        security.decode_access_token(token, SETTINGS)


def test_token_signed_with_another_secret_is_rejected() -> None:
    token = security.create_access_token(USER, Settings(access_token_secret="other"))
    with pytest.raises(AuthError):
        security.decode_access_token(token, SETTINGS)


def test_token_from_request_prefers_cookie() -> None:
    request = _request({"Cookie": "accessToken=from-cookie", "Authorization": "Bearer from-header"})
    assert security.token_from_request(request) == "from-cookie"


def test_token_from_request_reads_bearer_header() -> None:
    assert security.token_from_request(_request({"Authorization": "Bearer abc.def"})) == "abc.def"
    assert security.token_from_request(_request({"Authorization": "Basic abc"})) is None
    assert security.token_from_request(_request({})) is None


def test_optional_user_id_is_none_for_anonymous_requests() -> None:
    assert security.optional_user_id(_request({})) is None
