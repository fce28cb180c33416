"""
Fixtures for token-related data.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt

from keycloak_session.auth_token.types import TokenResult

_SIGNING_KEY = "test-signing-key"  # noqa: S105


def make_jwt(claims: dict[str, Any] | None = None, **extra: Any) -> str:
    """Build an HS256 JWT carrying ``claims`` (signature is never checked)."""
    payload = {"sub": "user-1", "typ": "Refresh"}
    payload.update(claims or {})
    payload.update(extra)
    return jwt.encode(payload, _SIGNING_KEY, algorithm="HS256")


def refresh_token_expiring_in(delta: timedelta) -> str:
    exp = datetime.now(UTC) + delta
    return make_jwt(exp=int(exp.timestamp()))


VALID_REFRESH_TOKEN = make_jwt(exp=int((datetime.now(UTC) + timedelta(days=30)).timestamp()))
EXPIRED_REFRESH_TOKEN = make_jwt(exp=int((datetime.now(UTC) - timedelta(hours=1)).timestamp()))
OFFLINE_REFRESH_TOKEN = make_jwt(exp=0, typ="Offline")

# Token endpoint response from the provider
MOCK_TOKEN_RESPONSE = {
    "access_token": "access-abc",
    "id_token": "id-abc",
    "refresh_token": "refresh-rotated",
    "expires_in": 300,
    "refresh_expires_in": 1800,
    "token_type": "Bearer",
    "scope": "openid profile",
    "session_state": "s-1",
}

MOCK_INVALID_GRANT_RESPONSE = {
    "error": "invalid_grant",
    "error_description": "Token is not active",
}

MOCK_USER_INFO = {
    "sub": "user-1",
    "preferred_username": "jdoe",
    "email": "jdoe@example.com",
}


def make_result(**overrides: Any) -> TokenResult:
    """Valid TokenResult, optionally with fields replaced."""
    fields: dict[str, Any] = {
        "access_token": "access-abc",
        "id_token": "id-abc",
        "refresh_token": "refresh-rotated",
        "access_token_expiry": datetime.now(UTC) + timedelta(minutes=5),
        "token_type": "Bearer",
        "scope": "openid",
    }
    fields.update(overrides)
    return TokenResult(**fields)
