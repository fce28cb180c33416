"""Tests for keycloak_session/auth_token/types.py."""

from datetime import UTC, datetime, timedelta

import pytest
from freezegun import freeze_time

from keycloak_session.auth_token.types import (
    AuthState,
    TokenResult,
    TokenSet,
    is_valid_result,
)
from keycloak_session.errors.internal import ParsingError
from tests.fixtures.token_fixtures import MOCK_TOKEN_RESPONSE, make_result

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


def test_auth_state_values():
    assert [s.value for s in AuthState] == [
        "unauthenticated",
        "pending",
        "authenticated",
        "unavailable",
    ]
    assert AuthState("pending") is AuthState.PENDING


class TestTokenResult:
    def test_from_response(self):
        result = TokenResult.from_response(MOCK_TOKEN_RESPONSE, now=NOW)

        assert result.access_token == "access-abc"
        assert result.id_token == "id-abc"
        assert result.refresh_token == "refresh-rotated"
        assert result.access_token_expiry == NOW + timedelta(seconds=300)
        assert result.scope == "openid profile"
        assert result.extra == {"refresh_expires_in": 1800, "session_state": "s-1"}

    def test_missing_expires_in_leaves_expiry_unknown(self):
        result = TokenResult.from_response({"access_token": "a", "id_token": "i"})
        assert result.access_token_expiry is None
        assert result.to_token_set().is_valid is True

    def test_empty_strings_become_none(self):
        result = TokenResult.from_response({"access_token": "a", "id_token": ""})
        assert result.id_token is None

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "a", "dict"],
            {"access_token": "a", "expires_in": "soon"},
            {"access_token": 42},
        ],
    )
    def test_malformed_payload(self, payload):
        with pytest.raises(ParsingError):
            TokenResult.from_response(payload)

    def test_to_token_set_defaults_token_type(self):
        token_set = make_result(token_type=None).to_token_set()
        assert token_set.token_type == "Bearer"


class TestTokenSet:
    @freeze_time("2024-01-01 12:00:00")
    def test_validity(self):
        future = NOW + timedelta(minutes=5)
        assert TokenSet("a", "i", access_token_expiry=future).is_valid is True
        assert TokenSet("a", None, access_token_expiry=future).is_valid is False
        assert TokenSet(None, "i", access_token_expiry=future).is_valid is False
        assert TokenSet("a", "i", access_token_expiry=NOW).is_valid is False

    @freeze_time("2024-01-01 12:00:00")
    def test_remaining_seconds(self):
        token_set = TokenSet("a", "i", access_token_expiry=NOW + timedelta(seconds=90))
        assert token_set.remaining_seconds() == 90
        assert TokenSet("a", "i").remaining_seconds() is None

    def test_repr_hides_credentials(self):
        token_set = TokenSet("secret-access", "secret-id", "secret-refresh")
        text = repr(token_set)
        assert "secret" not in text
        assert "access_token=set" in text


def test_is_valid_result():
    assert is_valid_result(make_result()) is True
    assert is_valid_result(None) is False
    assert is_valid_result(make_result(id_token=None)) is False
