"""Tests for keycloak_session/constants.py."""

from keycloak_session import constants
from keycloak_session.constants import _get_env_float, _get_env_int


def test_env_int_override(monkeypatch):
    monkeypatch.setenv("KEYCLOAK_TEST_INT", "42")
    assert _get_env_int("KEYCLOAK_TEST_INT", 7) == 42


def test_env_int_invalid_falls_back(monkeypatch, capsys):
    monkeypatch.setenv("KEYCLOAK_TEST_INT", "forty-two")
    assert _get_env_int("KEYCLOAK_TEST_INT", 7) == 7
    assert "Invalid integer value" in capsys.readouterr().out


def test_env_float(monkeypatch):
    monkeypatch.setenv("KEYCLOAK_TEST_FLOAT", "0.25")
    assert _get_env_float("KEYCLOAK_TEST_FLOAT", 1.0) == 0.25
    monkeypatch.setenv("KEYCLOAK_TEST_FLOAT", "quarter")
    assert _get_env_float("KEYCLOAK_TEST_FLOAT", 1.0) == 1.0


def test_unset_uses_default(monkeypatch):
    monkeypatch.delenv("KEYCLOAK_TEST_INT", raising=False)
    assert _get_env_int("KEYCLOAK_TEST_INT", 7) == 7


def test_persisted_key_names_are_stable():
    assert constants.REFRESH_TOKEN_KEY == "keycloak:refreshToken"
    assert constants.HAS_RUN_BEFORE_KEY == "keycloak:hasRunBefore"
    assert constants.DEFAULT_REDIRECT_PORT == 10000
    assert constants.DEFAULT_SCOPES == ("openid",)
