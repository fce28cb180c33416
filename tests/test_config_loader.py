"""Tests for keycloak_session/config/loader.py."""

import os

import pytest

from keycloak_session.config.loader import load_config_from_env, preferences_path_from_env
from keycloak_session.errors.internal import ConfigurationError

ENV = {
    "KEYCLOAK_CLIENT_ID": "mobile-app",
    "KEYCLOAK_REALM": "demo",
    "KEYCLOAK_FRONTEND_URL": "https://sso.example.com",
    "KEYCLOAK_BUNDLE_IDENTIFIER": "com.example.app",
}


def test_minimal_environment():
    config = load_config_from_env(ENV)

    assert config.client_id == "mobile-app"
    assert config.redirect_uri == "com.example.app://login-callback"
    assert config.issuer == "https://sso.example.com/realms/demo"


def test_full_environment():
    env = dict(ENV)
    env.update(
        {
            "KEYCLOAK_REDIRECT_URI": "http://127.0.0.1:9000/callback",
            "KEYCLOAK_SCOPES": "openid, profile offline_access",
            "KEYCLOAK_CLIENT_SECRET": "s3cr3t",
            "KEYCLOAK_REDIRECT_PORT": "9000",
            "KEYCLOAK_PREFER_EPHEMERAL_SESSION": "yes",
            "KEYCLOAK_ALLOW_INSECURE_CONNECTIONS": "false",
        }
    )

    config = load_config_from_env(env)

    assert config.redirect_uri == "http://127.0.0.1:9000/callback"
    assert config.scopes == ("openid", "profile", "offline_access")
    assert config.client_secret == "s3cr3t"
    assert config.redirect_port == 9000
    assert config.prefer_ephemeral_session is True
    assert config.allow_insecure_connections is False


def test_empty_values_are_ignored():
    env = dict(ENV, KEYCLOAK_CLIENT_SECRET="", KEYCLOAK_DISCOVERY_URL="")
    config = load_config_from_env(env)
    assert config.client_secret is None
    assert config.discovery_url.endswith("/.well-known/openid-configuration")


def test_invalid_boolean():
    with pytest.raises(ConfigurationError, match="KEYCLOAK_ALLOW_INSECURE_CONNECTIONS"):
        load_config_from_env(dict(ENV, KEYCLOAK_ALLOW_INSECURE_CONNECTIONS="maybe"))


def test_invalid_port():
    with pytest.raises(ConfigurationError, match="KEYCLOAK_REDIRECT_PORT"):
        load_config_from_env(dict(ENV, KEYCLOAK_REDIRECT_PORT="http"))


def test_missing_client_id():
    env = dict(ENV)
    del env["KEYCLOAK_CLIENT_ID"]
    with pytest.raises(ConfigurationError):
        load_config_from_env(env)


def test_reads_process_environment(monkeypatch):
    for key, value in ENV.items():
        monkeypatch.setenv(key, value)
    config = load_config_from_env()
    assert config.realm == "demo"


def test_preferences_path_default():
    path = preferences_path_from_env({})
    assert path == os.path.expanduser("~/.config/keycloak_session/preferences.json")


def test_preferences_path_override(tmp_path):
    target = str(tmp_path / "prefs.json")
    assert preferences_path_from_env({"KEYCLOAK_PREFERENCES_FILE": target}) == target
