"""Tests for keycloak_session/config/model.py."""

import pytest

from keycloak_session.config.model import AuthConfig
from keycloak_session.errors.internal import ConfigurationError

BASE = {
    "client_id": "mobile-app",
    "realm": "demo",
    "frontend_url": "https://sso.example.com",
    "redirect_uri": "com.example.app://login-callback",
}


def _config(**overrides):
    data = dict(BASE)
    data.update(overrides)
    return AuthConfig(**data)


class TestDerivedValues:
    def test_urls_derive_from_frontend_and_realm(self):
        config = _config(frontend_url="https://sso.example.com/")

        assert config.frontend_url == "https://sso.example.com"
        assert config.issuer == "https://sso.example.com/realms/demo"
        assert config.discovery_url == (
            "https://sso.example.com/realms/demo/.well-known/openid-configuration"
        )
        assert config.user_info_endpoint == (
            "https://sso.example.com/realms/demo/protocol/openid-connect/userinfo"
        )
        assert config.end_session_endpoint == (
            "https://sso.example.com/realms/demo/protocol/openid-connect/logout"
        )

    def test_explicit_discovery_url_is_kept(self):
        config = _config(discovery_url="https://meta.example.com/openid")
        assert config.discovery_url == "https://meta.example.com/openid"

    def test_redirect_uri_derived_from_bundle_identifier(self):
        data = dict(BASE)
        del data["redirect_uri"]
        config = AuthConfig(bundle_identifier="com.example.app", **data)
        assert config.redirect_uri == "com.example.app://login-callback"

    def test_explicit_redirect_uri_wins_over_bundle(self):
        config = _config(bundle_identifier="com.other.app")
        assert config.redirect_uri == "com.example.app://login-callback"

    def test_defaults(self):
        config = _config()
        assert config.scopes == ("openid",)
        assert config.redirect_port == 10000
        assert config.prefer_ephemeral_session is False
        assert config.allow_insecure_connections is False
        assert config.has_custom_endpoints is False

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("openid profile email", ("openid", "profile", "email")),
            ("openid,profile", ("openid", "profile")),
            (["openid", " profile ", "openid"], ("openid", "profile")),
            ([], ("openid",)),
            ("  ", ("openid",)),
        ],
    )
    def test_scopes_are_normalized(self, raw, expected):
        config = _config(scopes=raw)
        assert config.scopes == expected

    def test_scope_string(self):
        assert _config(scopes=["openid", "email"]).scope_string == "openid email"

    def test_custom_endpoint_pair(self):
        config = _config(
            authorization_endpoint="https://auth.example.com/authorize",
            token_endpoint="https://auth.example.com/token",
        )
        assert config.has_custom_endpoints is True

    def test_summary_redacts_secret(self):
        summary = _config(client_secret="s3cr3t").summary()
        assert summary["client_secret"] == "set"
        assert "s3cr3t" not in str(summary)


class TestValidation:
    @pytest.mark.parametrize("field", ["client_id", "realm", "frontend_url"])
    def test_missing_required_field(self, field):
        data = dict(BASE)
        del data[field]
        with pytest.raises(ConfigurationError):
            AuthConfig(**data)

    def test_missing_redirect_uri_and_bundle(self):
        data = dict(BASE)
        del data["redirect_uri"]
        with pytest.raises(ConfigurationError, match="redirect_uri"):
            AuthConfig(**data)

    @pytest.mark.parametrize("field", ["client_id", "realm"])
    def test_blank_identifier_rejected(self, field):
        with pytest.raises(ConfigurationError):
            _config(**{field: "   "})

    def test_identifiers_are_stripped(self):
        config = _config(client_id=" mobile-app ", realm=" demo ")
        assert config.client_id == "mobile-app"
        assert config.issuer == "https://sso.example.com/realms/demo"

    def test_non_http_frontend_rejected(self):
        with pytest.raises(ConfigurationError, match="frontend_url"):
            _config(frontend_url="ftp://sso.example.com")

    def test_plain_http_requires_insecure_flag(self):
        with pytest.raises(ConfigurationError, match="https"):
            _config(frontend_url="http://localhost:8080")

        config = _config(frontend_url="http://localhost:8080", allow_insecure_connections=True)
        assert config.issuer == "http://localhost:8080/realms/demo"

    def test_endpoint_pair_must_be_complete(self):
        with pytest.raises(ConfigurationError, match="together"):
            _config(authorization_endpoint="https://auth.example.com/authorize")

    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_redirect_port_range(self, port):
        with pytest.raises(ConfigurationError):
            _config(redirect_port=port)

    def test_unknown_field_rejected(self):
        with pytest.raises(ConfigurationError):
            _config(unknown_option=True)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            _config(client_id="")

    def test_config_is_frozen(self):
        config = _config()
        with pytest.raises(Exception):  # noqa: B017
            config.realm = "other"  # type: ignore[misc]
