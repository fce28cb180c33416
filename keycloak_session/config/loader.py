"""Build an ``AuthConfig`` from ``KEYCLOAK_*`` environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

from ..errors.internal import ConfigurationError
from .model import AuthConfig

_STRING_VARS = {
    "KEYCLOAK_CLIENT_ID": "client_id",
    "KEYCLOAK_REDIRECT_URI": "redirect_uri",
    "KEYCLOAK_BUNDLE_IDENTIFIER": "bundle_identifier",
    "KEYCLOAK_FRONTEND_URL": "frontend_url",
    "KEYCLOAK_REALM": "realm",
    "KEYCLOAK_DISCOVERY_URL": "discovery_url",
    "KEYCLOAK_CLIENT_SECRET": "client_secret",
    "KEYCLOAK_SCOPES": "scopes",
    "KEYCLOAK_AUTHORIZATION_ENDPOINT": "authorization_endpoint",
    "KEYCLOAK_TOKEN_ENDPOINT": "token_endpoint",
}
_BOOL_VARS = {
    "KEYCLOAK_PREFER_EPHEMERAL_SESSION": "prefer_ephemeral_session",
    "KEYCLOAK_ALLOW_INSECURE_CONNECTIONS": "allow_insecure_connections",
}

PREFERENCES_FILE_VAR = "KEYCLOAK_PREFERENCES_FILE"
DEFAULT_PREFERENCES_FILE = "~/.config/keycloak_session/preferences.json"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off", ""):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got '{raw}'")


def load_config_from_env(environ: Mapping[str, str] | None = None) -> AuthConfig:
    """Create an ``AuthConfig`` from environment variables.

    Unset or empty variables are left to the model defaults.

    Raises:
        ConfigurationError: If a value is malformed or a required one is missing.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    for var, field in _STRING_VARS.items():
        value = env.get(var)
        if value:
            data[field] = value.strip()
    for var, field in _BOOL_VARS.items():
        value = env.get(var)
        if value is not None:
            data[field] = _parse_bool(var, value)
    port = env.get("KEYCLOAK_REDIRECT_PORT")
    if port:
        try:
            data["redirect_port"] = int(port)
        except ValueError as e:
            raise ConfigurationError(
                f"KEYCLOAK_REDIRECT_PORT must be an integer, got '{port}'"
            ) from e
    config = AuthConfig(**data)
    logging.debug(f"⚙️ Loaded auth configuration from environment realm={config.realm}")
    return config


def preferences_path_from_env(environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    return os.path.expanduser(env.get(PREFERENCES_FILE_VAR) or DEFAULT_PREFERENCES_FILE)
