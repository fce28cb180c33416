"""Keycloak OAuth2/OIDC session client.

Tracks whether the user is signed in, persists and rotates the refresh
token, silently renews access tokens and publishes every transition as an
``AuthState`` stream.
"""

from .application_context import ApplicationContext
from .auth_token import (
    AuthState,
    AuthStateStream,
    BackgroundRefresher,
    HttpAuthorizationAgent,
    JoseTokenDecoder,
    SessionManager,
    TokenResult,
    TokenSet,
)
from .config import AuthConfig, load_config_from_env
from .connectivity import HttpConnectivityProbe, StaticConnectivityProbe
from .storage import (
    JsonPreferenceStore,
    KeyringSecureStore,
    MemoryPreferenceStore,
    MemorySecureStore,
)

__version__ = "0.1.0"

__all__ = [
    "ApplicationContext",
    "AuthConfig",
    "AuthState",
    "AuthStateStream",
    "BackgroundRefresher",
    "HttpAuthorizationAgent",
    "HttpConnectivityProbe",
    "JoseTokenDecoder",
    "JsonPreferenceStore",
    "KeyringSecureStore",
    "MemoryPreferenceStore",
    "MemorySecureStore",
    "SessionManager",
    "StaticConnectivityProbe",
    "TokenResult",
    "TokenSet",
    "load_config_from_env",
]
