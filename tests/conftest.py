import os

# Test-friendly defaults for constants read at import time
os.environ.setdefault("RETRY_BACKOFF_MULTIPLIER", "0")
os.environ.setdefault("SESSION_REFRESH_JITTER_FACTOR", "0")

from collections.abc import Callable  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, Mock  # noqa: E402

import pytest  # noqa: E402

from keycloak_session.auth_token.decoder import JoseTokenDecoder  # noqa: E402
from keycloak_session.auth_token.manager import SessionManager  # noqa: E402
from keycloak_session.config.model import AuthConfig  # noqa: E402
from keycloak_session.connectivity import StaticConnectivityProbe  # noqa: E402
from keycloak_session.constants import HAS_RUN_BEFORE_KEY  # noqa: E402
from keycloak_session.logging_config import failure_tracker  # noqa: E402
from keycloak_session.storage import MemoryPreferenceStore, MemorySecureStore  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_failure_tracker():
    """Keep repeated-failure alerts from leaking between tests."""
    failure_tracker.reset()
    yield
    failure_tracker.reset()


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(
        client_id="mobile-app",
        realm="demo",
        frontend_url="https://sso.example.com/",
        redirect_uri="com.example.app://login-callback",
    )


@pytest.fixture
def secure_store() -> MemorySecureStore:
    return MemorySecureStore()


@pytest.fixture
def preferences() -> MemoryPreferenceStore:
    # Not a first run unless a test says otherwise
    return MemoryPreferenceStore({HAS_RUN_BEFORE_KEY: True})


@pytest.fixture
def agent() -> Mock:
    agent = Mock()
    agent.authorize_and_exchange_code = AsyncMock(return_value=None)
    agent.token = AsyncMock(return_value=None)
    agent.end_session = AsyncMock(return_value=None)
    return agent


@pytest.fixture
def connectivity() -> StaticConnectivityProbe:
    return StaticConnectivityProbe(online=True)


@pytest.fixture
def error_sink() -> Mock:
    return Mock()


@pytest.fixture
def make_manager(
    auth_config: AuthConfig,
    agent: Mock,
    secure_store: MemorySecureStore,
    preferences: MemoryPreferenceStore,
    connectivity: StaticConnectivityProbe,
    error_sink: Mock,
) -> Callable[..., SessionManager]:
    def _make(**overrides: Any) -> SessionManager:
        kwargs: dict[str, Any] = {
            "agent": agent,
            "secure_store": secure_store,
            "preferences": preferences,
            "decoder": JoseTokenDecoder(),
            "connectivity": connectivity,
            "on_error": error_sink,
        }
        kwargs.update(overrides)
        return SessionManager(auth_config, **kwargs)

    return _make
