"""
Configuration constants for the Keycloak session client

This module contains all tunable constants used throughout the package.
Each numeric constant can be overridden by setting an environment variable
with the same name.
"""

import os


def _get_env_int(name: str, default: int) -> int:
    """Retrieve an integer value from an environment variable.

    Attempts to parse the environment variable as an integer. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default integer value to return if parsing fails.

    Returns:
        The parsed integer value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            print(
                f"Warning: Invalid integer value for {name}='{value}', using default {default}"
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Retrieve a float value from an environment variable.

    Attempts to parse the environment variable as a float. If the variable
    is not set or cannot be parsed, prints a warning and returns the default value.

    Args:
        name: The name of the environment variable to read.
        default: The default float value to return if parsing fails.

    Returns:
        The parsed float value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            print(
                f"Warning: Invalid float value for {name}='{value}', using default {default}"
            )
    return default


# Persisted key names (stable across releases; changing them orphans stored data)
REFRESH_TOKEN_KEY = "keycloak:refreshToken"  # nosec B105  # noqa: S105
HAS_RUN_BEFORE_KEY = "keycloak:hasRunBefore"
KEYRING_SERVICE_NAME = "keycloak_session"

# Authorization defaults
DEFAULT_SCOPES = ("openid",)
DEFAULT_REDIRECT_PORT = 10000
LOGIN_PROMPT_VALUES = ("login",)

# Network/HTTP constants
HTTP_REQUEST_TIMEOUT_SECONDS = _get_env_int(
    "HTTP_REQUEST_TIMEOUT_SECONDS", 30
)  # Default HTTP request timeout
CONNECTIVITY_TIMEOUT_SECONDS = _get_env_float(
    "CONNECTIVITY_TIMEOUT_SECONDS", 5.0
)  # Reachability probe timeout
AUTHORIZATION_TIMEOUT_SECONDS = _get_env_int(
    "AUTHORIZATION_TIMEOUT_SECONDS", 300
)  # How long the loopback listener waits for the browser redirect

# Retry/backoff constants
DISCOVERY_MAX_ATTEMPTS = _get_env_int(
    "DISCOVERY_MAX_ATTEMPTS", 3
)  # Attempts to fetch the OpenID provider metadata
RETRY_BACKOFF_MULTIPLIER = _get_env_float(
    "RETRY_BACKOFF_MULTIPLIER", 0.5
)  # Exponential backoff multiplier
RETRY_MAX_BACKOFF_SECONDS = _get_env_int(
    "RETRY_MAX_BACKOFF_SECONDS", 10
)  # Maximum backoff time in seconds

# Background refresh scheduling
SESSION_REFRESH_INTERVAL_SECONDS = _get_env_int(
    "SESSION_REFRESH_INTERVAL_SECONDS", 60
)  # Base seconds between silent refresh attempts
SESSION_REFRESH_LOOKAHEAD_SECONDS = _get_env_int(
    "SESSION_REFRESH_LOOKAHEAD_SECONDS", 0
)  # Treat the refresh token as expired this many seconds early
SESSION_REFRESH_JITTER_FACTOR = _get_env_float(
    "SESSION_REFRESH_JITTER_FACTOR", 0.1
)  # +/- fraction applied to the refresh interval

# Failure alerting (logging_config.FailureTracker)
FAILURE_ALERT_THRESHOLD = _get_env_int(
    "FAILURE_ALERT_THRESHOLD", 5
)  # Same-category failures within the window before a single alert
FAILURE_ALERT_WINDOW_SECONDS = _get_env_int(
    "FAILURE_ALERT_WINDOW_SECONDS", 600
)  # Sliding window for counting failures
