"""Error hierarchy and error reporting helpers."""

from .handling import ErrorSink, default_error_sink, handle_api_error, log_error
from .internal import (
    AuthorizationCancelledError,
    ConfigurationError,
    InternalError,
    NetworkError,
    NotInitializedError,
    OAuthError,
    ParsingError,
    RateLimitError,
    StorageError,
    TokenDecodeError,
)

__all__ = [
    "AuthorizationCancelledError",
    "ConfigurationError",
    "ErrorSink",
    "InternalError",
    "NetworkError",
    "NotInitializedError",
    "OAuthError",
    "ParsingError",
    "RateLimitError",
    "StorageError",
    "TokenDecodeError",
    "default_error_sink",
    "handle_api_error",
    "log_error",
]
