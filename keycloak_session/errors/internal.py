"""Centralized internal error hierarchy.

These exceptions provide semantic categories for the session manager and
its collaborators. Only raise these inside application/network boundaries;
never surface raw aiohttp / JSON / keyring errors to callers, wrap them
instead.

Classes:
  InternalError               – Base for all internal errors.
  ConfigurationError          – Invalid client configuration (fail fast).
  NotInitializedError         – Operation used before ``initialize()``.
  NetworkError                – Transient network/IO issues.
  OAuthError                  – Provider rejected the request.
  AuthorizationCancelledError – User cancelled or denied the interactive flow.
  ParsingError                – Response parsing / schema validation issues.
  TokenDecodeError            – A JWT could not be decoded.
  RateLimitError              – Explicit rate limiting signalled by the provider.
  StorageError                – Secure or preference store backend failure.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.

    Args:
        message: Descriptive error message.
        data: Optional mapping of additional context data.
    """

    data: dict[str, object]

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class ConfigurationError(InternalError, ValueError):
    """Raised when the client configuration is malformed or incomplete.

    Configuration errors are raised at construction time so that a broken
    setup fails before any network or storage activity happens.
    """


class NotInitializedError(InternalError, RuntimeError):
    """Raised when a session operation is called before ``initialize()``."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"{operation}() called before initialize(); "
            "initialize the session manager first",
            data={"operation": operation},
        )


class NetworkError(InternalError):
    """Exception raised for network or transport layer errors.

    This includes connection timeouts, resets, DNS failures and unexpected
    HTTP statuses that may succeed on a later attempt.
    """


class OAuthError(InternalError):
    """Exception raised when the identity provider rejects a request.

    Carries the OAuth ``error`` code (when the provider sent one) in
    ``data["error"]``.
    """

    @property
    def error_code(self) -> str | None:
        code = self.data.get("error")
        return code if isinstance(code, str) else None


class AuthorizationCancelledError(OAuthError):
    """The user cancelled or denied the interactive authorization."""


class ParsingError(InternalError):
    """Exception raised for response parsing or schema validation errors."""


class TokenDecodeError(ParsingError):
    """Raised when a JWT cannot be decoded into claims."""


class RateLimitError(InternalError):
    """Exception raised when the provider signals rate limiting."""

    def __init__(
        self, message: str = "Rate limited", *, retry_after: float | None = None
    ) -> None:
        super().__init__(message, data={"retry_after": retry_after})


class StorageError(InternalError):
    """Exception raised when a secure or preference store backend fails."""
