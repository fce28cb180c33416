from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import aiohttp

from ..logging_config import log_structured_error
from .internal import (
    ConfigurationError,
    InternalError,
    NetworkError,
    OAuthError,
    ParsingError,
    RateLimitError,
    StorageError,
)

T = TypeVar("T")

ErrorSink = Callable[[str, BaseException, str], None]


def classify_error(error: BaseException) -> str:
    """Map an exception onto the structured logging error category."""
    if isinstance(error, NetworkError | OSError | ConnectionError | TimeoutError):
        return "network"
    if isinstance(error, RateLimitError):
        return "ratelimit"
    if isinstance(error, OAuthError):
        return "auth"
    if isinstance(error, ParsingError):
        return "parsing"
    if isinstance(error, StorageError):
        return "storage"
    if isinstance(error, ConfigurationError):
        return "config"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(
    message: str,
    error: BaseException,
    context: dict[str, Any] | None = None,
    stack: str | None = None,
) -> None:
    """Logs an error message with the associated exception details.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
        stack: Optional formatted stack trace.
    """
    log_structured_error(
        error_type=classify_error(error),
        message=message,
        exception=error,
        context=context,
        stack=stack,
    )


def default_error_sink(message: str, error: BaseException, stack: str) -> None:
    """Default ``on_error`` handler of the session manager.

    Logs the message, the error and its stack trace. Never raises.
    """
    try:
        log_error(message, error, stack=stack)
    except Exception as log_exc:  # pragma: no cover
        logging.debug(
            "Error sink logging failed: %s (%s)", log_exc, type(log_exc).__name__
        )


async def handle_api_error(
    operation: Callable[[], Awaitable[T]], context: str
) -> T:
    """Run an HTTP operation and translate transport failures.

    aiohttp / socket errors become ``NetworkError``; HTTP status errors
    become ``OAuthError`` (401/403), ``RateLimitError`` (429) or
    ``NetworkError``; JSON decoding problems become ``ParsingError``.
    Internal errors raised by ``operation`` pass through untouched.

    Args:
        operation: The async HTTP operation to execute.
        context: Descriptive context for the operation (e.g., "user info").

    Returns:
        The result of the operation if successful.
    """
    try:
        return await operation()
    except InternalError:
        raise
    except aiohttp.ContentTypeError as e:
        raise ParsingError(f"Unexpected content type in {context}") from e
    except aiohttp.ClientResponseError as e:
        if e.status in (401, 403):
            raise OAuthError(
                f"Authentication failed in {context} (HTTP {e.status}). "
                "The access token may be expired or revoked.",
                data={"http_status": e.status},
            ) from e
        if e.status == 429:
            raise RateLimitError(f"Rate limited in {context}") from e
        raise NetworkError(
            f"HTTP {e.status} in {context}", data={"http_status": e.status}
        ) from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParsingError(f"Malformed response body in {context}: {e}") from e
    except TimeoutError as e:
        raise NetworkError(f"Timeout in {context}") from e
    except (aiohttp.ClientError, OSError) as e:
        raise NetworkError(
            f"Network connectivity issue in {context}. "
            f"Check internet connection and DNS resolution. Error: {str(e)}"
        ) from e
