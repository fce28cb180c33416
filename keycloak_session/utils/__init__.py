"""Utility functions package for the Keycloak session client.

Exposed functions:
    format_duration: Formats time durations into human-readable strings.
    retry_async: Retries an async operation with exponential backoff.
"""

from .helpers import format_duration, mask_token
from .retry import RetryExhaustedError, retry_async

__all__ = ["format_duration", "mask_token", "retry_async", "RetryExhaustedError"]
