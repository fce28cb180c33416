"""
Logging setup for the Keycloak session client.

``LoggerConfigurator`` installs a colorlog console handler whose
``TokenRedactionFilter`` keeps bearer credentials out of the output.
``log_structured_error`` is the single funnel for reported failures; it
feeds ``failure_tracker`` so a burst of identical failures (a refresh loop
hammering an unreachable provider, a locked keychain) is flagged once.
"""

import logging
import os
import re
import sys
import threading
import time
from collections import deque
from typing import Any

import colorlog

from .constants import FAILURE_ALERT_THRESHOLD, FAILURE_ALERT_WINDOW_SECONDS

LOGGER_NAME = "keycloak_session"

SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "id_token",
        "refresh_token",
        "client_secret",
        "code",
        "id_token_hint",
        "authorization",
    }
)

# Three base64url segments starting with an encoded JSON header ("{" -> "eyJ")
_JWT_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]*")
_BEARER_RE = re.compile(r"(?i)(bearer\s+)[\w.~+/-]+=*")


def _mask(value: str) -> str:
    return f"***{value[-4:]}" if len(value) > 8 else "***"


def redact_text(text: str) -> str:
    """Mask JWTs and bearer credentials embedded in free text."""
    text = _BEARER_RE.sub(lambda m: m.group(1) + "[REDACTED]", text)
    return _JWT_RE.sub(lambda m: _mask(m.group(0)), text)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``context`` with credential-bearing keys redacted."""
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else v)
        for k, v in context.items()
    }


class TokenRedactionFilter(logging.Filter):
    """Rewrite records so tokens never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class FailureTracker:
    """Counts failures per category over a sliding time window.

    ``record`` returns True exactly once per burst: when the count within
    the window reaches the threshold. The burst ends when the window drains
    below the threshold again.
    """

    def __init__(
        self,
        threshold: int = FAILURE_ALERT_THRESHOLD,
        window_seconds: float = FAILURE_ALERT_WINDOW_SECONDS,
    ):
        self.threshold = threshold
        self.window_seconds = window_seconds
        self._events: dict[str, deque[float]] = {}
        self._alerted: set[str] = set()
        self._lock = threading.Lock()

    def _prune(self, category: str, now: float) -> deque[float]:
        events = self._events.setdefault(category, deque())
        while events and now - events[0] > self.window_seconds:
            events.popleft()
        if len(events) < self.threshold:
            self._alerted.discard(category)
        return events

    def record(self, category: str, now: float | None = None) -> bool:
        """Record one failure; True when it starts a new burst."""
        now = time.monotonic() if now is None else now
        with self._lock:
            events = self._prune(category, now)
            events.append(now)
            if len(events) >= self.threshold and category not in self._alerted:
                self._alerted.add(category)
                return True
            return False

    def count(self, category: str, now: float | None = None) -> int:
        now = time.monotonic() if now is None else now
        with self._lock:
            return len(self._prune(category, now))

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._alerted.clear()


# Process-wide tracker fed by log_structured_error
failure_tracker = FailureTracker()


def log_structured_error(
    error_type: str,
    message: str,
    exception: BaseException | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
    stack: str | None = None,
) -> None:
    """Log a categorized failure and track its frequency.

    Args:
        error_type: Category (network, auth, ratelimit, parsing, storage, ...).
        message: What was being attempted.
        exception: The failure, rendered as ``Type: text``.
        context: ``key=value`` details; credential keys are redacted.
        level: Logging level (default ERROR).
        stack: Formatted traceback appended on its own lines.
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception is not None:
        parts.append(f"{type(exception).__name__}: {exception}")
    if context:
        parts.append(" ".join(f"{k}={v}" for k, v in redact_context(context).items()))
    text = " | ".join(parts)
    if stack:
        text += f"\n{stack.rstrip()}"

    logger = logging.getLogger(LOGGER_NAME)
    logger.log(level, redact_text(text))

    if failure_tracker.record(error_type):
        logger.warning(
            f"🚨 Repeated {error_type} failures count={failure_tracker.threshold} "
            f"window={int(failure_tracker.window_seconds)}s"
        )


class LoggerConfigurator:
    """Configures console logging with colorlog.

    The level comes from ``config["level"]`` when given, else the ``DEBUG``
    environment variable (``true``/``1``/``yes`` selects DEBUG, anything
    else INFO).
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = config or {}

    def _level(self) -> int:
        if "level" in self.config:
            return self.config["level"]
        debug = os.environ.get("DEBUG", "").strip().lower() in ("true", "1", "yes")
        return logging.DEBUG if debug else logging.INFO

    def configure(self) -> None:
        level = self._level()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s %(levelname).1s%(reset)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
            log_colors={
                "DEBUG": "blue",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        handler.addFilter(TokenRedactionFilter())

        root = logging.getLogger()
        root.handlers[:] = [handler]
        root.setLevel(level)

        # Loopback redirect listener requests are not worth an INFO line each
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
