"""Shared types for the auth_token package."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from ..errors.internal import ParsingError


class AuthState(str, Enum):
    """Enumeration of user authentication states.

    Attributes:
        UNAUTHENTICATED: No usable session.
        PENDING: An init, login, refresh or logout operation is in flight.
        AUTHENTICATED: A valid token set is held.
        UNAVAILABLE: Network absent; prior session validity is indeterminate.
    """

    UNAUTHENTICATED = "unauthenticated"
    PENDING = "pending"
    AUTHENTICATED = "authenticated"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class TokenSet:
    """Tokens obtained from one successful exchange or refresh.

    Attributes:
        access_token: Bearer access token.
        id_token: OpenID Connect ID token.
        refresh_token: Refresh token, if the provider issued one.
        access_token_expiry: Access token expiry, if known.
        token_type: Token type reported by the provider.
        scope: Granted scopes as reported by the provider.
    """

    access_token: str | None
    id_token: str | None
    refresh_token: str | None = None
    access_token_expiry: datetime | None = None
    token_type: str | None = "Bearer"
    scope: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.access_token_expiry is None:
            return False
        return self.access_token_expiry <= (now or datetime.now(UTC))

    @property
    def is_valid(self) -> bool:
        """True when access and ID tokens are present and the access token is unexpired."""
        return bool(self.access_token) and bool(self.id_token) and not self.is_expired()

    def remaining_seconds(self) -> float | None:
        if self.access_token_expiry is None:
            return None
        return (self.access_token_expiry - datetime.now(UTC)).total_seconds()

    def __repr__(self) -> str:
        # Never render raw credentials in logs or tracebacks.
        return (
            f"TokenSet(access_token={'set' if self.access_token else None}, "
            f"id_token={'set' if self.id_token else None}, "
            f"refresh_token={'set' if self.refresh_token else None}, "
            f"access_token_expiry={self.access_token_expiry!r})"
        )


def is_valid_result(result: TokenResult | None) -> bool:
    """Whether an agent response yielded a usable token set."""
    return result is not None and result.to_token_set().is_valid


@dataclass(frozen=True)
class TokenResult:
    """Raw token endpoint response as returned by an authorization agent.

    Attributes:
        access_token: The access token, if available.
        id_token: The ID token, if available.
        refresh_token: The refresh token, if available.
        access_token_expiry: Absolute expiry computed from ``expires_in``.
        token_type: Token type, usually ``Bearer``.
        scope: Granted scopes.
        extra: Remaining response fields.
    """

    access_token: str | None
    id_token: str | None = None
    refresh_token: str | None = None
    access_token_expiry: datetime | None = None
    token_type: str | None = None
    scope: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(
        cls, payload: Mapping[str, Any], *, now: datetime | None = None
    ) -> TokenResult:
        """Build a result from a token endpoint JSON body.

        Raises:
            ParsingError: If the payload is not an object or has malformed fields.
        """
        if not isinstance(payload, Mapping):
            raise ParsingError("Token response is not a JSON object")
        expires_in = payload.get("expires_in")
        expiry = None
        if expires_in is not None:
            try:
                seconds = int(expires_in)
            except (TypeError, ValueError) as e:
                raise ParsingError(f"Invalid expires_in value: {expires_in!r}") from e
            expiry = (now or datetime.now(UTC)) + timedelta(seconds=seconds)
        known = {
            "access_token",
            "id_token",
            "refresh_token",
            "expires_in",
            "token_type",
            "scope",
        }
        return cls(
            access_token=_opt_str(payload.get("access_token")),
            id_token=_opt_str(payload.get("id_token")),
            refresh_token=_opt_str(payload.get("refresh_token")),
            access_token_expiry=expiry,
            token_type=_opt_str(payload.get("token_type")),
            scope=_opt_str(payload.get("scope")),
            extra={k: v for k, v in payload.items() if k not in known},
        )

    def to_token_set(self) -> TokenSet:
        return TokenSet(
            access_token=self.access_token,
            id_token=self.id_token,
            refresh_token=self.refresh_token,
            access_token_expiry=self.access_token_expiry,
            token_type=self.token_type or "Bearer",
            scope=self.scope,
        )


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ParsingError(f"Expected string token field, got {type(value).__name__}")
    return value or None


@dataclass(frozen=True)
class ServiceConfiguration:
    """Explicit endpoint pair used instead of provider discovery."""

    authorization_endpoint: str
    token_endpoint: str
    end_session_endpoint: str | None = None


@dataclass(frozen=True)
class AuthorizationTokenRequest:
    """Parameters for an interactive authorization code flow."""

    client_id: str
    redirect_uri: str
    issuer: str
    discovery_url: str
    scopes: tuple[str, ...]
    prompt_values: tuple[str, ...] = ()
    client_secret: str | None = None
    allow_insecure_connections: bool = False
    prefer_ephemeral_session: bool = False
    redirect_port: int = 10000
    service_configuration: ServiceConfiguration | None = None


@dataclass(frozen=True)
class TokenRequest:
    """Parameters for a silent token endpoint request (refresh grant)."""

    client_id: str
    redirect_uri: str
    issuer: str
    discovery_url: str
    scopes: tuple[str, ...]
    refresh_token: str
    grant_type: str = "refresh_token"
    client_secret: str | None = None
    allow_insecure_connections: bool = False
    service_configuration: ServiceConfiguration | None = None


@dataclass(frozen=True)
class EndSessionRequest:
    """Parameters for ending the session at the provider."""

    client_id: str
    id_token_hint: str | None
    issuer: str
    discovery_url: str
    post_logout_redirect_url: str
    allow_insecure_connections: bool = False
    prefer_ephemeral_session: bool = False
    service_configuration: ServiceConfiguration | None = None
