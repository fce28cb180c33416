"""Protocol definitions for session manager collaborators.

The session manager only talks to these interfaces, so each collaborator
can be replaced (a platform keychain, a PKCE-capable browser agent, a test
double) without touching the state machine.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

from .types import AuthorizationTokenRequest, EndSessionRequest, TokenRequest, TokenResult


@runtime_checkable
class AuthorizationAgentProtocol(Protocol):
    """Protocol for the component running the OAuth protocol exchanges."""

    async def authorize_and_exchange_code(
        self, request: AuthorizationTokenRequest
    ) -> TokenResult | None:
        """Run the interactive authorization code flow and exchange the code."""
        ...

    async def token(self, request: TokenRequest) -> TokenResult | None:
        """Perform a silent token endpoint request (no user interaction)."""
        ...

    async def end_session(self, request: EndSessionRequest) -> None:
        """Terminate the session at the identity provider."""
        ...


@runtime_checkable
class SecureStoreProtocol(Protocol):
    """Protocol for credential persistence."""

    async def read(self, key: str) -> str | None:
        ...

    async def write(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_all(self) -> None:
        ...


@runtime_checkable
class PreferenceStoreProtocol(Protocol):
    """Protocol for small non-secret flag persistence."""

    async def get_bool(self, key: str) -> bool | None:
        ...

    async def set_bool(self, key: str, value: bool) -> None:
        ...


class DecodedTokenProtocol(Protocol):
    @property
    def claims(self) -> dict[str, Any]:
        ...

    def will_expire(self, lookahead: timedelta = timedelta(0)) -> bool:
        """True if the token is expired or expires within ``lookahead``."""
        ...


@runtime_checkable
class TokenDecoderProtocol(Protocol):
    """Protocol for JWT inspection (no signature verification required)."""

    def decode(self, token: str) -> DecodedTokenProtocol:
        ...


@runtime_checkable
class ConnectivityProbeProtocol(Protocol):
    """Protocol for network reachability checks."""

    async def has_network(self) -> bool:
        ...
