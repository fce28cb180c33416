"""Token lifecycle: session state machine, collaborators and types."""

from .background_task_manager import BackgroundRefresher
from .client import HttpAuthorizationAgent
from .decoder import DecodedToken, JoseTokenDecoder
from .manager import SessionManager
from .state_stream import AuthStateStream, Subscription
from .types import (
    AuthorizationTokenRequest,
    AuthState,
    EndSessionRequest,
    ServiceConfiguration,
    TokenRequest,
    TokenResult,
    TokenSet,
)

__all__ = [
    "AuthState",
    "AuthStateStream",
    "AuthorizationTokenRequest",
    "BackgroundRefresher",
    "DecodedToken",
    "EndSessionRequest",
    "HttpAuthorizationAgent",
    "JoseTokenDecoder",
    "ServiceConfiguration",
    "SessionManager",
    "Subscription",
    "TokenRequest",
    "TokenResult",
    "TokenSet",
]
