"""Helpers for observing AuthStateStream emissions in tests."""

from keycloak_session.auth_token.state_stream import Subscription
from keycloak_session.auth_token.types import AuthState


def drain(sub: Subscription) -> list[AuthState]:
    """Return every state queued on a subscription without waiting."""
    states: list[AuthState] = []
    while sub.pending():
        states.append(sub._queue.get_nowait())
    return states
