"""JWT inspection for expiry decisions.

Only the payload is read; signatures are not verified because the tokens
inspected here come from our own secure store and are used solely to decide
whether a refresh attempt is worthwhile. The provider remains the authority
on validity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from ..errors.internal import TokenDecodeError


@dataclass(frozen=True)
class DecodedToken:
    """Claims of a decoded JWT plus its expiry.

    Attributes:
        claims: Unverified payload claims.
        expiry: Value of the ``exp`` claim, or None when absent (offline
            tokens commonly omit it).
    """

    claims: dict[str, Any] = field(default_factory=dict)
    expiry: datetime | None = None

    def will_expire(
        self, lookahead: timedelta = timedelta(0), *, now: datetime | None = None
    ) -> bool:
        """True if the token is expired now or will be within ``lookahead``.

        Tokens without an expiry never expire.
        """
        if self.expiry is None:
            return False
        current = now or datetime.now(UTC)
        return self.expiry <= current + lookahead

    @property
    def is_expired(self) -> bool:
        return self.will_expire()

    def remaining(self) -> timedelta | None:
        if self.expiry is None:
            return None
        return self.expiry - datetime.now(UTC)


class JoseTokenDecoder:
    """Token decoder backed by python-jose."""

    def decode(self, token: str) -> DecodedToken:
        """Decode a JWT payload without verifying the signature.

        Raises:
            TokenDecodeError: If the value is not a decodable JWT or ``exp`` is malformed.
        """
        if not token or not isinstance(token, str):
            raise TokenDecodeError("Empty token")
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise TokenDecodeError(f"Unable to decode token: {e}") from e
        if not isinstance(claims, dict):
            raise TokenDecodeError("Token payload is not a JSON object")
        return DecodedToken(claims=claims, expiry=_expiry_from_claims(claims))


def _expiry_from_claims(claims: dict[str, Any]) -> datetime | None:
    exp = claims.get("exp")
    if exp is None:
        return None
    if isinstance(exp, bool) or not isinstance(exp, int | float):
        raise TokenDecodeError(f"Invalid exp claim: {exp!r}")
    # Keycloak offline tokens carry exp=0 meaning "no expiry".
    if exp == 0:
        return None
    return datetime.fromtimestamp(exp, tz=UTC)
