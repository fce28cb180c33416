from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..constants import DEFAULT_REDIRECT_PORT, DEFAULT_SCOPES
from ..errors.internal import ConfigurationError


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _derive_defaults(data: dict[str, Any]) -> dict[str, Any]:
    """Fill derived fields (redirect URI, discovery URL) from raw input.

    Returns a new dict; the caller's mapping is left untouched.
    """
    out = dict(data)
    frontend_url = out.get("frontend_url")
    if isinstance(frontend_url, str):
        out["frontend_url"] = frontend_url.strip().rstrip("/")
    if not out.get("redirect_uri") and out.get("bundle_identifier"):
        out["redirect_uri"] = f"{out['bundle_identifier']}://login-callback"
    if not out.get("discovery_url"):
        frontend = out.get("frontend_url")
        realm = out.get("realm")
        if frontend and realm:
            out["discovery_url"] = (
                f"{frontend}/realms/{realm}/.well-known/openid-configuration"
            )
    return out


class AuthConfig(BaseModel):
    """Immutable client configuration for one identity provider realm.

    Attributes:
        client_id: OAuth client identifier registered in the realm.
        realm: Realm name.
        frontend_url: Provider base URL (issuer base), without the realm path.
        redirect_uri: Redirect URI registered for the client. Derived from
            ``bundle_identifier`` when omitted.
        bundle_identifier: Application identifier used to derive a custom
            scheme redirect URI (``<bundle>://login-callback``).
        discovery_url: OpenID provider metadata URL. Derived from
            ``frontend_url`` and ``realm`` when omitted.
        client_secret: Confidential client secret, if any.
        scopes: Requested scopes.
        authorization_endpoint: Custom authorization endpoint (paired with
            ``token_endpoint``); bypasses discovery when set.
        token_endpoint: Custom token endpoint.
        redirect_port: Port the loopback redirect listener binds to.
        prefer_ephemeral_session: Ask the browser for a private session.
        allow_insecure_connections: Permit plain HTTP and skip TLS verification.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    client_id: str = Field(min_length=1)
    realm: str = Field(min_length=1)
    frontend_url: str = Field(min_length=1)
    redirect_uri: str = Field(min_length=1)
    bundle_identifier: str | None = None
    discovery_url: str
    client_secret: str | None = None
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    redirect_port: int = Field(default=DEFAULT_REDIRECT_PORT, ge=1, le=65535)
    prefer_ephemeral_session: bool = False
    allow_insecure_connections: bool = False

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(
                f"Invalid auth configuration: {problems}",
                data={"errors": len(e.errors())},
            ) from e

    @model_validator(mode="before")
    @classmethod
    def fill_derived(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return _derive_defaults(data)
        return data

    @field_validator("scopes", mode="before")
    @classmethod
    def validate_scopes(cls, v: Any) -> tuple[str, ...]:
        """Normalize scopes: accept a space separated string or a sequence.

        Strips whitespace, drops empties and duplicates (order kept). An empty
        result falls back to the default ``openid`` scope.
        """
        if isinstance(v, str):
            v = v.replace(",", " ").split()
        if not isinstance(v, list | tuple):
            raise ValueError("scopes must be a string or a sequence of strings")
        cleaned = [s.strip() for s in v if isinstance(s, str) and s.strip()]
        normalized = tuple(dict.fromkeys(cleaned))
        return normalized or DEFAULT_SCOPES

    @field_validator("realm", "client_id")
    @classmethod
    def strip_identifiers(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @model_validator(mode="after")
    def validate_urls(self) -> AuthConfig:
        for name in ("frontend_url", "discovery_url"):
            value = getattr(self, name)
            if not _is_http_url(value):
                raise ValueError(f"{name} must be an absolute http(s) URL")

        if (self.authorization_endpoint is None) != (self.token_endpoint is None):
            raise ValueError(
                "authorization_endpoint and token_endpoint must be provided together"
            )
        for name in ("authorization_endpoint", "token_endpoint"):
            value = getattr(self, name)
            if value is not None and not _is_http_url(value):
                raise ValueError(f"{name} must be an absolute http(s) URL")

        if not self.allow_insecure_connections:
            for name in (
                "frontend_url",
                "discovery_url",
                "authorization_endpoint",
                "token_endpoint",
            ):
                value = getattr(self, name)
                if value is not None and urlparse(value).scheme != "https":
                    raise ValueError(
                        f"{name} must use https unless allow_insecure_connections is set"
                    )
        return self

    @property
    def issuer(self) -> str:
        """Issuer URL of the realm."""
        return f"{self.frontend_url}/realms/{self.realm}"

    @property
    def user_info_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/userinfo"

    @property
    def end_session_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/logout"

    @property
    def has_custom_endpoints(self) -> bool:
        return self.authorization_endpoint is not None and self.token_endpoint is not None

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)

    def summary(self) -> dict[str, Any]:
        """Log-safe view of the configuration (secret redacted)."""
        return {
            "client_id": self.client_id,
            "realm": self.realm,
            "issuer": self.issuer,
            "redirect_uri": self.redirect_uri,
            "scopes": self.scope_string,
            "client_secret": "set" if self.client_secret else "unset",
            "insecure": self.allow_insecure_connections,
        }
