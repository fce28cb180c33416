"""HTTP authorization agent talking to the provider's OIDC endpoints."""

from __future__ import annotations

import logging
import secrets
import webbrowser
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, cast
from urllib.parse import urlencode, urlparse

import aiohttp

from ..constants import (
    AUTHORIZATION_TIMEOUT_SECONDS,
    DISCOVERY_MAX_ATTEMPTS,
    HTTP_REQUEST_TIMEOUT_SECONDS,
)
from ..errors.handling import handle_api_error
from ..errors.internal import (
    AuthorizationCancelledError,
    ConfigurationError,
    NetworkError,
    OAuthError,
    ParsingError,
    RateLimitError,
)
from ..utils import format_duration, retry_async
from .redirect_listener import RedirectListener
from .types import (
    AuthorizationTokenRequest,
    EndSessionRequest,
    ServiceConfiguration,
    TokenRequest,
    TokenResult,
)

# OAuth error codes meaning "this grant is dead", i.e. an invalid result
# rather than a failure worth reporting.
_INVALID_GRANT_ERRORS = frozenset({"invalid_grant", "invalid_token"})
_CANCEL_ERRORS = frozenset({"access_denied", "login_required", "consent_required"})
_LOOPBACK_HOSTS = frozenset({"127.0.0.1", "localhost"})


def is_loopback_redirect(redirect_uri: str, port: int) -> bool:
    """True if ``redirect_uri`` reaches a listener on ``127.0.0.1:port``."""
    parsed = urlparse(redirect_uri)
    try:
        uri_port = parsed.port
    except ValueError:
        return False
    return (
        parsed.scheme == "http"
        and parsed.hostname in _LOOPBACK_HOSTS
        and uri_port == port
    )


class HttpAuthorizationAgent:
    """Runs authorization code, refresh and end-session exchanges over HTTP.

    The interactive flow opens the system browser on the authorization
    endpoint and captures the redirect with a loopback listener bound to
    ``request.redirect_port``. Provider metadata is discovered once per
    discovery URL and cached.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession | None = None,
        *,
        open_browser: Callable[[str], Any] | None = None,
        listener_factory: Callable[[int], RedirectListener] = RedirectListener,
        authorization_timeout: float = AUTHORIZATION_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the agent.

        Args:
            http_session: Shared HTTP session; a short-lived one is created
                per call when omitted.
            open_browser: Callable opening a URL (defaults to ``webbrowser.open``).
            listener_factory: Builds the redirect listener for a port.
            authorization_timeout: Seconds to wait for the browser redirect.
        """
        self.session = http_session
        self.open_browser = open_browser or webbrowser.open
        self.listener_factory = listener_factory
        self.authorization_timeout = authorization_timeout
        self._metadata_cache: dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------ #
    # HTTP plumbing
    # ------------------------------------------------------------------ #
    @asynccontextmanager
    async def _http(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self.session is not None:
            yield self.session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    @staticmethod
    def _ssl(insecure: bool) -> bool:
        return not insecure

    @staticmethod
    def _timeout() -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=HTTP_REQUEST_TIMEOUT_SECONDS)

    # ------------------------------------------------------------------ #
    # Discovery
    # ------------------------------------------------------------------ #
    async def fetch_provider_metadata(
        self, discovery_url: str, *, insecure: bool = False
    ) -> dict[str, Any]:
        """Fetch (and cache) the OpenID provider metadata document.

        Transient network failures are retried with exponential backoff.

        Raises:
            NetworkError: If the document cannot be fetched.
            ParsingError: If the document is malformed.
        """
        cached = self._metadata_cache.get(discovery_url)
        if cached is not None:
            return cached

        async def _get() -> dict[str, Any]:
            async with self._http() as session:
                async with session.get(
                    discovery_url, timeout=self._timeout(), ssl=self._ssl(insecure)
                ) as resp:
                    resp.raise_for_status()
                    return cast(dict[str, Any], await resp.json(content_type=None))

        async def _attempt() -> dict[str, Any]:
            return await handle_api_error(_get, "provider discovery")

        metadata = await retry_async(_attempt, max_attempts=DISCOVERY_MAX_ATTEMPTS)
        if not isinstance(metadata, dict) or "token_endpoint" not in metadata:
            raise ParsingError(
                "Provider metadata lacks token_endpoint", data={"url": discovery_url}
            )
        self._metadata_cache[discovery_url] = metadata
        logging.info(f"🔎 Provider metadata discovered issuer={metadata.get('issuer')}")
        return metadata

    async def resolve_endpoints(
        self,
        discovery_url: str,
        service_configuration: ServiceConfiguration | None,
        *,
        insecure: bool = False,
    ) -> ServiceConfiguration:
        """Return the endpoint set, preferring an explicit configuration."""
        if service_configuration is not None:
            return service_configuration
        metadata = await self.fetch_provider_metadata(discovery_url, insecure=insecure)
        authorization_endpoint = metadata.get("authorization_endpoint")
        if not isinstance(authorization_endpoint, str):
            raise ParsingError("Provider metadata lacks authorization_endpoint")
        return ServiceConfiguration(
            authorization_endpoint=authorization_endpoint,
            token_endpoint=str(metadata["token_endpoint"]),
            end_session_endpoint=metadata.get("end_session_endpoint"),
        )

    # ------------------------------------------------------------------ #
    # Interactive authorization code flow
    # ------------------------------------------------------------------ #
    def build_authorization_url(
        self,
        endpoints: ServiceConfiguration,
        request: AuthorizationTokenRequest,
        state: str,
    ) -> str:
        params = {
            "response_type": "code",
            "client_id": request.client_id,
            "redirect_uri": request.redirect_uri,
            "scope": " ".join(request.scopes),
            "state": state,
        }
        if request.prompt_values:
            params["prompt"] = " ".join(request.prompt_values)
        separator = "&" if "?" in endpoints.authorization_endpoint else "?"
        return f"{endpoints.authorization_endpoint}{separator}{urlencode(params)}"

    async def authorize_and_exchange_code(
        self, request: AuthorizationTokenRequest
    ) -> TokenResult | None:
        """Run the browser authorization and exchange the returned code.

        Returns:
            The token result, or None when the provider rejected the code grant.

        Raises:
            ConfigurationError: If the redirect URI is not served by the loopback
                listener (for example a custom scheme URI).
            AuthorizationCancelledError: If the user denied or abandoned the flow.
            OAuthError: If the provider returned an error or the state mismatched.
            NetworkError: On transport failures.
        """
        if not is_loopback_redirect(request.redirect_uri, request.redirect_port):
            raise ConfigurationError(
                f"Redirect URI {request.redirect_uri} cannot reach the loopback listener "
                f"on 127.0.0.1:{request.redirect_port}; configure "
                f"http://127.0.0.1:{request.redirect_port}/callback for this client",
                data={"redirect_uri": request.redirect_uri, "port": request.redirect_port},
            )
        insecure = request.allow_insecure_connections
        endpoints = await self.resolve_endpoints(
            request.discovery_url, request.service_configuration, insecure=insecure
        )
        state = secrets.token_urlsafe(24)
        url = self.build_authorization_url(endpoints, request, state)

        async with self.listener_factory(request.redirect_port) as listener:
            logging.info(
                f"🌐 Opening browser for sign-in client_id={request.client_id} port={request.redirect_port}"
            )
            if request.prefer_ephemeral_session:
                logging.debug("🕶️ Ephemeral browser session requested")
            opened = self.open_browser(url)
            if opened is False:
                logging.warning(f"Open this URL to sign in: {url}")
            try:
                params = await listener.wait_for_callback(self.authorization_timeout)
            except TimeoutError as e:
                raise AuthorizationCancelledError(
                    f"No authorization response after {format_duration(self.authorization_timeout)}"
                ) from e

        error = params.get("error")
        if error:
            description = params.get("error_description", "")
            exc_type = (
                AuthorizationCancelledError if error in _CANCEL_ERRORS else OAuthError
            )
            raise exc_type(
                f"Authorization failed: {error} {description}".strip(),
                data={"error": error},
            )
        if not secrets.compare_digest(params.get("state", ""), state):
            raise OAuthError("Authorization response state mismatch", data={"error": "invalid_state"})
        code = params.get("code")
        if not code:
            raise OAuthError("Authorization response lacks a code", data={"error": "invalid_request"})

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": request.redirect_uri,
            "client_id": request.client_id,
        }
        if request.client_secret:
            data["client_secret"] = request.client_secret
        return await self._post_token(
            endpoints.token_endpoint, data, insecure=insecure, context="code exchange"
        )

    # ------------------------------------------------------------------ #
    # Silent token request
    # ------------------------------------------------------------------ #
    async def token(self, request: TokenRequest) -> TokenResult | None:
        """Perform a refresh-token grant.

        Returns:
            The token result, or None if the refresh token was rejected.

        Raises:
            RateLimitError: When the provider rate limits the client.
            OAuthError: When the provider rejects the client itself.
            NetworkError: On transport failures or unexpected statuses.
        """
        insecure = request.allow_insecure_connections
        endpoints = await self.resolve_endpoints(
            request.discovery_url, request.service_configuration, insecure=insecure
        )
        data = {
            "grant_type": request.grant_type,
            "refresh_token": request.refresh_token,
            "client_id": request.client_id,
            "scope": " ".join(request.scopes),
        }
        if request.client_secret:
            data["client_secret"] = request.client_secret
        return await self._post_token(
            endpoints.token_endpoint, data, insecure=insecure, context="token refresh"
        )

    async def _post_token(
        self, url: str, data: dict[str, str], *, insecure: bool, context: str
    ) -> TokenResult | None:
        async def _post() -> TokenResult | None:
            async with self._http() as session:
                async with session.post(
                    url, data=data, timeout=self._timeout(), ssl=self._ssl(insecure)
                ) as resp:
                    if resp.status == 200:
                        payload = await resp.json(content_type=None)
                        result = TokenResult.from_response(payload)
                        expires_in = payload.get("expires_in") if isinstance(payload, dict) else None
                        logging.info(
                            f"🔑 Token endpoint success ({context}) lifetime={format_duration(expires_in)}"
                        )
                        return result
                    body = await self._error_body(resp)
                    error = body.get("error")
                    if resp.status in (400, 401) and error in _INVALID_GRANT_ERRORS:
                        logging.info(
                            f"❌ Grant rejected ({context}) status={resp.status} error={error}"
                        )
                        return None
                    if resp.status in (400, 401, 403):
                        raise OAuthError(
                            f"Token endpoint rejected {context}: {error or resp.status}",
                            data={"error": error, "http_status": resp.status},
                        )
                    if resp.status == 429:
                        retry_after = resp.headers.get("Retry-After")
                        raise RateLimitError(
                            f"Rate limited during {context}",
                            retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                        )
                    raise NetworkError(
                        f"HTTP {resp.status} during {context}",
                        data={"http_status": resp.status},
                    )

        return await handle_api_error(_post, context)

    @staticmethod
    async def _error_body(resp: aiohttp.ClientResponse) -> dict[str, Any]:
        try:
            body = await resp.json(content_type=None)
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ------------------------------------------------------------------ #
    # End session
    # ------------------------------------------------------------------ #
    async def end_session(self, request: EndSessionRequest) -> None:
        """End the session at the provider's end-session endpoint.

        Raises:
            OAuthError: If the provider refuses the logout.
            NetworkError: On transport failures.
        """
        insecure = request.allow_insecure_connections
        endpoint = await self._end_session_endpoint(request)
        params = {
            "client_id": request.client_id,
            "post_logout_redirect_uri": request.post_logout_redirect_url,
        }
        if request.id_token_hint:
            params["id_token_hint"] = request.id_token_hint

        async def _get() -> None:
            async with self._http() as session:
                async with session.get(
                    endpoint,
                    params=params,
                    timeout=self._timeout(),
                    ssl=self._ssl(insecure),
                    allow_redirects=False,
                ) as resp:
                    if 200 <= resp.status < 400:
                        logging.info(f"👋 Provider session ended status={resp.status}")
                        return
                    raise OAuthError(
                        f"End session rejected (HTTP {resp.status})",
                        data={"http_status": resp.status},
                    )

        await handle_api_error(_get, "end session")

    async def _end_session_endpoint(self, request: EndSessionRequest) -> str:
        config = request.service_configuration
        if config is not None and config.end_session_endpoint:
            return config.end_session_endpoint
        if config is None:
            metadata = await self.fetch_provider_metadata(
                request.discovery_url, insecure=request.allow_insecure_connections
            )
            endpoint = metadata.get("end_session_endpoint")
            if isinstance(endpoint, str):
                return endpoint
        return f"{request.issuer}/protocol/openid-connect/logout"
