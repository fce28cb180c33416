"""Session manager: the token-lifecycle state machine."""

from __future__ import annotations

import asyncio
import logging
import traceback
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar, cast

import aiohttp

from ..config.model import AuthConfig
from ..constants import (
    HAS_RUN_BEFORE_KEY,
    HTTP_REQUEST_TIMEOUT_SECONDS,
    LOGIN_PROMPT_VALUES,
    REFRESH_TOKEN_KEY,
)
from ..errors.handling import ErrorSink, default_error_sink, handle_api_error
from ..errors.internal import NotInitializedError, OAuthError, ParsingError
from ..utils import format_duration
from .protocols import (
    AuthorizationAgentProtocol,
    ConnectivityProbeProtocol,
    PreferenceStoreProtocol,
    SecureStoreProtocol,
    TokenDecoderProtocol,
)
from .state_stream import AuthStateStream
from .types import (
    AuthorizationTokenRequest,
    AuthState,
    EndSessionRequest,
    ServiceConfiguration,
    TokenRequest,
    TokenResult,
    TokenSet,
    is_valid_result,
)

T = TypeVar("T")


class SessionManager:
    """Owns the session of one user against one realm.

    Decides whether the user is authenticated, when a stored credential is
    worth a silent refresh, and publishes every transition on
    ``authentication_stream``. Mutating operations (initialize, login,
    logout, update_token) are serialized: a call issued while another is in
    flight waits for it to finish, so each ``pending`` is followed by
    exactly one terminal state.

    Construct one instance per application (see ``ApplicationContext``) and
    pass it to whatever needs it.
    """

    def __init__(
        self,
        config: AuthConfig,
        *,
        agent: AuthorizationAgentProtocol,
        secure_store: SecureStoreProtocol,
        preferences: PreferenceStoreProtocol,
        decoder: TokenDecoderProtocol,
        connectivity: ConnectivityProbeProtocol,
        http_session: aiohttp.ClientSession | None = None,
        on_error: ErrorSink | None = None,
    ) -> None:
        """Initialize the session manager.

        Args:
            config: Client configuration.
            agent: Runs the OAuth exchanges.
            secure_store: Persists the refresh token.
            preferences: Persists the one-time storage reset flag.
            decoder: Decodes the stored refresh token for expiry checks.
            connectivity: Reports network availability before refreshing.
            http_session: Session used for the user-info request; a
                short-lived one is created per call when omitted.
            on_error: Error sink ``(message, error, stack)``; defaults to
                structured logging.
        """
        if config is None:
            raise TypeError("config cannot be None")
        self._config = config
        self._agent = agent
        self._secure_store = secure_store
        self._preferences = preferences
        self._decoder = decoder
        self._connectivity = connectivity
        self._http_session = http_session
        self.on_error: ErrorSink = on_error or default_error_sink
        self._token_set: TokenSet | None = None
        self._initialized = False
        self._stream = AuthStateStream(AuthState.UNAUTHENTICATED)
        self._operation_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #
    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def initial_state(self) -> AuthState:
        return self._stream.initial_value

    @property
    def state(self) -> AuthState:
        """Most recently emitted authentication state."""
        return self._stream.value

    @property
    def authentication_stream(self) -> AuthStateStream:
        """Broadcast stream of authentication states.

        Iterate ``authentication_stream.subscribe()`` to receive the current
        state followed by every later transition.
        """
        return self._stream

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_busy(self) -> bool:
        """True while a mutating operation is in flight."""
        return self._operation_lock.locked()

    @property
    def token_set(self) -> TokenSet | None:
        """Current token set (immutable snapshot)."""
        return self._token_set

    @property
    def access_token(self) -> str | None:
        """Returns the access token string, usable as a bearer credential."""
        return self._token_set.access_token if self._token_set else None

    @property
    def id_token(self) -> str | None:
        return self._token_set.id_token if self._token_set else None

    @property
    def refresh_token(self) -> str | None:
        return self._token_set.refresh_token if self._token_set else None

    @property
    def access_token_expiry(self) -> datetime | None:
        return self._token_set.access_token_expiry if self._token_set else None

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    async def initialize(self) -> None:
        """Initialize the authentication state and refresh the token.

        On the very first run (no persisted flag) the secure store is purged
        so credentials left over from an earlier install are never reused.
        Errors are reported through ``on_error``; nothing propagates. A
        failure leaves the manager uninitialized and ``unauthenticated``.
        """
        async with self._operation_lock:
            try:
                has_run_before = await self._preferences.get_bool(HAS_RUN_BEFORE_KEY)
                if not has_run_before:
                    logging.info("🧹 First run detected, purging secure store")
                    await self._secure_store.delete_all()
                    await self._preferences.set_bool(HAS_RUN_BEFORE_KEY, True)

                self._initialized = True
                await self._update_token_unlocked(None)
            except Exception as e:
                self._initialized = False
                self._emit(AuthState.UNAUTHENTICATED)
                self._report("Failed to initialize.", e)

    async def login(self) -> bool:
        """Log the user in through the interactive authorization flow.

        Returns:
            True if login produced a valid token set.

        Raises:
            NotInitializedError: If ``initialize()`` has not completed.
        """
        self._require_initialized("login")
        async with self._operation_lock:
            try:
                self._emit(AuthState.PENDING)
                result = await self._agent.authorize_and_exchange_code(
                    self._authorization_request()
                )
                return await self._apply_result(result)
            except Exception as e:
                self._report("Failed to login.", e)
                self._emit(AuthState.UNAUTHENTICATED)
                return False

    async def logout(self) -> bool:
        """Log the user out locally and at the identity provider.

        Logout is all-or-nothing: when the provider call fails the local
        credentials are kept and the state returns to ``authenticated``.

        Returns:
            True if logout succeeded.

        Raises:
            NotInitializedError: If ``initialize()`` has not completed.
        """
        self._require_initialized("logout")
        async with self._operation_lock:
            try:
                self._emit(AuthState.PENDING)
                await self._agent.end_session(self._end_session_request())
                await self._secure_store.delete_all()
                self._token_set = None
                logging.info("👋 Logged out")
                self._emit(AuthState.UNAUTHENTICATED)
                return True
            except Exception as e:
                self._report("Failed to logout.", e)
                self._emit(AuthState.AUTHENTICATED)
                return False

    async def update_token(self, duration: timedelta | None = None) -> AuthState:
        """Silently refresh the session from the stored refresh token.

        Only usable after ``initialize()`` has succeeded; ``BackgroundRefresher``
        relies on that and must be started after initialization.

        Args:
            duration: Treat the refresh token as expired if it expires within
                this lookahead (default: already expired now).

        Returns:
            The resulting authentication state.

        Raises:
            NotInitializedError: If ``initialize()`` has not been called.
            InternalError: Any failure reading the store, decoding the token
                or talking to the provider propagates (after the state falls
                back to ``unauthenticated``).
        """
        self._require_initialized("update_token")
        async with self._operation_lock:
            try:
                return await self._update_token_unlocked(duration)
            except Exception:
                if self.state is AuthState.PENDING:
                    self._emit(AuthState.UNAUTHENTICATED)
                raise

    async def get_user_info(self) -> dict[str, Any] | None:
        """Retrieve the current user's claims from the user-info endpoint.

        Returns:
            The decoded JSON object, or None on any failure (reported once
            through ``on_error``).

        Raises:
            NotInitializedError: If ``initialize()`` has not completed.
        """
        self._require_initialized("get_user_info")
        try:
            access_token = self.access_token
            if not access_token:
                raise OAuthError("No access token available", data={"error": "no_token"})
            return await handle_api_error(
                lambda: self._fetch_user_info(access_token), "user info"
            )
        except Exception as e:
            self._report("Failed to fetch user info.", e)
            return None

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _update_token_unlocked(self, duration: timedelta | None) -> AuthState:
        self._emit(AuthState.PENDING)

        stored = await self._secure_store.read(REFRESH_TOKEN_KEY)
        if stored is None:
            logging.info("🔍 No refresh token found")
            return self._emit(AuthState.UNAUTHENTICATED)

        lookahead = duration or timedelta(0)
        if self._decoder.decode(stored).will_expire(lookahead):
            logging.info(
                f"⌛ Expired refresh token lookahead={format_duration(lookahead.total_seconds())}"
            )
            return self._emit(AuthState.UNAUTHENTICATED)

        if not await self._connectivity.has_network():
            logging.warning("📴 No internet connection, session state unavailable")
            return self._emit(AuthState.UNAVAILABLE)

        result = await self._agent.token(self._token_request(stored))
        if await self._apply_result(result):
            return AuthState.AUTHENTICATED
        return AuthState.UNAUTHENTICATED

    async def _apply_result(self, result: TokenResult | None) -> bool:
        """Adopt an agent result and emit the terminal state.

        A valid result replaces the token set and rotates the stored refresh
        token. Anything else is a soft failure (diagnostic log only) that
        drops the token set, so no stale access token outlives the rejection.
        """
        if not is_valid_result(result):
            logging.warning("⚠️ Invalid token response")
            self._token_set = None
            self._emit(AuthState.UNAUTHENTICATED)
            return False
        token_set = cast(TokenResult, result).to_token_set()
        if token_set.refresh_token is not None:
            await self._secure_store.write(REFRESH_TOKEN_KEY, token_set.refresh_token)
        self._token_set = token_set
        logging.info(
            f"✅ Authenticated access_token_remaining={format_duration(token_set.remaining_seconds())}"
        )
        self._emit(AuthState.AUTHENTICATED)
        return True

    async def _fetch_user_info(self, access_token: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        timeout = aiohttp.ClientTimeout(total=HTTP_REQUEST_TIMEOUT_SECONDS)
        ssl = not self._config.allow_insecure_connections

        async def _get(session: aiohttp.ClientSession) -> dict[str, Any]:
            async with session.get(
                self._config.user_info_endpoint, headers=headers, timeout=timeout, ssl=ssl
            ) as resp:
                resp.raise_for_status()
                body = await resp.json(content_type=None)
            if not isinstance(body, dict):
                raise ParsingError("User info response is not a JSON object")
            return body

        return await self._with_session(_get)

    async def _with_session(
        self, func: Callable[[aiohttp.ClientSession], Awaitable[T]]
    ) -> T:
        if self._http_session is not None:
            return await func(self._http_session)
        async with aiohttp.ClientSession() as session:
            return await func(session)

    def _emit(self, state: AuthState) -> AuthState:
        self._stream.emit(state)
        return state

    def _report(self, message: str, error: BaseException) -> None:
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        try:
            self.on_error(message, error, stack)
        except Exception as sink_exc:
            logging.error(
                f"💥 Error sink raised type={type(sink_exc).__name__} error={str(sink_exc)}"
            )

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise NotInitializedError(operation)

    def _service_configuration(self) -> ServiceConfiguration | None:
        cfg = self._config
        if not cfg.has_custom_endpoints:
            return None
        return ServiceConfiguration(
            authorization_endpoint=cast(str, cfg.authorization_endpoint),
            token_endpoint=cast(str, cfg.token_endpoint),
            end_session_endpoint=cfg.end_session_endpoint,
        )

    def _authorization_request(self) -> AuthorizationTokenRequest:
        cfg = self._config
        return AuthorizationTokenRequest(
            client_id=cfg.client_id,
            redirect_uri=cfg.redirect_uri,
            issuer=cfg.issuer,
            discovery_url=cfg.discovery_url,
            scopes=cfg.scopes,
            prompt_values=LOGIN_PROMPT_VALUES,
            client_secret=cfg.client_secret,
            allow_insecure_connections=cfg.allow_insecure_connections,
            prefer_ephemeral_session=cfg.prefer_ephemeral_session,
            redirect_port=cfg.redirect_port,
            service_configuration=self._service_configuration(),
        )

    def _token_request(self, refresh_token: str) -> TokenRequest:
        cfg = self._config
        return TokenRequest(
            client_id=cfg.client_id,
            redirect_uri=cfg.redirect_uri,
            issuer=cfg.issuer,
            discovery_url=cfg.discovery_url,
            scopes=cfg.scopes,
            refresh_token=refresh_token,
            client_secret=cfg.client_secret,
            allow_insecure_connections=cfg.allow_insecure_connections,
            service_configuration=self._service_configuration(),
        )

    def _end_session_request(self) -> EndSessionRequest:
        cfg = self._config
        return EndSessionRequest(
            client_id=cfg.client_id,
            id_token_hint=self.id_token,
            issuer=cfg.issuer,
            discovery_url=cfg.discovery_url,
            post_logout_redirect_url=cfg.redirect_uri,
            allow_insecure_connections=cfg.allow_insecure_connections,
            prefer_ephemeral_session=cfg.prefer_ephemeral_session,
            service_configuration=self._service_configuration(),
        )
