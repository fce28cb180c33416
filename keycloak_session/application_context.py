"""Composition root owning the session manager and its shared resources."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from .auth_token.background_task_manager import BackgroundRefresher
from .auth_token.client import HttpAuthorizationAgent
from .auth_token.decoder import JoseTokenDecoder
from .auth_token.manager import SessionManager
from .auth_token.protocols import (
    AuthorizationAgentProtocol,
    ConnectivityProbeProtocol,
    PreferenceStoreProtocol,
    SecureStoreProtocol,
    TokenDecoderProtocol,
)
from .config.loader import preferences_path_from_env
from .config.model import AuthConfig
from .connectivity import HttpConnectivityProbe
from .errors.handling import ErrorSink
from .storage.preferences import JsonPreferenceStore
from .storage.secure_store import KeyringSecureStore


class ApplicationContext:
    """Holds the session manager and shared async resources for the app lifecycle.

    Build it once at startup with ``create()``, hand ``session_manager`` to
    the parts of the application that need it, and call ``shutdown()`` on
    exit.
    """

    session: aiohttp.ClientSession | None
    session_manager: SessionManager | None
    refresher: BackgroundRefresher | None
    _started: bool
    _lock: asyncio.Lock

    def __init__(self) -> None:
        self.session = None
        self.session_manager = None
        self.refresher = None
        self._started = False
        self._lock = asyncio.Lock()

    # ------------------------- Construction ------------------------- #
    @classmethod
    async def create(
        cls,
        config: AuthConfig,
        *,
        agent: AuthorizationAgentProtocol | None = None,
        secure_store: SecureStoreProtocol | None = None,
        preferences: PreferenceStoreProtocol | None = None,
        decoder: TokenDecoderProtocol | None = None,
        connectivity: ConnectivityProbeProtocol | None = None,
        on_error: ErrorSink | None = None,
        background_refresh: bool = False,
    ) -> ApplicationContext:
        """Create a context wired with default collaborators.

        Any collaborator may be overridden; the rest default to the HTTP
        agent, the system keyring, a JSON preferences file, the python-jose
        decoder and an HTTP reachability probe against the issuer.

        Args:
            config: Client configuration.
            background_refresh: Also run a periodic silent refresh once started.

        Returns:
            A context whose session manager is constructed but not initialized.
        """
        ctx = cls()
        logging.debug("🧪 Creating application context")
        ctx.session = aiohttp.ClientSession()
        insecure = config.allow_insecure_connections
        # Explicit None checks: an empty store is falsy
        if agent is None:
            agent = HttpAuthorizationAgent(ctx.session)
        if secure_store is None:
            secure_store = KeyringSecureStore()
        if preferences is None:
            preferences = JsonPreferenceStore(preferences_path_from_env())
        if decoder is None:
            decoder = JoseTokenDecoder()
        if connectivity is None:
            connectivity = HttpConnectivityProbe(
                config.issuer, ctx.session, verify_ssl=not insecure
            )
        ctx.session_manager = SessionManager(
            config,
            agent=agent,
            secure_store=secure_store,
            preferences=preferences,
            decoder=decoder,
            connectivity=connectivity,
            http_session=ctx.session,
            on_error=on_error,
        )
        if background_refresh:
            ctx.refresher = BackgroundRefresher(ctx.session_manager)
        return ctx

    @property
    def started(self) -> bool:
        return self._started

    # --------------------------- Lifecycle -------------------------- #
    async def start(self) -> None:
        """Initialize the session manager (and background refresh). Idempotent."""
        async with self._lock:
            if self._started:
                return
            if self.session_manager:
                await self.session_manager.initialize()
            if self.refresher:
                await self.refresher.start()
            self._started = True
            logging.debug("🚀 Application context started")

    async def shutdown(self) -> None:
        """Stop background work, close the state stream and the HTTP session."""
        async with self._lock:
            logging.debug("🔻 Application context shutdown initiated")
            await self._stop_refresher()
            if self.session_manager:
                await self.session_manager.authentication_stream.aclose()
            await self._close_http_session()
            self._started = False
            logging.debug("✅ Application context shutdown complete")

    async def _stop_refresher(self) -> None:
        if not self.refresher:
            return
        try:
            await self.refresher.stop()
        except (RuntimeError, OSError, ValueError) as e:
            logging.error(f"💥 Error stopping background refresher: {str(e)}")
        finally:
            self.refresher = None

    async def _close_http_session(self) -> None:
        if not self.session:
            return
        try:
            await self.session.close()
        except (aiohttp.ClientError, OSError, ValueError) as e:
            logging.error(f"💥 Error closing HTTP session: {str(e)}")
        finally:
            self.session = None

    async def __aenter__(self) -> ApplicationContext:
        await self.start()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.shutdown()
