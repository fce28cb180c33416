"""Network reachability probe."""

from __future__ import annotations

import logging

import aiohttp

from .constants import CONNECTIVITY_TIMEOUT_SECONDS


class HttpConnectivityProbe:
    """Reports network availability by reaching a URL over HTTP.

    Any HTTP response, whatever its status, proves the network path is up;
    only transport failures and timeouts count as offline.
    """

    def __init__(
        self,
        url: str,
        http_session: aiohttp.ClientSession | None = None,
        *,
        timeout: float = CONNECTIVITY_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
    ) -> None:
        self.url = url
        self.session = http_session
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    async def has_network(self) -> bool:
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            if self.session is not None:
                return await self._probe(self.session, client_timeout)
            async with aiohttp.ClientSession() as session:
                return await self._probe(session, client_timeout)
        except TimeoutError:
            logging.info(f"📡 Connectivity probe timed out url={self.url}")
            return False
        except (aiohttp.ClientError, OSError) as e:
            logging.info(
                f"📡 Connectivity probe failed url={self.url} type={type(e).__name__}"
            )
            return False

    async def _probe(
        self, session: aiohttp.ClientSession, timeout: aiohttp.ClientTimeout
    ) -> bool:
        async with session.head(
            self.url,
            timeout=timeout,
            allow_redirects=False,
            ssl=self.verify_ssl,
        ) as resp:
            logging.debug(f"📡 Connectivity probe ok url={self.url} status={resp.status}")
            return True


class StaticConnectivityProbe:
    """Probe with a fixed answer (tests, or hosts that know they are online)."""

    def __init__(self, online: bool = True) -> None:
        self.online = online

    async def has_network(self) -> bool:
        return self.online
