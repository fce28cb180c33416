"""Loopback HTTP listener receiving the authorization redirect."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import web

_DONE_PAGE = """<!doctype html>
<html><head><meta charset="utf-8"><title>Sign-in complete</title></head>
<body><p>{message}</p><p>You can close this window and return to the application.</p></body>
</html>"""


class RedirectListener:
    """Short-lived aiohttp server capturing the first redirect callback.

    Usage::

        async with RedirectListener(10000) as listener:
            params = await listener.wait_for_callback(timeout=300)
    """

    def __init__(self, port: int, host: str = "127.0.0.1") -> None:
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._result: asyncio.Future[dict[str, str]] | None = None

    async def start(self) -> None:
        self._result = asyncio.get_running_loop().create_future()
        app = web.Application()
        app.router.add_get("/{tail:.*}", self._handle_callback)
        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logging.debug(f"👂 Redirect listener started host={self.host} port={self.port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logging.debug(f"🔌 Redirect listener stopped port={self.port}")
        if self._result is not None and not self._result.done():
            self._result.cancel()

    async def _handle_callback(self, request: web.Request) -> web.Response:
        params = dict(request.query)
        if "code" not in params and "error" not in params:
            # Favicon requests and similar noise.
            return web.Response(status=404)
        if self._result is not None and not self._result.done():
            self._result.set_result(params)
        message = (
            "Sign-in failed." if "error" in params else "Sign-in complete."
        )
        return web.Response(
            text=_DONE_PAGE.format(message=message), content_type="text/html"
        )

    async def wait_for_callback(self, timeout: float) -> dict[str, str]:
        """Wait for the redirect and return its query parameters.

        Raises:
            TimeoutError: If no redirect arrives within ``timeout`` seconds.
        """
        if self._result is None:
            raise RuntimeError("Redirect listener not started")
        return await asyncio.wait_for(asyncio.shield(self._result), timeout=timeout)

    async def __aenter__(self) -> RedirectListener:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.stop()
