"""Background task management for periodic silent refresh."""

from __future__ import annotations

import asyncio
import logging
import traceback
from datetime import timedelta
from secrets import SystemRandom
from typing import TYPE_CHECKING, Any

from ..constants import (
    SESSION_REFRESH_INTERVAL_SECONDS,
    SESSION_REFRESH_JITTER_FACTOR,
    SESSION_REFRESH_LOOKAHEAD_SECONDS,
)
from ..utils import format_duration
from .types import AuthState

if TYPE_CHECKING:
    from .manager import SessionManager

_jitter_rng = SystemRandom()


class BackgroundRefresher:
    """Runs ``SessionManager.update_token`` on a fixed, jittered interval.

    Ticks are skipped while the session is ``unauthenticated`` (there is
    nothing to keep alive until the user logs in again). Failures go to the
    manager's error sink and the loop keeps running.
    """

    def __init__(
        self,
        manager: SessionManager,
        *,
        interval: float = SESSION_REFRESH_INTERVAL_SECONDS,
        lookahead: timedelta = timedelta(seconds=SESSION_REFRESH_LOOKAHEAD_SECONDS),
        jitter: float = SESSION_REFRESH_JITTER_FACTOR,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.manager = manager
        self.interval = interval
        self.lookahead = lookahead
        self.jitter = jitter
        self.task: asyncio.Task[Any] | None = None
        self.running = False
        self.refresh_count = 0
        self.failure_count = 0

    async def start(self) -> None:
        """Start the background refresh loop."""
        if self.running:
            return
        # If a previous background task is still lingering, cancel it
        if self.task and not self.task.done():
            logging.debug("Cancelling stale background task before restart")
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            finally:
                self.task = None
        self.running = True
        self.task = asyncio.create_task(self._background_refresh_loop())
        logging.debug(
            f"▶️ Started background token refresh loop interval={format_duration(self.interval)}"
        )

    async def stop(self) -> None:
        """Stop the background refresh loop and wait for it to exit."""
        if not self.running:
            return
        self.running = False
        task, self.task = self.task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logging.debug("⏹️ Stopped background token refresh loop")

    def _next_sleep(self) -> float:
        if self.jitter <= 0:
            return self.interval
        return self.interval * _jitter_rng.uniform(1 - self.jitter, 1 + self.jitter)

    async def _background_refresh_loop(self) -> None:
        """Loop until stopped, refreshing once per interval."""
        while self.running:
            await asyncio.sleep(self._next_sleep())
            if not self.running:
                break
            await self.run_once()

    async def run_once(self) -> AuthState | None:
        """Perform a single refresh tick.

        Returns:
            The resulting state, or None when the tick was skipped or failed.
        """
        if self.manager.state is AuthState.UNAUTHENTICATED:
            logging.debug("⏭️ Background refresh skipped (unauthenticated)")
            return None
        try:
            state = await self.manager.update_token(self.lookahead)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failure_count += 1
            stack = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            try:
                self.manager.on_error("Background token refresh failed.", e, stack)
            except Exception as sink_exc:
                logging.error(
                    f"💥 Error sink raised type={type(sink_exc).__name__} error={str(sink_exc)}"
                )
            return None
        self.refresh_count += 1
        logging.debug(f"🔄 Background refresh tick state={state.value}")
        return state
