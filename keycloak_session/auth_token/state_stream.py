"""Broadcast channel for authentication state transitions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from .types import AuthState

StateListener = Callable[[AuthState], Coroutine[Any, Any, None]]

_CLOSED = object()


class Subscription:
    """Async iterator over the states emitted after (and including) subscribe time.

    Backed by an unbounded queue so a slow consumer never blocks the emitter.
    """

    def __init__(self, stream: AuthStateStream) -> None:
        self._stream = stream
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False

    def _push(self, state: AuthState) -> None:
        if not self.closed:
            self._queue.put_nowait(state)

    def pending(self) -> int:
        """Number of states delivered but not yet consumed."""
        return self._queue.qsize()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._stream._detach(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> AuthState:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


class AuthStateStream:
    """One-to-many stream of ``AuthState`` values.

    New subscribers synchronously receive the current value (the initial
    value until the first transition); later transitions arrive in emission
    order. Listener coroutines registered with ``add_listener`` are fired
    fire-and-forget per transition.
    """

    def __init__(self, initial: AuthState = AuthState.UNAUTHENTICATED) -> None:
        self._initial = initial
        self._value = initial
        self._subscribers: list[Subscription] = []
        self._listeners: list[StateListener] = []
        # Retained listener tasks (prevents premature GC of fire-and-forget tasks).
        self._listener_tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def initial_value(self) -> AuthState:
        return self._initial

    @property
    def value(self) -> AuthState:
        """Most recently emitted state."""
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription:
        """Attach a new subscriber; the current value is queued immediately."""
        sub = Subscription(self)
        if self._closed:
            sub.close()
            return sub
        self._subscribers.append(sub)
        sub._push(self._value)
        return sub

    def __aiter__(self) -> Subscription:
        return self.subscribe()

    def _detach(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def add_listener(self, listener: StateListener) -> None:
        """Register a coroutine function invoked with every new state."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, state: AuthState) -> None:
        """Record ``state`` and deliver it to every subscriber and listener."""
        if self._closed:
            logging.debug(f"🔇 Dropped state on closed stream state={state.value}")
            return
        self._value = state
        logging.debug(f"📣 Auth state -> {state.value} subscribers={len(self._subscribers)}")
        for sub in list(self._subscribers):
            sub._push(state)
        for listener in list(self._listeners):
            self._schedule_listener(listener, state)

    def _schedule_listener(self, listener: StateListener, state: AuthState) -> None:
        try:
            task: asyncio.Task[Any] = asyncio.get_running_loop().create_task(
                listener(state)
            )
        except RuntimeError as e:
            logging.debug(
                f"⚠️ State listener scheduling error state={state.value} type={type(e).__name__}"
            )
            return
        self._listener_tasks.add(task)
        task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task[Any]) -> None:
        self._listener_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logging.warning(
                f"⚠️ State listener error error={str(exc)} type={type(exc).__name__}"
            )

    def close(self) -> None:
        """End every subscription; further emits are dropped."""
        self._closed = True
        for sub in list(self._subscribers):
            sub.close()
        self._subscribers.clear()

    async def aclose(self) -> None:
        """Close the stream and wait for in-flight listener tasks."""
        self.close()
        if self._listener_tasks:
            await asyncio.gather(*list(self._listener_tasks), return_exceptions=True)
