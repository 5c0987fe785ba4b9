"""Cancelable delayed tasks on the asyncio loop."""

from __future__ import annotations

import asyncio
from typing import Callable


class Scheduler:
    """Tracks timers and sleeps so they can all be cancelled at teardown."""

    def __init__(self) -> None:
        self._handles: set[asyncio.TimerHandle] = set()
        self._sleeps: set[asyncio.Future] = set()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_event_loop()
        handle: asyncio.TimerHandle | None = None

        def _run() -> None:
            self._handles.discard(handle)
            callback()

        handle = loop.call_later(delay_s, _run)
        self._handles.add(handle)
        return handle

    def cancel(self, handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()
            self._handles.discard(handle)

    async def sleep(self, delay_s: float) -> None:
        """Sleep that raises ``CancelledError`` if ``cancel_all`` runs meanwhile."""
        loop = asyncio.get_event_loop()
        waiter = loop.create_future()
        handle = loop.call_later(delay_s, lambda: waiter.done() or waiter.set_result(None))
        self._sleeps.add(waiter)
        try:
            await waiter
        finally:
            handle.cancel()
            self._sleeps.discard(waiter)

    @property
    def pending(self) -> int:
        return len(self._handles) + len(self._sleeps)

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()
        for waiter in list(self._sleeps):
            waiter.cancel()
        self._sleeps.clear()
