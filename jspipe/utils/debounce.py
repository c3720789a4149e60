"""Async debouncing of bursty triggers (filesystem events)."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from jspipe import log


class Debouncer:
    """Runs *fn* once after *delay* seconds without a new ``trigger()``.

    A trigger during the quiet period restarts it. Runs never overlap: a run
    that becomes due while the previous one is in flight waits for it.
    """

    def __init__(self, fn: Callable[[], Awaitable[None]], delay: float, name: str = ""):
        self._fn = fn
        self.delay = delay
        self.name = name
        self._timer: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.triggers = 0
        self.runs = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self) -> None:
        """Schedule a run; must be called from the event loop thread."""
        self.triggers += 1
        if self.pending:
            self._timer.cancel()
        self._timer = asyncio.ensure_future(self._wait_then_run())

    async def _wait_then_run(self) -> None:
        await asyncio.sleep(self.delay)
        # Past the quiet period: this run is no longer cancellable by trigger().
        self._timer = None
        async with self._lock:
            self.runs += 1
            try:
                await self._fn()
            except Exception as e:
                log.error(f"[WATCH] Debounced callback {self.name} failed: {e}")

    def cancel(self) -> None:
        if self.pending:
            self._timer.cancel()
        self._timer = None
