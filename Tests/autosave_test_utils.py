"""
Shared helpers for the auto-save test suite.

FakeAdapter stands in for a persistence adapter: it records every payload and
can be told to fail, to take a while, or to block until released.
"""

import asyncio
from typing import Callable, List, Optional

from coach_autosave.AutoSave.controller import DraftPayload
from coach_autosave.exceptions import DraftSaveError


class FakeAdapter:
    """Async persistence adapter with scriptable failures."""

    def __init__(self, fail_times: int = 0, delay: float = 0.0):
        self.calls: List[DraftPayload] = []
        self.fail_times = fail_times
        self.fail_always = False
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.active = 0
        self.max_active = 0

    @property
    def contents(self) -> List[str]:
        return [payload.content for payload in self.calls]

    def block(self) -> asyncio.Event:
        """Make the next calls wait until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    async def __call__(self, payload: DraftPayload) -> None:
        self.calls.append(payload)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            elif self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_always:
                raise DraftSaveError("Network unavailable")
            if self.fail_times:
                self.fail_times -= 1
                raise DraftSaveError("Network unavailable")
        finally:
            self.active -= 1


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` on the event loop until it holds or ``timeout`` expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(interval)


async def settle(seconds: float = 0.0) -> None:
    """Let pending callbacks and tasks run."""
    await asyncio.sleep(seconds)
    for _ in range(5):
        await asyncio.sleep(0)
