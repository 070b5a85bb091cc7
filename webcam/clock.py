from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Protocol


class FrameClock(Protocol):
    async def next_frame(self) -> None: ...


@dataclass
class RefreshClock:
    """Paces callers to the display refresh cadence."""

    frame_rate: float = 60.0
    _last_tick: float | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.frame_rate <= 0:
            raise ValueError("frame_rate must be positive")

    @property
    def interval(self) -> float:
        return 1.0 / self.frame_rate

    async def next_frame(self) -> None:
        now = time.monotonic()
        if self._last_tick is None:
            wait = self.interval
        else:
            wait = self._last_tick + self.interval - now
        # always yield so other callbacks get a turn
        await asyncio.sleep(max(0.0, wait))
        self._last_tick = time.monotonic()


class ImmediateClock:
    """Yields to the event loop once per frame without waiting."""

    def __init__(self) -> None:
        self.ticks = 0

    async def next_frame(self) -> None:
        self.ticks += 1
        await asyncio.sleep(0)


__all__ = ["FrameClock", "ImmediateClock", "RefreshClock"]
