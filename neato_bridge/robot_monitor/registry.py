from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

from ..robot_api.models import Robot


class RobotRegistry:
    """
    The robots discovered at startup and their last-known state.

    The set of robots is fixed after ``initialize``; only ``Robot.state`` is
    replaced, under ``write()``. Readers use ``read()``. Both are served by
    one asyncio lock, so a reader never overlaps a refresh in progress.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._robots: List[Robot] = []

    def initialize(self, robots: Sequence[Robot]) -> None:
        self._robots = list(robots)

    def __len__(self) -> int:
        return len(self._robots)

    @asynccontextmanager
    async def read(self) -> AsyncIterator[Sequence[Robot]]:
        async with self._lock:
            yield tuple(self._robots)

    @asynccontextmanager
    async def write(self) -> AsyncIterator[List[Robot]]:
        async with self._lock:
            yield self._robots

    async def find(self, name: str) -> Optional[Robot]:
        async with self.read() as robots:
            return next((r for r in robots if r.name == name), None)

    async def snapshot(self) -> List[Robot]:
        async with self.read() as robots:
            return [r.model_copy() for r in robots]
