from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Protocol

from ..errors import BridgeError
from ..realtime_bus.topics import topic_for
from .refresh import StateRefresher
from .registry import RobotRegistry

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, topic: str, payload: str) -> None: ...


class RobotStatePoller:
    """
    Every ``interval_s`` seconds:
      - asks the refresher to update robot states (it may skip)
      - publishes every robot's current state on its own topic
    """
    def __init__(
        self,
        refresher: StateRefresher,
        registry: RobotRegistry,
        bus: Publisher,
        topic_template: str,
        interval_s: float = 60.0,
        decode_state: bool = False,
    ) -> None:
        self.refresher = refresher
        self.registry = registry
        self.bus = bus
        self.topic_template = topic_template
        self.interval_s = float(interval_s)
        self.decode_state = decode_state
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=3)
            except asyncio.TimeoutError:
                self._task.cancel()

    async def tick(self) -> None:
        try:
            await self.refresher.refresh()
        except BridgeError as e:
            logger.error("Error updating robot states: %s", e)
        except Exception:
            logger.exception("Unexpected error updating robot states")

        async with self.registry.read() as robots:
            for robot in robots:
                try:
                    topic = topic_for(self.topic_template, robot.name)
                    payload = json.dumps(robot.public_dict(decode=self.decode_state))
                    self.bus.publish(topic, payload)
                except Exception as e:
                    # still publish the remaining robots
                    logger.error("Could not publish state of %s: %s", robot.name, e)

    async def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Polling tick failed")

            # wait next cycle
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                pass
