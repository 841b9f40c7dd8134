from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from ..robot_api.service import NeatoRobotService
from .registry import RobotRegistry

logger = logging.getLogger(__name__)


class StateRefresher:
    """
    Throttled, single-flight refresh of every robot's state.

    A caller arriving while a refresh is running returns immediately, as does
    one arriving within ``cache_timeout`` seconds of the last successful run.
    """

    def __init__(
        self,
        registry: RobotRegistry,
        robot_api: NeatoRobotService,
        cache_timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.robot_api = robot_api
        self.cache_timeout = cache_timeout
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_refresh: Optional[float] = None

    @property
    def last_refresh(self) -> Optional[float]:
        return self._last_refresh

    async def refresh(self) -> bool:
        """Returns True when the robots were actually queried."""
        if self._lock.locked():
            logger.info("Skipping update, something else seems to be updating the state")
            return False

        async with self._lock:
            if self._last_refresh is not None:
                age = self._clock() - self._last_refresh
                if age < self.cache_timeout:
                    logger.info("Skipping update, last update was only %.2f seconds ago.", age)
                    return False

            logger.info("Updating robot states")
            # A failure aborts the run; robots updated before it keep their new state.
            async with self.registry.write() as robots:
                for robot in robots:
                    logger.debug("Robot info before update: %r", robot)
                    robot.state = await self.robot_api.get_robot_state(robot)
                    logger.debug("Robot info after update: %r", robot)

            self._last_refresh = self._clock()
            return True
