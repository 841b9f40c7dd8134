from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..errors import BridgeError, ResolutionError
from ..realtime_bus.mailbox import CommandMailbox, MailboxReceiver
from ..robot_api.models import PendingDispatch, Robot, RobotCommand
from ..robot_api.service import NeatoRobotService
from ..robot_monitor.registry import RobotRegistry

logger = logging.getLogger(__name__)


class CommandRelay:
    """
    Forwards the latest command from the bus to the addressed robot(s).

    Fire-and-forget: unknown devices and failed requests are logged and the
    command is dropped, nothing is retried or acknowledged on the bus.
    """

    def __init__(
        self,
        registry: RobotRegistry,
        robot_api: NeatoRobotService,
        mailbox: CommandMailbox[PendingDispatch],
        dry_run: bool = False,
    ) -> None:
        self.registry = registry
        self.robot_api = robot_api
        self.mailbox = mailbox
        self.dry_run = dry_run
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop(self.mailbox.subscribe()))

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _loop(self, receiver: MailboxReceiver[PendingDispatch]) -> None:
        while True:
            dispatch = await receiver.wait()
            if dispatch is None:
                continue
            try:
                await self.handle(dispatch)
            except Exception:
                logger.exception("Relaying %r failed", dispatch)

    async def _resolve(self, dispatch: PendingDispatch) -> List[Robot]:
        if dispatch.device_id is None:
            async with self.registry.read() as robots:
                return list(robots)

        robot = await self.registry.find(dispatch.device_id)
        if robot is None:
            raise ResolutionError(f"No robot named {dispatch.device_id!r}")
        return [robot]

    async def handle(self, dispatch: PendingDispatch) -> None:
        command = dispatch.command
        if command is RobotCommand.GET_ROBOT_STATE:
            # State is only ever fetched by the poller.
            logger.debug("Ignoring %s for %s", command.value, dispatch.device_id or "all robots")
            return

        try:
            robots = await self._resolve(dispatch)
        except ResolutionError as e:
            logger.warning("Dropping %s: %s", command.value, e)
            return

        for robot in robots:
            if self.dry_run:
                logger.info("Dry run: would send %s to %s", command.wire_name, robot.name)
                continue
            try:
                body = await self.robot_api.send_command(robot, command)
            except BridgeError as e:
                logger.error("Sending %s to %s failed: %s", command.wire_name, robot.name, e)
                continue
            except Exception:
                logger.exception("Unexpected error sending %s to %s", command.wire_name, robot.name)
                continue
            logger.info("Response from %s for %s: %s", robot.name, command.wire_name, body)
