from __future__ import annotations

import logging
from typing import List

from pydantic import ValidationError

from ..errors import ParseError
from .models import Robot, RobotCommand, RobotState
from .neato_client import NeatoClient

logger = logging.getLogger(__name__)


class NeatoRobotService:
    """
    STANDARD interface the polling and relay loops depend on.
    They call this service, not the vendor HTTP layer directly.
    """

    def __init__(self, vendor: NeatoClient):
        self.vendor = vendor

    async def discover_robots(self, email: str, password: str) -> List[Robot]:
        token = await self.vendor.create_session(email, password)
        records = await self.vendor.list_robots(token)
        try:
            return [Robot.model_validate(r) for r in records]
        except ValidationError as exc:
            raise ParseError(f"Unexpected robot record: {exc}") from exc

    async def get_robot_state(self, robot: Robot) -> RobotState:
        raw = await self.vendor.send_message(robot, RobotCommand.GET_ROBOT_STATE)
        try:
            return RobotState.model_validate_json(raw)
        except ValidationError as exc:
            raise ParseError(f"Could not parse state of {robot.name}: {exc}") from exc

    async def send_command(self, robot: Robot, command: RobotCommand) -> str:
        return await self.vendor.send_message(robot, command)
