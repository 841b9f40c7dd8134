from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest

from neato_bridge.errors import TransportError
from neato_bridge.robot_api.models import Robot, RobotCommand, RobotState


def make_robot(name: str = "D1", serial: str = "OPS01234-ABCDEF", **extra: Any) -> Robot:
    data = {
        "mac_address": "40:bd:32:00:00:01",
        "model": "BotVacD7Connected",
        "name": name,
        "nucleo_url": "https://nucleo.neatocloud.com:4443",
        "secret_key": "s3cr3t-" + name,
        "serial": serial,
    }
    data.update(extra)
    return Robot.model_validate(data)


def state_payload(state: int = 1, action: int = 0, charge: int = 87) -> Dict[str, Any]:
    return {
        "version": 1,
        "reqId": "77",
        "result": "ok",
        "alert": None,
        "error": None,
        "state": state,
        "action": action,
        "details": {
            "isCharging": False,
            "isDocked": True,
            "isScheduleEnabled": False,
            "dockHasBeenSeen": True,
            "charge": charge,
        },
    }


class FakeRobotService:
    """Stand-in for NeatoRobotService that records every call."""

    def __init__(self, states: Optional[Dict[str, Dict[str, Any]]] = None, fail_for: Optional[str] = None):
        self.states = states or {}
        self.fail_for = fail_for
        self.state_calls: List[str] = []
        self.commands: List[tuple] = []

    async def get_robot_state(self, robot: Robot) -> RobotState:
        self.state_calls.append(robot.name)
        if robot.name == self.fail_for:
            raise TransportError(f"cloud unreachable for {robot.name}")
        return RobotState.model_validate_json(json.dumps(self.states.get(robot.name, state_payload())))

    async def send_command(self, robot: Robot, command: RobotCommand) -> str:
        if robot.name == self.fail_for:
            raise TransportError("connection reset")
        self.commands.append((robot.name, command))
        return '{"result":"ok"}'


class RecordingBus:
    def __init__(self):
        self.published: List[tuple] = []

    def publish(self, topic: str, payload: str) -> None:
        self.published.append((topic, payload))


@pytest.fixture
def robots():
    return [make_robot("D1", "OPS01234-AAAAAA"), make_robot("D2", "OPS01234-BBBBBB")]
