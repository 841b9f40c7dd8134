from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class RobotStatus(IntEnum):
    INVALID = 0
    IDLE = 1
    BUSY = 2
    PAUSED = 3
    ERROR = 4


# If the state is busy, paused or error this is what the robot is (or was) doing.
class RobotAction(IntEnum):
    INVALID = 0
    HOUSE_CLEANING = 1
    SPOT_CLEANING = 2
    MANUAL_CLEANING = 3
    DOCKING = 4
    USER_MENU_ACTIVE = 5
    SUSPENDED_CLEANING = 6
    UPDATING = 7
    COPYING_LOGS = 8
    RECOVERING_LOCATION = 9
    IEC_TEST = 10
    MAP_CLEANING = 11
    EXPLORING_MAP = 12
    ACQUIRING_PERSISTENT_MAP_IDS = 13
    CREATING_AND_UPLOADING_MAP = 14
    SUSPENDED_EXPLORATION = 15

    @property
    def label(self) -> str:
        return _ACTION_LABELS[self]


_ACTION_LABELS = {
    RobotAction.INVALID: "Invalid",
    RobotAction.HOUSE_CLEANING: "HouseCleaning",
    RobotAction.SPOT_CLEANING: "SpotCleaning",
    RobotAction.MANUAL_CLEANING: "ManualCleaning",
    RobotAction.DOCKING: "Docking",
    RobotAction.USER_MENU_ACTIVE: "UserMenuActive",
    RobotAction.SUSPENDED_CLEANING: "SuspendedCleaning",
    RobotAction.UPDATING: "Updating",
    RobotAction.COPYING_LOGS: "CopyingLogs",
    RobotAction.RECOVERING_LOCATION: "RecoveringLocation",
    RobotAction.IEC_TEST: "IECTest",
    RobotAction.MAP_CLEANING: "MapCleaning",
    RobotAction.EXPLORING_MAP: "ExploringMap",
    RobotAction.ACQUIRING_PERSISTENT_MAP_IDS: "AcquiringPersistentMapIDs",
    RobotAction.CREATING_AND_UPLOADING_MAP: "CreatingAndUploadingMap",
    RobotAction.SUSPENDED_EXPLORATION: "SuspendedExploration",
}

_ACTIVE_STATUSES = (RobotStatus.BUSY, RobotStatus.PAUSED, RobotStatus.ERROR)


class RobotCommand(str, Enum):
    START_CLEANING = "StartCleaning"
    STOP_CLEANING = "StopCleaning"
    PAUSE_CLEANING = "PauseCleaning"
    RESUME_CLEANING = "ResumeCleaning"
    SEND_TO_BASE = "SendToBase"
    GET_ROBOT_STATE = "GetRobotState"

    @property
    def wire_name(self) -> str:
        return COMMAND_WIRE_NAMES[self]

    @classmethod
    def parse(cls, value: str) -> "RobotCommand":
        """Accepts either the command name (``StartCleaning``) or its wire name (``startCleaning``)."""
        for command in cls:
            if value == command.value or value == COMMAND_WIRE_NAMES[command]:
                return command
        raise ValueError(f"Unknown robot command: {value!r}")


COMMAND_WIRE_NAMES: Dict[RobotCommand, str] = {
    RobotCommand.START_CLEANING: "startCleaning",
    RobotCommand.STOP_CLEANING: "stopCleaning",
    RobotCommand.PAUSE_CLEANING: "pauseCleaning",
    RobotCommand.RESUME_CLEANING: "resumeCleaning",
    RobotCommand.SEND_TO_BASE: "sendToBase",
    RobotCommand.GET_ROBOT_STATE: "getRobotState",
}


class HouseCleaningParams(BaseModel):
    # 4 = persistent map, 2 = without persistent map
    category: int = 4
    # 1 = eco, 2 = turbo
    mode: int = 1
    # 1 = normal, 2 = extra care, 3 = deep (deep requires mode 2)
    navigationMode: int = 2


class RobotMessage(BaseModel):
    reqId: str = "77"
    cmd: str
    params: Optional[HouseCleaningParams] = None

    @classmethod
    def for_command(cls, command: RobotCommand) -> "RobotMessage":
        if command is RobotCommand.START_CLEANING:
            return cls(cmd=command.wire_name, params=HouseCleaningParams())
        return cls(cmd=command.wire_name)


class RobotStateDetails(BaseModel):
    isCharging: bool = False
    isDocked: bool = False
    isScheduleEnabled: bool = False
    dockHasBeenSeen: bool = False
    charge: int = Field(default=0, ge=-128, le=127)


class RobotState(BaseModel):
    """
    Last-known snapshot returned by ``getRobotState``.
    Replaced wholesale on every refresh, never merged.
    """

    alert: Optional[str] = None
    error: Optional[str] = None
    details: RobotStateDetails
    state: RobotStatus
    action: RobotAction = RobotAction.INVALID

    @model_validator(mode="after")
    def _normalize_action(self) -> "RobotState":
        if self.state not in _ACTIVE_STATUSES and self.action is not RobotAction.INVALID:
            self.action = RobotAction.INVALID
        return self

    def public_dict(self, decode: bool = False) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        if decode:
            data["state"] = self.state.name.capitalize()
            data["action"] = self.action.label
        return data


class Robot(BaseModel):
    mac_address: str
    model: str
    name: str
    nucleo_url: str
    secret_key: SecretStr
    serial: str
    state: Optional[RobotState] = None

    def public_dict(self, decode: bool = False) -> Dict[str, Any]:
        """JSON projection safe for the bus: everything except ``secret_key``."""
        data = self.model_dump(mode="json", exclude={"secret_key", "state"})
        data["state"] = self.state.public_dict(decode=decode) if self.state else None
        return data


class PendingDispatch(BaseModel):
    """
    Latest command received from the bus.
    ``device_id`` is None when the command was sent to the broadcast topic.
    """
    model_config = ConfigDict(frozen=True)

    device_id: Optional[str] = None
    command: RobotCommand
