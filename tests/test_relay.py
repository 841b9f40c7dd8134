"""Tests for the command relay loop."""

import asyncio
import logging

from neato_bridge.command_relay.relay import CommandRelay
from neato_bridge.realtime_bus.mailbox import CommandMailbox
from neato_bridge.robot_api.models import PendingDispatch, RobotCommand
from neato_bridge.robot_monitor.registry import RobotRegistry

from conftest import FakeRobotService


def _relay(robots, service=None, dry_run=False):
    registry = RobotRegistry()
    registry.initialize(robots)
    service = service or FakeRobotService()
    return CommandRelay(registry, service, CommandMailbox(), dry_run=dry_run), service


def test_command_is_sent_to_addressed_robot(robots):
    relay, service = _relay(robots)
    asyncio.run(relay.handle(PendingDispatch(device_id="D2", command=RobotCommand.START_CLEANING)))
    assert service.commands == [("D2", RobotCommand.START_CLEANING)]


def test_get_robot_state_never_reaches_the_cloud(robots):
    relay, service = _relay(robots)
    asyncio.run(relay.handle(PendingDispatch(device_id="D1", command=RobotCommand.GET_ROBOT_STATE)))
    assert service.commands == []
    assert service.state_calls == []


def test_dry_run_logs_instead_of_sending(robots, caplog):
    relay, service = _relay(robots, dry_run=True)
    with caplog.at_level(logging.INFO, logger="neato_bridge.command_relay.relay"):
        asyncio.run(relay.handle(PendingDispatch(device_id="D1", command=RobotCommand.SEND_TO_BASE)))
    assert service.commands == []
    assert "Dry run: would send sendToBase to D1" in caplog.text


def test_unknown_device_is_dropped(robots, caplog):
    relay, service = _relay(robots)
    with caplog.at_level(logging.WARNING):
        asyncio.run(relay.handle(PendingDispatch(device_id="nope", command=RobotCommand.STOP_CLEANING)))
    assert service.commands == []
    assert "nope" in caplog.text


def test_transport_failure_is_logged_and_dropped(robots, caplog):
    relay, service = _relay(robots, FakeRobotService(fail_for="D1"))
    with caplog.at_level(logging.ERROR):
        asyncio.run(relay.handle(PendingDispatch(device_id="D1", command=RobotCommand.PAUSE_CLEANING)))
    assert "Sending pauseCleaning to D1 failed" in caplog.text


def test_broadcast_reaches_every_robot(robots):
    relay, service = _relay(robots)
    asyncio.run(relay.handle(PendingDispatch(device_id=None, command=RobotCommand.SEND_TO_BASE)))
    assert service.commands == [("D1", RobotCommand.SEND_TO_BASE), ("D2", RobotCommand.SEND_TO_BASE)]


def test_loop_keeps_serving_after_unknown_device(robots):
    relay, service = _relay(robots)

    async def scenario():
        await relay.start()
        await asyncio.sleep(0)
        relay.mailbox.set(PendingDispatch(device_id="ghost", command=RobotCommand.START_CLEANING))
        await asyncio.sleep(0.01)
        relay.mailbox.set(PendingDispatch(device_id="D1", command=RobotCommand.RESUME_CLEANING))
        await asyncio.sleep(0.01)
        await relay.stop()

    asyncio.run(scenario())
    assert service.commands == [("D1", RobotCommand.RESUME_CLEANING)]


def test_loop_survives_unexpected_errors(robots):
    class FlakyService(FakeRobotService):
        async def send_command(self, robot, command):
            if not self.commands and robot.name == "D1":
                self.commands.append(("failed", command))
                raise RuntimeError("boom")
            return await super().send_command(robot, command)

    relay, service = _relay(robots, FlakyService())

    async def scenario():
        await relay.start()
        relay.mailbox.set(PendingDispatch(device_id="D1", command=RobotCommand.SEND_TO_BASE))
        await asyncio.sleep(0.01)
        relay.mailbox.set(PendingDispatch(device_id="D2", command=RobotCommand.START_CLEANING))
        await asyncio.sleep(0.01)
        alive = not relay._task.done()
        await relay.stop()
        return alive

    assert asyncio.run(scenario()) is True
    assert service.commands == [("failed", RobotCommand.SEND_TO_BASE), ("D2", RobotCommand.START_CLEANING)]


def test_loop_survives_error_outside_dispatch(robots, caplog):
    relay, service = _relay(robots)
    calls = []

    async def broken_resolve(dispatch):
        calls.append(dispatch)
        if len(calls) == 1:
            raise RuntimeError("registry exploded")
        return [robots[0]]

    relay._resolve = broken_resolve

    async def scenario():
        await relay.start()
        relay.mailbox.set(PendingDispatch(device_id="D1", command=RobotCommand.STOP_CLEANING))
        await asyncio.sleep(0.01)
        relay.mailbox.set(PendingDispatch(device_id="D1", command=RobotCommand.PAUSE_CLEANING))
        await asyncio.sleep(0.01)
        await relay.stop()

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())
    assert "registry exploded" in caplog.text
    assert service.commands == [("D1", RobotCommand.PAUSE_CLEANING)]
