"""Tests for the throttled, single-flight state refresh."""

import asyncio

import pytest

from neato_bridge.errors import TransportError
from neato_bridge.robot_api.models import RobotStatus
from neato_bridge.robot_monitor.refresh import StateRefresher
from neato_bridge.robot_monitor.registry import RobotRegistry

from conftest import FakeRobotService, state_payload


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _setup(robots, service=None, cache_timeout=300):
    registry = RobotRegistry()
    registry.initialize(robots)
    service = service or FakeRobotService()
    clock = FakeClock()
    return registry, service, clock, StateRefresher(registry, service, cache_timeout, clock=clock)


def test_refresh_updates_every_robot(robots):
    registry, service, _, refresher = _setup(robots, FakeRobotService({"D2": state_payload(state=2, action=1)}))

    assert asyncio.run(refresher.refresh()) is True
    assert service.state_calls == ["D1", "D2"]
    assert robots[0].state.state is RobotStatus.IDLE
    assert robots[1].state.state is RobotStatus.BUSY


def test_second_call_within_cache_timeout_is_skipped(robots):
    _, service, clock, refresher = _setup(robots)

    async def scenario():
        assert await refresher.refresh() is True
        clock.now += 10
        assert await refresher.refresh() is False

    asyncio.run(scenario())
    assert service.state_calls == ["D1", "D2"]


def test_refresh_runs_again_after_cache_timeout(robots):
    _, service, clock, refresher = _setup(robots, cache_timeout=30)

    async def scenario():
        await refresher.refresh()
        clock.now += 31
        assert await refresher.refresh() is True

    asyncio.run(scenario())
    assert service.state_calls == ["D1", "D2", "D1", "D2"]


def test_concurrent_refresh_is_single_flight(robots):
    class SlowService(FakeRobotService):
        async def get_robot_state(self, robot):
            await asyncio.sleep(0.01)
            return await super().get_robot_state(robot)

    _, service, _, refresher = _setup(robots, SlowService(), cache_timeout=0)

    async def scenario():
        return await asyncio.gather(refresher.refresh(), refresher.refresh(), refresher.refresh())

    assert asyncio.run(scenario()) == [True, False, False]
    assert service.state_calls == ["D1", "D2"]


def test_failure_aborts_and_keeps_partial_updates(robots):
    _, service, _, refresher = _setup(robots, FakeRobotService(fail_for="D2"))

    with pytest.raises(TransportError):
        asyncio.run(refresher.refresh())

    assert robots[0].state is not None
    assert robots[1].state is None
    assert refresher.last_refresh is None


def test_failed_refresh_does_not_start_throttle_window(robots):
    service = FakeRobotService(fail_for="D1")
    _, _, _, refresher = _setup(robots, service)

    async def scenario():
        for _ in range(2):
            with pytest.raises(TransportError):
                await refresher.refresh()

    asyncio.run(scenario())
    assert service.state_calls == ["D1", "D1"]
