from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from .command_relay.relay import CommandRelay
from .realtime_bus.mailbox import CommandMailbox
from .realtime_bus.mqtt_bus import MqttBus
from .robot_api.models import PendingDispatch
from .robot_api.neato_client import NeatoClient
from .robot_api.service import NeatoRobotService
from .robot_monitor import router as robot_monitor
from .robot_monitor.poller import RobotStatePoller
from .robot_monitor.refresh import StateRefresher
from .robot_monitor.registry import RobotRegistry
from .settings import load_settings

logger = logging.getLogger(__name__)

registry = RobotRegistry()


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = load_settings()
    logger.info("Initializing Neato MQTT bridge")

    vendor = NeatoClient(settings.neato.base_url)
    robot_api = NeatoRobotService(vendor)
    mailbox: CommandMailbox[PendingDispatch] = CommandMailbox()
    try:
        robots = await robot_api.discover_robots(settings.neato.email, settings.neato.password)
        registry.initialize(robots)
        for robot in robots:
            logger.info("Found robot: %s", robot.name)
            logger.debug("Robot info: %r", robot)

        bus = MqttBus(settings.mqtt, mailbox)
        bus.start()
    except Exception:
        await vendor.aclose()
        raise

    refresher = StateRefresher(registry, robot_api, cache_timeout=settings.neato.cache_timeout)
    poller = RobotStatePoller(
        refresher,
        registry,
        bus,
        settings.mqtt.topic,
        interval_s=settings.neato.poll_interval,
        decode_state=settings.neato.decode_state,
    )
    relay = CommandRelay(registry, robot_api, mailbox, dry_run=settings.neato.dry_run)
    app.dependency_overrides[robot_monitor.get_decode_state] = lambda: settings.neato.decode_state

    await relay.start()
    await poller.start()
    logger.info("Neato bridge initialized")
    try:
        yield
    finally:
        await poller.stop()
        await relay.stop()
        bus.stop()
        await vendor.aclose()


app = FastAPI(title="Neato MQTT bridge", lifespan=lifespan)
app.dependency_overrides[robot_monitor.get_registry] = lambda: registry
app.include_router(robot_monitor.router)


@app.get("/health")
async def health(reg: RobotRegistry = Depends(robot_monitor.get_registry)):
    return {"ok": True, "robots": len(reg)}


def run() -> None:
    import uvicorn

    configure_logging()
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host=host, port=port)
