from __future__ import annotations

import asyncio
import json
import logging
import random
import string
from typing import Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from ..errors import ParseError, TransportError
from ..robot_api.models import PendingDispatch, RobotCommand
from ..settings import MqttSettings
from .mailbox import CommandMailbox
from .topics import extract_id

logger = logging.getLogger(__name__)


def client_id(base: str) -> str:
    suffix = "".join(random.choices(string.ascii_letters + string.digits, k=8))
    return f"{base}-{suffix}"


def parse_set_message(settings: MqttSettings, topic: str, payload: bytes) -> PendingDispatch:
    """Turn an inbound ``.../set`` message into a dispatch for the relay."""
    if topic == settings.broadcast_set_topic():
        device_id = None
    else:
        device_id = extract_id(settings.set_topic, topic)

    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ParseError(f"Could not parse JSON payload on {topic}: {exc}") from exc

    action = data.get("action") if isinstance(data, dict) else None
    if not isinstance(action, str):
        raise ParseError(f"Payload on {topic} has no 'action': {data!r}")
    try:
        command = RobotCommand.parse(action)
    except ValueError as exc:
        raise ParseError(str(exc)) from exc

    return PendingDispatch(device_id=device_id, command=command)


class MqttBus:
    """
    paho-mqtt client running its network loop in a background thread.
    Inbound set commands are handed to the event loop through the mailbox.
    """

    def __init__(self, settings: MqttSettings, mailbox: CommandMailbox[PendingDispatch]) -> None:
        self.settings = settings
        self.mailbox = mailbox
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=client_id(settings.id),
            protocol=mqtt.MQTTv311,
        )
        if settings.username:
            self.client.username_pw_set(settings.username, settings.password)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        logger.info("Connecting to MQTT broker %s:%s", self.settings.host, self.settings.port)
        try:
            self.client.connect(self.settings.host, self.settings.port, keepalive=5)
        except OSError as exc:
            raise TransportError(f"Could not connect to MQTT broker: {exc}") from exc
        self.client.loop_start()

    def stop(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()

    def publish(self, topic: str, payload: str) -> None:
        try:
            info = self.client.publish(topic, payload, qos=0, retain=False)
        except ValueError as exc:
            # e.g. a robot name containing '+' or '#'
            raise TransportError(f"Cannot publish to {topic!r}: {exc}") from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connection refused: %s", reason_code)
            return
        # Subscriptions do not survive a reconnect with a clean session.
        client.subscribe(self.settings.set_topic_with_wildcard(), qos=0)
        client.subscribe(self.settings.broadcast_set_topic(), qos=0)
        logger.info("MQTT connected, listening on %s", self.settings.set_topic_with_wildcard())

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        logger.warning("MQTT disconnected: %s", reason_code)

    def _on_message(self, client, userdata, msg) -> None:
        logger.debug("Received MQTT publish for topic: %s", msg.topic)
        try:
            dispatch = parse_set_message(self.settings, msg.topic, msg.payload)
        except ParseError as e:
            logger.error("Dropping message on %s: %s", msg.topic, e)
            return

        logger.debug("Dispatch is: %r", dispatch)
        if self._loop is None:
            logger.error("Bus not started, dropping %r", dispatch)
            return
        self._loop.call_soon_threadsafe(self.mailbox.set, dispatch)
