from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

ID_MARKER = "{id}"
DEFAULT_BASE_URL = "https://beehive.neatocloud.com"
DEFAULT_TOPIC = "home/devices/neato/{id}"

_ENV_KEYS = (
    "NEATO_EMAIL",
    "NEATO_PASSWORD",
    "NEATO_POLL_INTERVAL",
    "NEATO_CACHE_TIMEOUT",
    "NEATO_DECODE_STATE",
    "NEATO_DRY_RUN",
    "NEATO_BASE_URL",
    "MQTT_ID",
    "MQTT_HOST",
    "MQTT_PORT",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_TOPIC",
    "MQTT_SET_TOPIC",
)


def _debug_enabled() -> bool:
    return logging.getLogger("neato_bridge").isEnabledFor(logging.DEBUG)


def default_poll_interval() -> int:
    return 5 if _debug_enabled() else 60


def default_cache_timeout() -> int:
    return 30 if _debug_enabled() else 5 * 60


def _check_template(value: str) -> str:
    if value.count(ID_MARKER) != 1:
        raise ValueError(f"topic template must contain exactly one '{ID_MARKER}' marker: {value!r}")
    return value


class NeatoSettings(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    poll_interval: int = Field(default_factory=default_poll_interval, gt=0)  # seconds
    cache_timeout: int = Field(default_factory=default_cache_timeout, ge=0)  # seconds
    decode_state: bool = False
    dry_run: bool = False
    base_url: str = DEFAULT_BASE_URL


class MqttSettings(BaseModel):
    id: str = "neato-bridge"
    host: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    topic: str = DEFAULT_TOPIC
    set_topic: Optional[str] = None

    @field_validator("topic")
    @classmethod
    def _check_topic(cls, value: str) -> str:
        return _check_template(value)

    @model_validator(mode="after")
    def _default_set_topic(self) -> "MqttSettings":
        if self.set_topic is None:
            self.set_topic = f"{self.topic}/set"
        _check_template(self.set_topic)
        return self

    def set_topic_with_wildcard(self) -> str:
        """``home/devices/neato/{id}/set`` -> ``home/devices/neato/+/set``"""
        return self.set_topic.replace(ID_MARKER, "+")

    def broadcast_set_topic(self) -> str:
        """``home/devices/neato/{id}`` -> ``home/devices/neato/set``, addressing every robot."""
        return self.topic.replace(ID_MARKER, "set")


class Settings(BaseModel):
    neato: NeatoSettings
    mqtt: MqttSettings


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _collect(get: Callable[[str], Any]) -> Dict[str, Dict[str, Any]]:
    neato: Dict[str, Any] = {}
    mqtt: Dict[str, Any] = {}

    def put(target: Dict[str, Any], field: str, key: str, convert: Callable[[Any], Any] = lambda v: v) -> None:
        value = get(key)
        if value is None or value == "":
            return
        target[field] = convert(value) if isinstance(value, str) else value

    put(neato, "email", "NEATO_EMAIL")
    put(neato, "password", "NEATO_PASSWORD")
    put(neato, "poll_interval", "NEATO_POLL_INTERVAL")
    put(neato, "cache_timeout", "NEATO_CACHE_TIMEOUT")
    put(neato, "decode_state", "NEATO_DECODE_STATE", _env_flag)
    put(neato, "dry_run", "NEATO_DRY_RUN", _env_flag)
    put(neato, "base_url", "NEATO_BASE_URL")
    put(mqtt, "id", "MQTT_ID")
    put(mqtt, "host", "MQTT_HOST")
    put(mqtt, "port", "MQTT_PORT")
    put(mqtt, "username", "MQTT_USERNAME")
    put(mqtt, "password", "MQTT_PASSWORD")
    put(mqtt, "topic", "MQTT_TOPIC")
    put(mqtt, "set_topic", "MQTT_SET_TOPIC")
    return {"neato": neato, "mqtt": mqtt}


def load_settings(environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Priority:
      1) Environment variables (when any bridge variable is set)
      2) neato_bridge/secrets.py (local overrides)
    NEATO_FORCE_ENV=1 never consults secrets.py.
    """
    env = os.environ if environ is None else environ
    force_env = _env_flag(env.get("NEATO_FORCE_ENV", "0"))

    if force_env or any(env.get(k) for k in _ENV_KEYS):
        raw = _collect(env.get)
    else:
        try:
            from . import secrets  # type: ignore
        except ImportError:
            raw = _collect(env.get)
        else:
            raw = _collect(lambda key: getattr(secrets, key, None))

    try:
        return Settings(**raw)
    except ValidationError as exc:
        raise ConfigurationError(
            "Invalid bridge settings. Set neato_bridge/secrets.py or env vars "
            f"(NEATO_EMAIL, NEATO_PASSWORD, MQTT_*): {exc}"
        ) from exc
