"""
Mapping between topic templates such as ``home/devices/neato/{id}/set``
and concrete topics such as ``home/devices/neato/D1/set``.
"""
from __future__ import annotations

from typing import Tuple

from ..errors import ConfigurationError, ParseError
from ..settings import ID_MARKER


def split_template(template: str) -> Tuple[str, str]:
    if ID_MARKER not in template:
        raise ConfigurationError(f"Topic template has no '{ID_MARKER}' marker: {template!r}")
    prefix, suffix = template.split(ID_MARKER, 1)
    return prefix, suffix


def topic_for(template: str, device_id: str) -> str:
    prefix, suffix = split_template(template)
    return f"{prefix}{device_id}{suffix}"


def extract_id(template: str, topic: str) -> str:
    """Return the part of ``topic`` that was substituted for the marker in ``template``."""
    prefix, suffix = split_template(template)
    if (
        len(topic) <= len(prefix) + len(suffix)
        or not topic.startswith(prefix)
        or not topic.endswith(suffix)
    ):
        raise ParseError(f"Topic {topic!r} does not match template {template!r}")
    return topic[len(prefix):len(topic) - len(suffix)]
