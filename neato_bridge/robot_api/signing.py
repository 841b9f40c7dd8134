"""
Nucleo request signing.

Every robot message is authorized with ``Authorization: NEATOAPP <sig>``
where ``sig`` is the hex HMAC-SHA256, keyed with the robot's secret key, of
``lower(serial) + "\\n" + date + "\\n" + body``. The signature is bound to
the exact ``Date`` header and body bytes, so it is recomputed per request.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Dict, Optional

from pydantic import BaseModel

from .models import Robot, RobotCommand, RobotMessage

NUCLEO_ACCEPT = "application/vnd.neato.nucleo.v1"


class SignedRequest(BaseModel):
    method: str = "POST"
    url: str
    headers: Dict[str, str]
    body: str


def canonical_body(command: RobotCommand) -> str:
    message = RobotMessage.for_command(command)
    return json.dumps(message.model_dump(exclude_none=True), separators=(",", ":"))


def http_date(now: Optional[datetime] = None) -> str:
    """RFC 1123 date, e.g. ``Mon, 19 Oct 2026 08:00:00 GMT``."""
    now = now or datetime.now(timezone.utc)
    return format_datetime(now.astimezone(timezone.utc), usegmt=True)


def sign(secret_key: str, serial: str, date: str, body: str) -> str:
    string_to_sign = f"{serial.lower()}\n{date}\n{body}"
    return hmac.new(secret_key.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


def build_request(robot: Robot, command: RobotCommand, now: Optional[datetime] = None) -> SignedRequest:
    body = canonical_body(command)
    date = http_date(now)
    signature = sign(robot.secret_key.get_secret_value(), robot.serial, date, body)

    return SignedRequest(
        url=f"{robot.nucleo_url.rstrip('/')}/vendors/neato/robots/{robot.serial}/messages",
        headers={
            "Accept": NUCLEO_ACCEPT,
            "Content-Type": "application/json",
            "Date": date,
            "Authorization": f"NEATOAPP {signature}",
        },
        body=body,
    )
