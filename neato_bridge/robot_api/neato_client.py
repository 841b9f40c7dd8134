from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ParseError, TransportError
from ..settings import DEFAULT_BASE_URL
from .models import Robot, RobotCommand
from .signing import build_request

logger = logging.getLogger(__name__)


class NeatoClient:
    """
    Vendor client for the Neato cloud.
    Only includes:
      - session creation (email / password -> access token)
      - robot listing for the account
      - signed Nucleo messages to a single robot
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, http: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.http = http or httpx.AsyncClient()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self.http.request(method, url, timeout=15, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {resp.request.url}: {resp.text[:200]!r}") from exc

    async def create_session(self, email: str, password: str) -> str:
        url = f"{self.base_url}/sessions"
        resp = await self._send("POST", url, json={"email": email, "password": password})
        data = self._json(resp)

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ParseError("Session response did not contain an access_token")
        return token

    async def list_robots(self, token: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/users/me/robots"
        resp = await self._send("GET", url, headers={"Authorization": f"Bearer {token}"})
        data = self._json(resp)

        if not isinstance(data, list):
            raise ParseError(f"Robot list error: {data}")
        return data

    async def send_message(self, robot: Robot, command: RobotCommand) -> str:
        # https://developers.neatorobotics.com/api/nucleo
        request = build_request(robot, command)
        logger.debug("Sending command %s to robot %s: %s", command.wire_name, robot.name, request.body)

        # The body goes out as the exact bytes that were signed.
        resp = await self._send(request.method, request.url, headers=request.headers, content=request.body)
        logger.debug("Response from %s: %s", robot.name, resp.text)
        return resp.text
