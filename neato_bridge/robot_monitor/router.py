from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from .registry import RobotRegistry

router = APIRouter(prefix="/robot-monitor", tags=["robot-monitor"])


def get_registry() -> RobotRegistry:
    # Overridden in neato_bridge/main.py
    raise RuntimeError("RobotRegistry dependency not configured")


def get_decode_state() -> bool:
    return False


@router.get("/states")
async def states(
    registry: RobotRegistry = Depends(get_registry),
    decode: bool = Depends(get_decode_state),
) -> List[Dict[str, Any]]:
    return [r.public_dict(decode=decode) for r in await registry.snapshot()]
