"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException, Request

from eduville.admin.flags import DebugFlags
from eduville.config import Settings, get_settings


async def get_character_id(x_character_id: int = Header(..., alias="X-Character-Id")) -> int:
    """The acting character. Authentication happens upstream of this service."""
    return x_character_id


def get_debug_flags(request: Request) -> DebugFlags:
    flags: DebugFlags | None = getattr(request.app.state, "debug_flags", None)
    if flags is None:
        flags = DebugFlags()
        request.app.state.debug_flags = flags
    return flags


def require_admin(settings: Settings = Depends(get_settings)) -> None:  # noqa: B008
    if not settings.admin_enabled:
        raise HTTPException(status_code=404, detail="Not found")
