# chatrelay/api/deps.py
import logging
from typing import AsyncIterator

import httpx
from fastapi import Depends, Request

from ..core.config import Settings, get_settings
from ..services.model_config import ModelConfigService
from ..services.relay import InFlightRegistry
from ..services.room_store import RoomStore
from ..services.upstream import Upstream
from ..utils.errors import AuthError

logger = logging.getLogger(__name__)


async def get_auth_client(settings: Settings = Depends(get_settings)) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT) as client:
        yield client


async def get_current_user_id(
        request: Request,
        settings: Settings = Depends(get_settings),
        client: httpx.AsyncClient = Depends(get_auth_client)
) -> str:
    if not settings.AUTH_SERVICE_URL:
        return settings.DEFAULT_USER_ID

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthError("Missing Bearer token")

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Missing token")

    try:
        response = await client.post(f"{settings.AUTH_SERVICE_URL}/verify", json={"token": token})
    except httpx.RequestError as e:
        logger.error(f"Auth service unavailable: {str(e)}")
        raise AuthError("Auth service unavailable")

    if response.status_code != 200:
        raise AuthError("Invalid token")

    user_id = response.json().get("userId")
    if not user_id:
        raise AuthError("Invalid token")
    return str(user_id)


async def get_room_store(request: Request) -> RoomStore:
    return RoomStore(request.app.state.session_factory)


async def get_model_config_service(
        request: Request,
        settings: Settings = Depends(get_settings)
) -> ModelConfigService:
    return ModelConfigService(request.app.state.session_factory, settings)


async def get_upstream(request: Request) -> Upstream:
    return request.app.state.upstream


async def get_inflight(request: Request) -> InFlightRegistry:
    return request.app.state.inflight


async def require_root(
        user_id: str = Depends(get_current_user_id),
        settings: Settings = Depends(get_settings)
) -> str:
    if not settings.ROOT_USER_ID or user_id != settings.ROOT_USER_ID:
        raise AuthError("No permission")
    return user_id
