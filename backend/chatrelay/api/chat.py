# chatrelay/api/chat.py
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from .deps import (
    get_current_user_id,
    get_inflight,
    get_model_config_service,
    get_room_store,
    get_upstream
)
from ..core.config import Settings, get_settings
from ..schemas.chat import ChatDeleteRequest, ChatRequest, Envelope
from ..schemas.room import RoomRequest
from ..services.history import client_view
from ..services.model_config import ModelConfigService
from ..services.relay import InFlightRegistry, StreamingRelay
from ..services.room_store import RoomStore
from ..services.upstream import Upstream
from ..utils.errors import NotFoundError

router = APIRouter()


async def get_relay(
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store),
        upstream: Upstream = Depends(get_upstream),
        inflight: InFlightRegistry = Depends(get_inflight),
        config_service: ModelConfigService = Depends(get_model_config_service),
        settings: Settings = Depends(get_settings)
) -> StreamingRelay:
    return StreamingRelay(
        store,
        upstream,
        await config_service.current(),
        user_id,
        inflight=inflight,
        max_context_turns=settings.MAX_CONTEXT_TURNS
    )


@router.get("/chat-hisroty")
@router.get("/chat-history")
async def chat_history(
        roomid: Optional[int] = None,
        lasttime: Optional[int] = None,
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store),
        settings: Settings = Depends(get_settings)
) -> Envelope:
    # Unknown rooms read as empty history here; the mutating endpoints report them.
    if not await store.room_exists(user_id, roomid):
        return Envelope.success([])

    if lasttime is not None:
        messages = await store.list_messages(user_id, roomid, before=lasttime, limit=settings.HISTORY_PAGE_SIZE)
    else:
        messages = await store.list_messages(user_id, roomid)
    return Envelope.success(client_view(messages))


@router.post("/chat-delete")
async def delete_chat(
        request: ChatDeleteRequest,
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store)
) -> Envelope:
    if not await store.room_exists(user_id, request.room_id):
        raise NotFoundError("Unknown room")
    await store.soft_delete_message(user_id, request.room_id, request.uuid, request.inversion)
    return Envelope.success()


@router.post("/chat-clear")
async def clear_chat(
        request: RoomRequest,
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store)
) -> Envelope:
    if not await store.room_exists(user_id, request.room_id):
        raise NotFoundError("Unknown room")
    await store.clear_room(user_id, request.room_id)
    return Envelope.success()


@router.post("/chat")
async def chat(
        request: ChatRequest,
        relay: StreamingRelay = Depends(get_relay)
) -> Envelope:
    await relay.prepare(request)
    final = await relay.reply()
    return Envelope.success(final)


@router.post("/chat-process")
async def chat_process(
        request: ChatRequest,
        relay: StreamingRelay = Depends(get_relay)
) -> StreamingResponse:
    await relay.prepare(request)
    return StreamingResponse(
        relay.frames(),
        media_type="application/octet-stream",
        # Also covers a client that disconnects before the body iterator starts
        background=BackgroundTask(relay.release)
    )
