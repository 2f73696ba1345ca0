# chatrelay/api/rooms.py
from fastapi import APIRouter, Depends

from .deps import get_current_user_id, get_room_store
from ..schemas.chat import Envelope
from ..schemas.room import RoomListItem, RoomRequest
from ..services.room_store import RoomStore
from ..utils.errors import NotFoundError, ValidationError

router = APIRouter()


@router.get("/chatrooms")
async def list_rooms(
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store)
) -> Envelope:
    rooms = await store.list_rooms(user_id)
    return Envelope.success([RoomListItem(uuid=room.room_id, title=room.title) for room in rooms])


@router.post("/room-create")
async def create_room(
        request: RoomRequest,
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store)
) -> Envelope:
    if request.room_id is None:
        raise ValidationError("Missing roomId")
    room = await store.create_room(user_id, request.room_id, request.title)
    return Envelope.success(room)


@router.post("/room-rename")
async def rename_room(
        request: RoomRequest,
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store)
) -> Envelope:
    room = await store.rename_room(user_id, request.room_id, request.title)
    if not room:
        raise NotFoundError("Unknown room")
    return Envelope.success(room)


@router.post("/room-delete")
async def delete_room(
        request: RoomRequest,
        user_id: str = Depends(get_current_user_id),
        store: RoomStore = Depends(get_room_store)
) -> Envelope:
    if not await store.room_exists(user_id, request.room_id):
        raise NotFoundError("Unknown room")
    await store.delete_room(user_id, request.room_id)
    return Envelope.success()
