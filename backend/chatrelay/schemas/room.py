from typing import Optional

from .chat import CamelModel


class Room(CamelModel):
    user_id: str
    room_id: int
    title: str
    created_at: int

    @classmethod
    def from_row(cls, row) -> "Room":
        return cls(
            user_id=row.user_id,
            room_id=row.room_id,
            title=row.title,
            created_at=row.created_at
        )


class RoomListItem(CamelModel):
    uuid: int
    title: str
    is_edit: bool = False


class RoomRequest(CamelModel):
    room_id: Optional[int] = None
    title: str = "New Chat"
