# chatrelay/services/room_store.py
import logging
import time
from typing import Callable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..db.models import ChatMessageModel, RoomModel
from ..schemas.chat import ChatMessage, ChatOptions, Status
from ..schemas.room import Room
from ..utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomStore:
    """Rooms and their messages.

    Every call runs in its own short transaction, so nothing is held open
    while a caller waits on the upstream model.
    """

    def __init__(self, session_factory: async_sessionmaker, clock: Callable[[], int] = now_ms):
        self.session_factory = session_factory
        self.clock = clock

    # Rooms

    async def create_room(self, user_id: str, room_id: int, title: str) -> Room:
        async with self.session_factory() as session:
            room = await self._get_room(session, user_id, room_id)
            if room:
                room.title = title
            else:
                room = RoomModel(user_id=user_id, room_id=room_id, title=title, created_at=self.clock())
                session.add(room)
            try:
                await session.commit()
            except IntegrityError:
                # Lost a race with a concurrent create of the same room
                await session.rollback()
                room = await self._get_room(session, user_id, room_id)
                room.title = title
                await session.commit()
            return Room.from_row(room)

    async def rename_room(self, user_id: str, room_id: int, title: str) -> Optional[Room]:
        async with self.session_factory() as session:
            room = await self._get_room(session, user_id, room_id)
            if not room:
                return None
            room.title = title
            await session.commit()
            return Room.from_row(room)

    async def room_exists(self, user_id: str, room_id: Optional[int]) -> bool:
        if room_id is None:
            return False
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(RoomModel)
                .filter(RoomModel.user_id == user_id, RoomModel.room_id == room_id)
            )
            return result.scalar_one() > 0

    async def delete_room(self, user_id: str, room_id: int) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(ChatMessageModel)
                .where(ChatMessageModel.user_id == user_id, ChatMessageModel.room_id == room_id)
            )
            await session.execute(
                delete(RoomModel)
                .where(RoomModel.user_id == user_id, RoomModel.room_id == room_id)
            )
            await session.commit()
        logger.info(f"Deleted room {room_id} of user {user_id}")

    async def list_rooms(self, user_id: str) -> list[Room]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RoomModel)
                .filter(RoomModel.user_id == user_id)
                .order_by(RoomModel.created_at, RoomModel.id)
            )
            return [Room.from_row(room) for room in result.scalars().all()]

    # Messages

    async def insert_message(
            self,
            user_id: str,
            room_id: int,
            uuid: int,
            prompt: str,
            options: Optional[ChatOptions] = None
    ) -> ChatMessage:
        if not prompt:
            raise ValidationError("Prompt is empty")
        options = options or ChatOptions()

        async with self.session_factory() as session:
            message = ChatMessageModel(
                user_id=user_id,
                room_id=room_id,
                uuid=uuid,
                prompt=prompt,
                response="",
                date_time=self.clock(),
                status=Status.NORMAL,
                parent_message_id=options.parent_message_id
            )
            session.add(message)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise ConflictError(f"Message {uuid} already exists", {"room_id": room_id, "uuid": uuid})
            return ChatMessage.from_row(message)

    async def get_message(self, user_id: str, room_id: int, uuid: int) -> ChatMessage:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ChatMessageModel).filter(
                    ChatMessageModel.user_id == user_id,
                    ChatMessageModel.room_id == room_id,
                    ChatMessageModel.uuid == uuid
                )
            )
            message = result.scalar_one_or_none()
            if not message:
                raise NotFoundError("Unknown message", {"room_id": room_id, "uuid": uuid})
            return ChatMessage.from_row(message)

    async def update_message_result(self, message_id: int, response: str, upstream_message_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(ChatMessageModel)
                .where(ChatMessageModel.id == message_id)
                .values(response=response, message_id=upstream_message_id)
            )
            await session.commit()

    async def list_messages(
            self,
            user_id: str,
            room_id: int,
            before: Optional[int] = None,
            limit: Optional[int] = None
    ) -> list[ChatMessage]:
        """Messages of a room, oldest first.

        ``before`` keeps only messages created strictly earlier than that
        timestamp; ``limit`` keeps the newest ``limit`` of what remains.
        """
        query = select(ChatMessageModel).filter(
            ChatMessageModel.user_id == user_id,
            ChatMessageModel.room_id == room_id
        )
        if before is not None:
            query = query.filter(ChatMessageModel.date_time < before)
        query = query.order_by(ChatMessageModel.date_time.desc(), ChatMessageModel.id.desc())
        if limit is not None:
            query = query.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            messages = [ChatMessage.from_row(row) for row in result.scalars().all()]
        messages.reverse()
        return messages

    async def soft_delete_message(self, user_id: str, room_id: int, uuid: int, inversion: bool) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ChatMessageModel).filter(
                    ChatMessageModel.user_id == user_id,
                    ChatMessageModel.room_id == room_id,
                    ChatMessageModel.uuid == uuid
                )
            )
            message = result.scalar_one_or_none()
            if not message:
                raise NotFoundError("Unknown message", {"room_id": room_id, "uuid": uuid})

            current = Status(message.status)
            if inversion:
                other_half_gone = current in (Status.RESPONSE_DELETED, Status.DELETED)
                message.status = Status.DELETED if other_half_gone else Status.INVERSION_DELETED
            else:
                other_half_gone = current in (Status.INVERSION_DELETED, Status.DELETED)
                message.status = Status.DELETED if other_half_gone else Status.RESPONSE_DELETED
            await session.commit()

    async def clear_room(self, user_id: str, room_id: int) -> None:
        async with self.session_factory() as session:
            await session.execute(
                delete(ChatMessageModel)
                .where(ChatMessageModel.user_id == user_id, ChatMessageModel.room_id == room_id)
            )
            await session.commit()

    @staticmethod
    async def _get_room(session, user_id: str, room_id: int) -> Optional[RoomModel]:
        result = await session.execute(
            select(RoomModel).filter(RoomModel.user_id == user_id, RoomModel.room_id == room_id)
        )
        return result.scalar_one_or_none()
