from sqlalchemy import BigInteger, Column, Float, Integer, String, Text, UniqueConstraint

from .session import Base


class RoomModel(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("user_id", "room_id", name="uq_rooms_user_room"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    room_id = Column(BigInteger, nullable=False)
    title = Column(String, nullable=False, default="New Chat")
    created_at = Column(BigInteger, nullable=False)


class ChatMessageModel(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        UniqueConstraint("user_id", "room_id", "uuid", name="uq_chat_messages_room_uuid"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    room_id = Column(BigInteger, nullable=False)
    uuid = Column(BigInteger, nullable=False)
    prompt = Column(Text, nullable=False)
    response = Column(Text, nullable=False, default="")
    date_time = Column(BigInteger, nullable=False, index=True)
    status = Column(Integer, nullable=False, default=0)
    message_id = Column(String)
    parent_message_id = Column(String)


class UpstreamConfigModel(Base):
    __tablename__ = "upstream_configs"

    # The row id doubles as the configuration version.
    id = Column(Integer, primary_key=True, autoincrement=True)
    api_key = Column(String)
    model = Column(String, nullable=False)
    base_url = Column(String, nullable=False)
    proxy = Column(String)
    timeout_ms = Column(Integer, nullable=False)
    system_message = Column(Text)
    temperature = Column(Float, nullable=False)
    created_at = Column(BigInteger, nullable=False)
