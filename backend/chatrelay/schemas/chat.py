# chatrelay/schemas/chat.py
from enum import IntEnum
from typing import Any, Literal, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from ..utils.case_utils import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Status(IntEnum):
    NORMAL = 0
    DELETED = 1
    INVERSION_DELETED = 2
    RESPONSE_DELETED = 3


class ChatOptions(CamelModel):
    conversation_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    message_id: Optional[str] = None


class ChatMessage(CamelModel):
    id: int
    user_id: str
    room_id: int
    uuid: int
    prompt: str
    response: str = ""
    date_time: int
    status: Status = Status.NORMAL
    options: ChatOptions = Field(default_factory=ChatOptions)

    @classmethod
    def from_row(cls, row) -> "ChatMessage":
        return cls(
            id=row.id,
            user_id=row.user_id,
            room_id=row.room_id,
            uuid=row.uuid,
            prompt=row.prompt,
            response=row.response or "",
            date_time=row.date_time,
            status=Status(row.status),
            options=ChatOptions(
                message_id=row.message_id,
                parent_message_id=row.parent_message_id
            )
        )

    @property
    def prompt_visible(self) -> bool:
        return self.status not in (Status.INVERSION_DELETED, Status.DELETED)

    @property
    def response_visible(self) -> bool:
        return self.status not in (Status.RESPONSE_DELETED, Status.DELETED)


class ChatRequest(CamelModel):
    room_id: Optional[int] = None
    uuid: Optional[int] = None
    regenerate: bool = False
    prompt: str = ""
    options: ChatOptions = Field(default_factory=ChatOptions)


class ChatDeleteRequest(CamelModel):
    room_id: Optional[int] = None
    uuid: int
    inversion: bool = False


class ConversationOptions(CamelModel):
    parent_message_id: Optional[str] = None


class RequestOptions(CamelModel):
    prompt: str
    parent_message_id: Optional[str] = None


class HistoryEntry(CamelModel):
    uuid: int
    date_time: int  # epoch milliseconds, formatted by the client
    text: str
    inversion: bool
    error: bool = False
    loading: bool = False
    conversation_options: Optional[ConversationOptions] = None
    request_options: RequestOptions


class SnapshotDetail(CamelModel):
    model: Optional[str] = None
    finish_reason: Optional[str] = None


class Snapshot(CamelModel):
    """Cumulative model output at one point of a stream."""
    id: str
    text: str
    role: str = "assistant"
    parent_message_id: Optional[str] = None
    detail: SnapshotDetail = Field(default_factory=SnapshotDetail)

    @property
    def done(self) -> bool:
        return self.detail.finish_reason is not None


class Envelope(BaseModel):
    status: Literal["Success", "Fail"] = "Success"
    message: Optional[str] = None
    data: Any = None

    @classmethod
    def success(cls, data: Any = None, message: Optional[str] = None) -> "Envelope":
        return cls(status="Success", message=message, data=jsonable_encoder(data))

    @classmethod
    def fail(cls, message: str) -> "Envelope":
        return cls(status="Fail", message=message, data=None)
