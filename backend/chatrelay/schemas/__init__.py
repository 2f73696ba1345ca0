from .chat import (
    ChatDeleteRequest,
    ChatMessage,
    ChatOptions,
    ChatRequest,
    Envelope,
    HistoryEntry,
    Snapshot,
    SnapshotDetail,
    Status
)

from .model import (
    BaseSettingsUpdate,
    ModelConfigView,
    ModelParameters
)

from .room import (
    Room,
    RoomListItem,
    RoomRequest
)

__all__ = [
    'ChatDeleteRequest',
    'ChatMessage',
    'ChatOptions',
    'ChatRequest',
    'Envelope',
    'HistoryEntry',
    'Snapshot',
    'SnapshotDetail',
    'Status',
    'BaseSettingsUpdate',
    'ModelConfigView',
    'ModelParameters',
    'Room',
    'RoomListItem',
    'RoomRequest'
]
