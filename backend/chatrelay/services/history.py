"""Turns stored messages into upstream context and the client history view."""
from typing import Iterable, Optional, Sequence

from ..schemas.chat import ChatMessage, ConversationOptions, HistoryEntry, RequestOptions


def latest_linkage(messages: Sequence[ChatMessage]) -> Optional[str]:
    """Upstream id of the most recent completed turn whose reply is still shown."""
    for message in reversed(messages):
        if message.response_visible and message.options.message_id:
            return message.options.message_id
    return None


def thread_context(
        messages: Iterable[ChatMessage],
        parent_message_id: Optional[str],
        max_turns: int
) -> list[dict]:
    """Chat-completions messages for the thread ending at ``parent_message_id``.

    Follows the parent links backwards through the stored rows, so the
    provider never needs state of its own. Deleted halves are left out.
    """
    by_upstream_id = {
        message.options.message_id: message
        for message in messages
        if message.options.message_id
    }

    turns: list[ChatMessage] = []
    seen: set[str] = set()
    current = parent_message_id
    while current and current in by_upstream_id and current not in seen and len(turns) < max_turns:
        seen.add(current)
        message = by_upstream_id[current]
        turns.append(message)
        current = message.options.parent_message_id

    context = []
    for message in reversed(turns):
        if message.prompt_visible:
            context.append({"role": "user", "content": message.prompt})
        if message.response_visible and message.response:
            context.append({"role": "assistant", "content": message.response})
    return context


def client_view(messages: Iterable[ChatMessage]) -> list[HistoryEntry]:
    entries = []
    for message in messages:
        if message.prompt_visible:
            entries.append(HistoryEntry(
                uuid=message.uuid,
                date_time=message.date_time,
                text=message.prompt,
                inversion=True,
                request_options=RequestOptions(prompt=message.prompt)
            ))
        if message.response_visible:
            entries.append(HistoryEntry(
                uuid=message.uuid,
                date_time=message.date_time,
                text=message.response,
                inversion=False,
                conversation_options=ConversationOptions(
                    parent_message_id=message.options.message_id
                ),
                request_options=RequestOptions(
                    prompt=message.prompt,
                    parent_message_id=message.options.parent_message_id
                )
            ))
    return entries
