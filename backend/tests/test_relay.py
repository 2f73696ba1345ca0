import asyncio
import json
import logging

import pytest
from sqlalchemy.exc import SQLAlchemyError

from chatrelay.schemas.chat import ChatOptions, ChatRequest
from chatrelay.services.relay import RelayState
from chatrelay.utils.errors import ConflictError, NotFoundError, UpstreamError, ValidationError

from conftest import StubUpstream


def chat_request(uuid=1, prompt="hi", regenerate=False, room_id=7, **options):
    return ChatRequest(room_id=room_id, uuid=uuid, prompt=prompt, regenerate=regenerate, options=ChatOptions(**options))


async def collect(frames):
    return "".join([frame async for frame in frames])


async def test_streams_snapshots_and_commits_once(store, make_relay):
    await store.create_room("42", 7, "x")
    relay = make_relay()

    await relay.prepare(chat_request())
    body = await collect(relay.frames())

    lines = body.split("\n")
    assert len(lines) == 2
    first, final = [json.loads(line) for line in lines]
    assert first["text"] == "h"
    assert first["detail"]["finishReason"] is None
    assert final == {
        "id": "99",
        "text": "hi there",
        "role": "assistant",
        "parentMessageId": None,
        "detail": {"model": "gpt-test", "finishReason": "stop"},
    }

    stored = await store.get_message("42", 7, 1)
    assert stored.response == "hi there"
    assert stored.options.message_id == "99"
    assert relay.state == RelayState.DONE
    assert relay.committed


async def test_buffered_reply_matches_streamed_final(store, make_relay):
    await store.create_room("42", 7, "x")

    streaming = make_relay()
    await streaming.prepare(chat_request(uuid=1))
    last_frame = (await collect(streaming.frames())).split("\n")[-1]

    buffered = make_relay()
    await buffered.prepare(chat_request(uuid=2))
    final = await buffered.reply()

    assert json.loads(last_frame)["text"] == final.text == "hi there"


async def test_foreign_room_is_not_found(store, make_relay, upstream):
    await store.create_room("43", 7, "someone else's")
    relay = make_relay(user_id="42")

    with pytest.raises(NotFoundError) as exc_info:
        await relay.prepare(chat_request())

    assert exc_info.value.error_message == "Unknown room"
    assert relay.state == RelayState.ERRORED
    assert await store.list_messages("43", 7) == []
    assert upstream.calls == []


async def test_missing_room_id_is_invalid(make_relay):
    with pytest.raises(ValidationError):
        await make_relay().prepare(chat_request(room_id=None))


async def test_regenerate_reuses_row(store, make_relay, upstream):
    await store.create_room("42", 7, "x")
    relay = make_relay()
    await relay.prepare(chat_request(parent_message_id="p-0"))
    await relay.reply()

    regen_upstream = StubUpstream(texts=["again"], message_id="100")
    regen = make_relay(upstream_override=regen_upstream)
    await regen.prepare(chat_request(prompt="", regenerate=True))
    await regen.reply()

    messages = await store.list_messages("42", 7)
    assert len(messages) == 1
    assert messages[0].response == "again"
    assert messages[0].options.message_id == "100"
    assert regen_upstream.calls[0]["prompt"] == "hi"
    assert regen_upstream.calls[0]["parent_message_id"] == "p-0"


async def test_regenerate_unknown_message(store, make_relay):
    await store.create_room("42", 7, "x")
    relay = make_relay()

    with pytest.raises(NotFoundError):
        await relay.prepare(chat_request(regenerate=True))
    assert relay.state == RelayState.ERRORED


async def test_linkage_continues_latest_turn(store, make_relay):
    await store.create_room("42", 7, "x")
    first = make_relay(upstream_override=StubUpstream(texts=["one"], message_id="m1"))
    await first.prepare(chat_request(uuid=1, prompt="p1"))
    await first.reply()

    follow_upstream = StubUpstream(texts=["two"], message_id="m2")
    follow = make_relay(upstream_override=follow_upstream)
    await follow.prepare(chat_request(uuid=2, prompt="p2"))
    await follow.reply()

    call = follow_upstream.calls[0]
    assert call["parent_message_id"] == "m1"
    assert call["context"] == [
        {"role": "user", "content": "p1"},
        {"role": "assistant", "content": "one"},
    ]
    stored = await store.get_message("42", 7, 2)
    assert stored.options.parent_message_id == "m1"


async def test_upstream_failure_keeps_partial_output_and_skips_commit(store, make_relay):
    await store.create_room("42", 7, "x")
    failing = StubUpstream(texts=["h", "hi", "hi there"], fail_at=2)
    relay = make_relay(upstream_override=failing)

    await relay.prepare(chat_request())
    lines = (await collect(relay.frames())).split("\n")

    assert [json.loads(line)["text"] for line in lines[:2]] == ["h", "hi"]
    assert json.loads(lines[2]) == {"status": "Fail", "message": "upstream went away", "data": None}
    assert relay.state == RelayState.ERRORED
    assert not relay.committed
    assert (await store.get_message("42", 7, 1)).response == ""


async def test_stream_without_finish_is_an_upstream_error(store, make_relay):
    await store.create_room("42", 7, "x")
    relay = make_relay(upstream_override=StubUpstream(texts=["h"], finish=False))
    await relay.prepare(chat_request())

    with pytest.raises(UpstreamError):
        await relay.reply()
    assert (await store.get_message("42", 7, 1)).response == ""


async def test_client_disconnect_cancels_upstream_without_commit(store, make_relay, upstream, inflight):
    await store.create_room("42", 7, "x")
    relay = make_relay()
    await relay.prepare(chat_request())

    frames = relay.frames()
    first = await frames.__anext__()
    await frames.aclose()

    assert json.loads(first)["text"] == "h"
    assert relay.state == RelayState.ERRORED
    assert upstream.closed == 1
    assert ("42", 7, 1) not in inflight
    # The anchor row survives for a later regenerate
    assert (await store.get_message("42", 7, 1)).response == ""


async def test_commit_failure_is_logged_not_raised(store, make_relay, monkeypatch, caplog):
    await store.create_room("42", 7, "x")

    async def broken_update(*args, **kwargs):
        raise SQLAlchemyError("database is gone")

    monkeypatch.setattr(store, "update_message_result", broken_update)
    relay = make_relay()
    await relay.prepare(chat_request())

    with caplog.at_level(logging.ERROR, logger="chatrelay.services.relay"):
        final = await relay.reply()

    assert final.text == "hi there"
    assert relay.state == RelayState.DONE
    assert not relay.committed
    assert "Durability failure" in caplog.text


async def test_in_flight_uuid_conflicts(store, make_relay, inflight):
    await store.create_room("42", 7, "x")
    running = make_relay()
    await running.prepare(chat_request())

    racing = make_relay()
    with pytest.raises(ConflictError):
        await racing.prepare(chat_request(regenerate=True))

    await running.reply()
    assert ("42", 7, 1) not in inflight


async def test_concurrent_sends_to_one_room_both_commit(store, make_relay):
    await store.create_room("42", 7, "x")

    async def send(uuid, texts, delay):
        relay = make_relay(upstream_override=StubUpstream(texts=texts, message_id=f"m{uuid}", delay=delay))
        await relay.prepare(chat_request(uuid=uuid, prompt=f"p{uuid}"))
        return await relay.reply()

    results = await asyncio.gather(
        send(1, ["slow", "slow reply"], 0.02),
        send(2, ["fast reply"], 0),
    )

    assert [r.text for r in results] == ["slow reply", "fast reply"]
    messages = await store.list_messages("42", 7)
    assert sorted((m.uuid, m.response) for m in messages) == [(1, "slow reply"), (2, "fast reply")]


async def test_release_frees_key_when_stream_never_starts(store, make_relay, upstream, inflight):
    await store.create_room("42", 7, "x")
    relay = make_relay()
    await relay.prepare(chat_request())
    assert ("42", 7, 1) in inflight

    relay.frames()
    relay.release()

    assert ("42", 7, 1) not in inflight
    assert upstream.calls == []
    await make_relay().prepare(chat_request(regenerate=True))
