# chatrelay/services/relay.py
import asyncio
import logging
from enum import Enum
from itertools import chain, repeat
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from .history import latest_linkage, thread_context
from .room_store import RoomStore
from .upstream import Upstream
from ..schemas.chat import ChatMessage, ChatOptions, ChatRequest, Envelope, Snapshot
from ..schemas.model import ModelParameters
from ..utils.errors import APIError, ConflictError, DurabilityError, NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


class RelayState(str, Enum):
    AUTHORIZING = "authorizing"
    CONTEXT_BUILDING = "context_building"
    STREAMING = "streaming"
    COMMITTING = "committing"
    DONE = "done"
    ERRORED = "errored"


class InFlightRegistry:
    """Message keys currently owned by a running relay.

    Only touched from the event loop, so a plain set is enough.
    """

    def __init__(self):
        self._keys: set[tuple] = set()

    def claim(self, key: tuple) -> None:
        if key in self._keys:
            raise ConflictError("Message is already being processed", {"uuid": key[-1]})
        self._keys.add(key)

    def release(self, key: Optional[tuple]) -> None:
        self._keys.discard(key)

    def __contains__(self, key: tuple) -> bool:
        return key in self._keys


class StreamingRelay:
    """Drives one chat request from authorization to the stored result.

    ``prepare`` runs the authorizing and context-building steps and anchors
    the message row. ``snapshots`` then streams the upstream reply and
    commits the final text; ``reply`` and ``frames`` are the buffered and
    incremental views of that same stream.
    """

    def __init__(
            self,
            store: RoomStore,
            upstream: Upstream,
            params: ModelParameters,
            user_id: str,
            inflight: Optional[InFlightRegistry] = None,
            max_context_turns: int = 10
    ):
        self.store = store
        self.upstream = upstream
        self.params = params
        self.user_id = user_id
        self.inflight = inflight or InFlightRegistry()
        self.max_context_turns = max_context_turns

        self.state = RelayState.AUTHORIZING
        self.message: Optional[ChatMessage] = None
        self.parent_message_id: Optional[str] = None
        self.context: list[dict] = []
        self.final: Optional[Snapshot] = None
        self.committed = False
        self._key: Optional[tuple] = None

    def _transition(self, state: RelayState) -> None:
        logger.debug(f"Relay {self._key}: {self.state.value} -> {state.value}")
        self.state = state

    def release(self) -> None:
        self.inflight.release(self._key)

    async def prepare(self, request: ChatRequest) -> ChatMessage:
        try:
            await self._authorize(request)
            self._transition(RelayState.CONTEXT_BUILDING)
            await self._build_context(request)
        except BaseException:
            self._transition(RelayState.ERRORED)
            self.release()
            raise
        return self.message

    async def _authorize(self, request: ChatRequest) -> None:
        if request.room_id is None:
            raise ValidationError("Missing roomId")
        if request.uuid is None:
            raise ValidationError("Missing uuid")
        if not await self.store.room_exists(self.user_id, request.room_id):
            raise NotFoundError("Unknown room")

        key = (self.user_id, request.room_id, request.uuid)
        self.inflight.claim(key)
        self._key = key

    async def _build_context(self, request: ChatRequest) -> None:
        history = await self.store.list_messages(self.user_id, request.room_id)

        if request.regenerate:
            self.message = await self.store.get_message(self.user_id, request.room_id, request.uuid)
            self.parent_message_id = (
                request.options.parent_message_id or self.message.options.parent_message_id
            )
        else:
            self.parent_message_id = request.options.parent_message_id or latest_linkage(history)
            self.message = await self.store.insert_message(
                self.user_id,
                request.room_id,
                request.uuid,
                request.prompt,
                ChatOptions(
                    conversation_id=request.options.conversation_id,
                    parent_message_id=self.parent_message_id
                )
            )

        self.context = thread_context(history, self.parent_message_id, self.max_context_turns)

    async def snapshots(self) -> AsyncIterator[Snapshot]:
        if self.state != RelayState.CONTEXT_BUILDING:
            raise RuntimeError(f"Relay cannot stream from state {self.state.value}")

        self._transition(RelayState.STREAMING)
        stream = self.upstream.stream(self.message.prompt, self.parent_message_id, self.context, self.params)
        final = None
        try:
            async for snapshot in stream:
                final = snapshot
                yield snapshot

            if final is None or not final.done:
                raise UpstreamError(
                    "Upstream stream ended before completion",
                    {"partial_text": final.text if final else ""}
                )
            self.final = final

            self._transition(RelayState.COMMITTING)
            await self._commit(final)
            self._transition(RelayState.DONE)
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning(f"Client left during relay {self._key}; response not stored")
            self._transition(RelayState.ERRORED)
            raise
        except BaseException:
            self._transition(RelayState.ERRORED)
            raise
        finally:
            self.release()
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _commit(self, final: Snapshot) -> None:
        try:
            await self.store.update_message_result(self.message.id, final.text, final.id)
        except SQLAlchemyError as e:
            error = DurabilityError(
                "Completed response could not be stored",
                {"message_id": self.message.id, "upstream_message_id": final.id, "error": str(e)}
            )
            logger.error(f"Durability failure: {error.to_log()}")
            return

        self.committed = True
        logger.info(f"Stored response for message {self.message.uuid} in room {self.message.room_id}")

    async def reply(self) -> Snapshot:
        async for _ in self.snapshots():
            pass
        return self.final

    async def frames(self) -> AsyncIterator[str]:
        """Snapshots as newline-joined JSON values, ending with a Fail envelope on error."""
        separators = chain([""], repeat("\n"))
        snapshots = self.snapshots()
        try:
            async for snapshot in snapshots:
                yield next(separators) + snapshot.model_dump_json(by_alias=True)
        except APIError as e:
            yield next(separators) + Envelope.fail(e.error_message).model_dump_json()
        except Exception as e:
            logger.error(f"Unexpected error in relay {self._key}: {str(e)}")
            yield next(separators) + Envelope.fail("An unexpected error occurred").model_dump_json()
        finally:
            await snapshots.aclose()
