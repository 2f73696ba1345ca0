# chatrelay/services/upstream.py
import logging
from typing import AsyncIterator, Optional, Protocol
from uuid import uuid4

import httpx
from openai import AsyncOpenAI, OpenAIError

from ..schemas.chat import Snapshot, SnapshotDetail
from ..schemas.model import ModelParameters
from ..utils.errors import UpstreamError

logger = logging.getLogger(__name__)


class Upstream(Protocol):
    def stream(
            self,
            prompt: str,
            parent_message_id: Optional[str],
            context: list[dict],
            params: ModelParameters
    ) -> AsyncIterator[Snapshot]:
        """Cumulative snapshots of the reply; the last one carries a finish reason."""
        ...


class OpenAIUpstream:
    """Chat-completions provider (OpenAI or any compatible endpoint)."""

    def _client(self, params: ModelParameters) -> AsyncOpenAI:
        if not params.api_key:
            raise UpstreamError("Missing OPENAI_API_KEY")

        http_client = httpx.AsyncClient(proxy=params.proxy, timeout=params.timeout) if params.proxy else None
        return AsyncOpenAI(
            api_key=params.api_key,
            base_url=params.base_url,
            timeout=params.timeout,
            max_retries=0,
            http_client=http_client
        )

    @staticmethod
    def _messages(prompt: str, context: list[dict], params: ModelParameters) -> list[dict]:
        messages = []
        if params.system_message:
            messages.append({"role": "system", "content": params.system_message})
        messages.extend(context)
        messages.append({"role": "user", "content": prompt})
        return messages

    async def stream(
            self,
            prompt: str,
            parent_message_id: Optional[str],
            context: list[dict],
            params: ModelParameters
    ) -> AsyncIterator[Snapshot]:
        client = self._client(params)
        messages = self._messages(prompt, context, params)
        logger.debug(f"Sending {len(messages)} messages to {params.base_url} ({params.model})")

        try:
            try:
                response = await client.chat.completions.create(
                    model=params.model,
                    messages=messages,
                    temperature=params.temperature,
                    stream=True
                )
            except OpenAIError as e:
                logger.error(f"Upstream request failed: {str(e)}")
                raise UpstreamError(str(e))

            text = ""
            message_id = None
            try:
                async for chunk in response:
                    message_id = message_id or chunk.id or str(uuid4())
                    if not chunk.choices:
                        continue
                    choice = chunk.choices[0]
                    delta = choice.delta.content if choice.delta else None
                    if delta:
                        text += delta
                    if delta or choice.finish_reason:
                        yield Snapshot(
                            id=message_id,
                            text=text,
                            parent_message_id=parent_message_id,
                            detail=SnapshotDetail(model=chunk.model, finish_reason=choice.finish_reason)
                        )
            except (OpenAIError, httpx.HTTPError) as e:
                logger.error(f"Upstream stream failed: {str(e)}")
                raise UpstreamError(str(e), {"partial_text": text})
            finally:
                await response.close()
        finally:
            await client.close()
