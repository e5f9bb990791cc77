"""Ollama LLM client implementation."""

import dataclasses
import json
import logging
from typing import Optional

import httpx

from .base import BaseLLMClient
from .errors import ChannelClosedError, LLMError, ServiceError, TransportError
from .stream import DeltaChannel, decode_chunk, decode_response, split_lines
from .types import ChatRequest

logger = logging.getLogger(__name__)


def _status_error(status_code: int, body: bytes) -> LLMError:
    """Map a non-success response to the most specific error."""
    try:
        obj = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        obj = None
    if isinstance(obj, dict) and isinstance(obj.get("error"), str):
        return ServiceError(obj["error"])
    return TransportError(f"HTTP {status_code} from chat endpoint", status_code=status_code)


class OllamaClient(BaseLLMClient):
    """LLM client that talks to an Ollama instance's chat endpoint."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def chat_url(self) -> str:
        # Support both full URL (http://host/api/chat) and base URL (http://host:11434)
        if self.base_url.endswith("/api/chat"):
            return self.base_url
        return f"{self.base_url}/api/chat"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def chat(self, request: ChatRequest) -> str:
        request = dataclasses.replace(request, stream=False)
        client = await self._get_client()
        try:
            response = await client.post(
                self.chat_url,
                json=request.to_payload(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", self.chat_url, e)
            raise TransportError(f"Cannot reach {self.chat_url}: {e}") from e

        if not response.is_success:
            raise _status_error(response.status_code, response.content)

        reply = decode_response(response.content)
        if reply.stats and reply.stats.tokens_per_second:
            logger.info("Generated %d tokens at %.1f tok/s", reply.stats.eval_count, reply.stats.tokens_per_second)
        return reply.message.content

    async def stream_chat(self, request: ChatRequest, channel: DeltaChannel) -> None:
        request = dataclasses.replace(request, stream=True)
        client = await self._get_client()
        seen_final = False
        try:
            async with client.stream(
                "POST",
                self.chat_url,
                json=request.to_payload(),
                timeout=self.timeout,
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    raise _status_error(response.status_code, body)

                async for record in split_lines(response.aiter_bytes()):
                    delta = decode_chunk(record)
                    channel.send(delta)
                    if delta.done:
                        seen_final = True
                        if delta.stats and delta.stats.tokens_per_second:
                            logger.info(
                                "Generated %d tokens at %.1f tok/s",
                                delta.stats.eval_count,
                                delta.stats.tokens_per_second,
                            )
        except ChannelClosedError:
            logger.warning("Consumer went away, abandoning stream from %s", self.chat_url)
        except httpx.HTTPError as e:
            logger.error("Streaming request to %s failed: %s", self.chat_url, e)
            channel.fail(TransportError(f"Cannot reach {self.chat_url}: {e}"))
        except LLMError as e:
            logger.error("Streaming request to %s failed: %s", self.chat_url, e)
            channel.fail(e)
        else:
            if not seen_final:
                logger.warning("Stream from %s ended without a final chunk", self.chat_url)
        finally:
            channel.close()

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
