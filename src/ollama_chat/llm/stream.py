"""Decoding of streamed chat responses and the producer/consumer channel.

The service streams newline-delimited JSON. Each record is decoded into a
``ResponseDelta`` and pushed onto a ``DeltaChannel`` by the producer task
while the foreground consumer drains it and prints the text as it arrives.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional, Union

from .errors import ChannelClosedError, LLMError, ServiceError
from .types import ChatMessage, ChatResponse, ResponseDelta, Role, StreamStats

logger = logging.getLogger(__name__)

# Shown in place of a record that is not valid UTF-8
BAD_UTF8_GLYPH = "�"
# Shown in place of a record that is text but not a chat envelope
BAD_ENVELOPE_GLYPH = "☠"


def _error_message(obj: Any) -> Optional[str]:
    """Return the service error text if ``obj`` is an error envelope."""
    if not isinstance(obj, dict):
        return None
    error = obj.get("error")
    # A chat envelope that happens to carry an "error" key is still content
    if isinstance(error, str) and not isinstance(obj.get("message"), dict):
        return error
    return None


def parse_envelope(obj: Any) -> ChatResponse:
    """Build a ``ChatResponse`` from a decoded JSON object.

    Raises:
        ValueError: If ``obj`` does not have the chat envelope shape.
    """
    if not isinstance(obj, dict):
        raise ValueError("envelope is not a JSON object")
    message = obj.get("message")
    if not isinstance(message, dict) or not isinstance(message.get("content"), str):
        raise ValueError("envelope has no message content")

    done = obj.get("done", False)
    if not isinstance(done, bool):
        raise ValueError("envelope done flag is not a boolean")

    role = Role(message.get("role") or Role.ASSISTANT.value)
    stats = StreamStats.from_dict(obj) or StreamStats.from_dict(message)
    return ChatResponse(
        message=ChatMessage(role=role, content=message["content"]),
        done=done,
        model=str(obj.get("model", "")),
        created_at=str(obj.get("created_at", "")),
        stats=stats,
    )


def decode_chunk(data: bytes) -> ResponseDelta:
    """Turn one streamed record into a delta.

    Malformed records become a sentinel glyph instead of aborting the
    stream, so later records (including the final one) still get through.

    Raises:
        ServiceError: If the record is a service error envelope.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Chunk is not valid UTF-8: %r", data[:80])
        return ResponseDelta(text=BAD_UTF8_GLYPH, done=False)

    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        obj = None

    error = _error_message(obj)
    if error is not None:
        raise ServiceError(error)

    try:
        envelope = parse_envelope(obj)
    except ValueError:
        logger.debug("Chunk is not a chat envelope: %r", text[:80])
        return ResponseDelta(text=BAD_ENVELOPE_GLYPH, done=False)

    return ResponseDelta(
        text=envelope.message.content,
        done=envelope.done,
        stats=envelope.stats,
    )


def decode_response(body: bytes) -> ChatResponse:
    """Decode a complete, non-streamed response body.

    The error envelope check runs once against the whole buffer.

    Raises:
        ServiceError: If the body is a service error envelope.
        LLMError: If the body cannot be decoded as a chat envelope.
    """
    try:
        obj = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LLMError(f"Unable to decode response: {e}") from e

    error = _error_message(obj)
    if error is not None:
        raise ServiceError(error)

    try:
        return parse_envelope(obj)
    except ValueError as e:
        raise LLMError(f"Unable to decode response: {e}") from e


async def split_lines(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Reassemble raw transport chunks into newline-delimited records.

    Transport chunk boundaries need not line up with records: one chunk may
    hold several records or only part of one.
    """
    pending = bytearray()
    async for chunk in chunks:
        # Only the new bytes can hold a newline not seen yet
        start = len(pending)
        pending += chunk
        head = 0
        while True:
            end = pending.find(b"\n", start)
            if end < 0:
                break
            record = bytes(pending[head:end])
            if record.strip():
                yield record
            head = start = end + 1
        del pending[:head]
    if pending.strip():
        yield bytes(pending)


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: LLMError):
        self.error = error


_CLOSED = object()

_Item = Union[ResponseDelta, _Failure, object]


class DeltaChannel:
    """Unbounded FIFO hand-off from one producer task to one consumer.

    The producer sends deltas, optionally reports a failure, and always
    closes the channel when it exits so the consumer never waits forever.
    """

    def __init__(self):
        self._queue: asyncio.Queue[_Item] = asyncio.Queue()
        self._closed = False
        self._detached = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, delta: ResponseDelta) -> None:
        if self._detached:
            raise ChannelClosedError("Consumer is no longer receiving")
        if self._closed:
            raise ChannelClosedError("Channel already closed")
        self._queue.put_nowait(delta)

    def fail(self, error: LLMError) -> None:
        if not self._closed and not self._detached:
            self._queue.put_nowait(_Failure(error))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def detach(self) -> None:
        """Mark the consumer as gone; later sends fail."""
        self._detached = True

    async def receive(self) -> Optional[ResponseDelta]:
        """Wait for the next delta.

        Returns ``None`` once the producer has closed the channel and every
        delta before the close has been received.

        Raises:
            LLMError: The failure the producer reported.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep later receives from blocking
            self._queue.put_nowait(_CLOSED)
            return None
        if isinstance(item, _Failure):
            raise item.error
        return item
