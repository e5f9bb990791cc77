"""LLM abstraction layer."""

from .base import BaseLLMClient
from .errors import ChannelClosedError, LLMError, ServiceError, TransportError
from .ollama import OllamaClient
from .stream import DeltaChannel, decode_chunk, decode_response
from .types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    GenerationOptions,
    ResponseDelta,
    Role,
    StreamStats,
)

__all__ = [
    "BaseLLMClient",
    "OllamaClient",
    "DeltaChannel",
    "decode_chunk",
    "decode_response",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "GenerationOptions",
    "ResponseDelta",
    "Role",
    "StreamStats",
    "LLMError",
    "TransportError",
    "ServiceError",
    "ChannelClosedError",
]
