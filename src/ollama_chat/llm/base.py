"""Abstract base class for LLM clients."""

from abc import ABC, abstractmethod

from .stream import DeltaChannel
from .types import ChatRequest


class BaseLLMClient(ABC):
    """Abstract interface for chat backends."""

    @abstractmethod
    async def chat(self, request: ChatRequest) -> str:
        """Send a request and wait for the complete reply.

        Args:
            request: The chat request. Sent with streaming disabled.

        Returns:
            The content of the assistant message.

        Raises:
            LLMError: If the request fails.
        """
        ...

    @abstractmethod
    async def stream_chat(self, request: ChatRequest, channel: DeltaChannel) -> None:
        """Send a streaming request, pushing each decoded delta onto ``channel``.

        Implementations must close the channel when they return and hand any
        request failure to the consumer through ``channel.fail``.
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""
