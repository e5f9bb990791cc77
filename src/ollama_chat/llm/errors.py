"""Exceptions raised by the LLM client layer."""

from typing import Optional


class LLMError(Exception):
    """A chat request failed. Fatal to the current turn only."""


class TransportError(LLMError):
    """Connection failure or non-success HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ServiceError(LLMError):
    """The service answered with an ``{"error": ...}`` envelope."""


class ChannelClosedError(LLMError):
    """The consumer stopped listening before the producer finished."""
