"""Shared fixtures for the test suite."""

import io
import json
from typing import Callable, Iterable

import httpx
import pytest

from ollama_chat.llm import OllamaClient
from ollama_chat.terminal import Console

ENDPOINT = "http://ollama.test:11434/api/chat"
MODEL = "llama3:8b"


def chunk(content: str, done: bool = False, **extra) -> dict:
    """A streamed chat envelope as the service sends it."""
    body = {
        "model": MODEL,
        "created_at": "2024-01-01T00:00:00Z",
        "message": {"role": "assistant", "content": content},
        "done": done,
    }
    body.update(extra)
    return body


def ndjson(*records: dict) -> bytes:
    return b"".join(json.dumps(r, ensure_ascii=False).encode("utf-8") + b"\n" for r in records)


def lines(*items: str) -> Callable[[], str]:
    """A ``readline`` replacement yielding ``items`` then end of input."""
    queue = [item if item.endswith("\n") else item + "\n" for item in items]

    def read_line() -> str:
        return queue.pop(0) if queue else ""

    return read_line


@pytest.fixture
def console():
    return Console(out=io.StringIO(), err=io.StringIO(), use_color=False)


@pytest.fixture
def requests_seen():
    """Decoded JSON bodies of every request the mock transport received."""
    return []


@pytest.fixture
def make_client(requests_seen):
    """Build an ``OllamaClient`` whose HTTP traffic goes to ``handler``."""
    def factory(handler) -> OllamaClient:
        def recording(request: httpx.Request) -> httpx.Response:
            requests_seen.append(json.loads(request.content))
            return handler(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        client = OllamaClient(ENDPOINT, MODEL, client=http)
        return client

    return factory


def respond(*bodies: bytes, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    """Handler answering successive requests with ``bodies``, repeating the last."""
    pending: list[bytes] = list(bodies)

    def handler(request: httpx.Request) -> httpx.Response:
        body = pending.pop(0) if len(pending) > 1 else pending[0]
        return httpx.Response(status_code, content=body)

    return handler


def streamed(parts: Iterable[bytes]) -> httpx.AsyncByteStream:
    """A response body delivered in the given transport chunks."""

    class _Stream(httpx.AsyncByteStream):
        async def __aiter__(self):
            for part in parts:
                yield part

    return _Stream()
