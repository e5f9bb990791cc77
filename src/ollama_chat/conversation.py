"""Conversation state and the interactive command loop."""

import asyncio
import logging
import sys
from typing import Callable, Iterator, Optional

from .llm import (
    BaseLLMClient,
    ChatMessage,
    ChatRequest,
    DeltaChannel,
    GenerationOptions,
    LLMError,
    Role,
)
from .terminal import Console

logger = logging.getLogger(__name__)

MULTILINE_DELIMITER = '"""'

HELP_TEXT = """Implemented commands are:
  #help ─── show this summary
  #exit ─── quit the conversation
  #quit ─── alias for #exit
  #clear ── clear the screen
  #reset ── reset the conversation
  #system ─ reset the conversation and change the system message
  #status ─ print the conversation history
  #repeat ─ regenerate the last response from AI / repeat the last message
  \"\"\" ──── start a multi-line prompt, end it with a line ending in \"\"\""""


class Transcript:
    """Ordered, append-only message history of one conversation."""

    def __init__(self, system_prompt: Optional[str] = None):
        self._messages: list[ChatMessage] = []
        if system_prompt:
            self.append(Role.SYSTEM, system_prompt)

    def append(self, role: Role, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self._messages.append(message)
        return message

    def restore(self, message: ChatMessage) -> None:
        """Put back a message previously removed with ``pop``."""
        self._messages.append(message)

    def pop(self) -> Optional[ChatMessage]:
        if not self._messages:
            return None
        return self._messages.pop()

    def reset(self) -> None:
        self._messages = []

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._messages))


class ConversationEngine:
    """Drives request/response turns and interprets REPL commands.

    The transcript is only ever touched from the foreground coroutine; the
    producer task spawned per streaming turn talks to it solely through a
    ``DeltaChannel``.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        model: str,
        options: Optional[GenerationOptions] = None,
        stream: bool = True,
        console: Optional[Console] = None,
        read_line: Optional[Callable[[], str]] = None,
        transcript: Optional[Transcript] = None,
    ):
        self.client = client
        self.model = model
        self.options = options
        self.stream = stream
        self.console = console or Console()
        self.transcript = transcript if transcript is not None else Transcript()
        self._read_line = read_line or sys.stdin.readline

    def build_request(self) -> ChatRequest:
        return ChatRequest(
            model=self.model,
            messages=self.transcript.messages,
            stream=self.stream,
            options=self.options,
        )

    async def run_turn(self) -> Optional[str]:
        """Send the transcript and append the assistant's reply to it.

        Returns the reply, or ``None`` if the request failed, in which case
        the transcript is left untouched.
        """
        request = self.build_request()
        try:
            if self.stream:
                text = await self._receive_stream(request)
            else:
                text = await self.client.chat(request)
                self.console.line(text)
        except LLMError as e:
            self.console.error(f"Error received: {e}")
            return None

        reply = text.rstrip()
        self.transcript.append(Role.ASSISTANT, reply)
        return reply

    async def _receive_stream(self, request: ChatRequest) -> str:
        channel = DeltaChannel()
        producer = asyncio.create_task(self.client.stream_chat(request, channel))
        parts: list[str] = []
        try:
            while True:
                delta = await channel.receive()
                if delta is None:
                    logger.warning("Producer finished without a final delta")
                    break
                self.console.write(delta.text)
                parts.append(delta.text)
                if delta.done:
                    break
        finally:
            channel.detach()
            await producer
            self.console.line()
        return "".join(parts)

    def _read(self) -> Optional[str]:
        """Read one raw line of input; ``None`` at end of input.

        Input is only read between turns, when no producer task is running,
        so the read blocks the loop thread directly. Ctrl-C then interrupts it
        as a plain ``KeyboardInterrupt``.
        """
        line = self._read_line()
        if not line:
            return None
        return line

    def _read_multiline(self, first_line: str) -> str:
        body = first_line.strip()[len(MULTILINE_DELIMITER):]
        if body.rstrip().endswith(MULTILINE_DELIMITER):
            return body.rstrip()[: -len(MULTILINE_DELIMITER)]

        lines = [body]
        while True:
            raw = self._read()
            if raw is None:
                break
            line = raw.rstrip("\r\n")
            if line.rstrip().endswith(MULTILINE_DELIMITER):
                lines.append(line.rstrip()[: -len(MULTILINE_DELIMITER)])
                break
            lines.append(line)
        return "\n".join(lines)

    async def submit(self, prompt: str) -> Optional[str]:
        """Append a user message and run a turn; undo the append on failure."""
        self.transcript.append(Role.USER, prompt)
        reply = await self.run_turn()
        if reply is None:
            self.transcript.pop()
        return reply

    async def repeat(self) -> Optional[str]:
        """Drop the latest entry and regenerate a reply from what remains."""
        last = self.transcript.pop()
        if not len(self.transcript):
            self.console.warning("No conversation history.")
            return None
        reply = await self.run_turn()
        if reply is None:
            self.transcript.restore(last)
        return reply

    async def handle_line(self, line: str) -> bool:
        """Process one line of input. Returns ``False`` when the loop should end."""
        command = line.strip()

        if command in ("#exit", "#quit"):
            return False
        if command == "#help":
            self.console.line(HELP_TEXT)
        elif command == "#clear":
            self.console.clear()
        elif command == "#status":
            for message in self.transcript:
                self.console.line(f"{Role(message.role).value}: {message.content}")
        elif command == "#reset":
            self.transcript.reset()
            self.console.notice("Conversation history reset.")
        elif command == "#system":
            self.transcript.reset()
            self.console.notice("Conversation history reset.")
            self.console.line("Input the new system prompt.")
            system_prompt = self._read()
            if system_prompt is None:
                return False
            self.transcript.append(Role.SYSTEM, system_prompt.strip())
        elif command == "#repeat":
            await self.repeat()
        elif command.startswith(MULTILINE_DELIMITER):
            prompt = self._read_multiline(line)
            if prompt.strip():
                await self.submit(prompt)
        elif command:
            await self.submit(command)
        return True

    async def run(self) -> None:
        """Read and handle input lines until ``#exit`` or end of input."""
        while True:
            self.console.prompt()
            line = self._read()
            if line is None:
                self.console.line()
                break
            if not await self.handle_line(line):
                break


async def run_single_prompt(
    client: BaseLLMClient,
    model: str,
    prompt: str,
    options: Optional[GenerationOptions] = None,
    stream: bool = True,
    console: Optional[Console] = None,
    system: Optional[str] = None,
) -> int:
    """Send one prompt, print the reply and return a process exit status.

    A ``system`` prompt, when given, is sent ahead of the user message.
    """
    engine = ConversationEngine(
        client,
        model,
        options=options,
        stream=stream,
        console=console,
        transcript=Transcript(system_prompt=system),
    )
    engine.transcript.append(Role.USER, prompt)
    reply = await engine.run_turn()
    return 0 if reply is not None else 1
