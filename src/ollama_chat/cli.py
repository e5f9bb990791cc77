"""Command line interface: flag parsing, prompt loading and mode selection."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .config import AppSettings, settings
from .conversation import ConversationEngine, Transcript, run_single_prompt
from .llm import GenerationOptions, OllamaClient
from .terminal import Console

logger = logging.getLogger(__name__)

# Sampling temperature for single-shot prompts when none is given
SINGLE_PROMPT_TEMPERATURE = 0.8


class PromptSourceError(Exception):
    """The prompt could not be read from its file or from stdin."""


def setup_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # Keep the HTTP client quiet unless we are debugging
    if logging.getLogger().level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser(defaults: AppSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-chat",
        description="Chat with a model served by Ollama from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ollama-chat --conv                 Start a conversation (type #help inside)
  ollama-chat --file prompt.txt      Send a file as the prompt
  cat prompt.txt | ollama-chat -f -  Send stdin as the prompt
  ollama-chat --prompt               Type a single-line prompt
""",
    )
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "-f",
        "--file",
        metavar="PATH",
        help="Read entire prompt from a file ('-' for stdin) and print the response",
    )
    modes.add_argument(
        "-p",
        "--prompt",
        action="store_true",
        help="Basic prompting mode",
    )
    modes.add_argument(
        "-c",
        "--conv",
        action="store_true",
        help="Well-featured conversation mode",
    )
    parser.add_argument(
        "-m",
        "--model",
        default=defaults.model_name,
        metavar="MODEL:TAG",
        help=f"Name of the model to query (default: {defaults.model_name})",
    )
    parser.add_argument(
        "-e",
        "--endpoint",
        default=defaults.ollama_url,
        metavar="URL",
        help=f"Chat endpoint (default: {defaults.ollama_url})",
    )
    parser.add_argument(
        "-s",
        "--system",
        default=None,
        metavar="TEXT",
        help="System message to start the conversation with",
    )
    parser.add_argument(
        "-t",
        "--temperature",
        type=float,
        default=None,
        help="Sampling temperature",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        default=not defaults.stream,
        help="Wait for the complete response instead of streaming it",
    )
    parser.add_argument(
        "--log-level",
        default=defaults.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help=f"Logging level (default: {defaults.log_level})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def read_prompt_file(path: str) -> str:
    """Load the whole prompt from ``path``, or from stdin when it is ``-``."""
    if path == "-":
        try:
            return sys.stdin.read()
        except (OSError, UnicodeDecodeError) as e:
            raise PromptSourceError(f"Error reading stdin: {e}") from e
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise PromptSourceError(f"File {path} not found.") from e
    except (OSError, UnicodeDecodeError) as e:
        raise PromptSourceError(f"Error reading {path}: {e}") from e


def read_prompt_line() -> str:
    print("Enter your prompt on a single line:\n>", end="", flush=True)
    try:
        line = sys.stdin.readline()
    except (OSError, UnicodeDecodeError) as e:
        raise PromptSourceError(f"Error reading stdin: {e}") from e
    if not line:
        raise PromptSourceError("No prompt given on stdin.")
    return line


async def _run(args: argparse.Namespace) -> int:
    client = OllamaClient(
        base_url=args.endpoint,
        model=args.model,
        timeout=settings.request_timeout,
    )
    console = Console()
    stream = not args.no_stream
    try:
        if args.conv:
            options = None
            if args.temperature is not None:
                options = GenerationOptions(temperature=args.temperature)
            engine = ConversationEngine(
                client,
                args.model,
                options=options,
                stream=stream,
                console=console,
                transcript=Transcript(system_prompt=args.system),
            )
            await engine.run()
            return 0

        if args.file is not None:
            prompt = read_prompt_file(args.file)
        else:
            prompt = read_prompt_line()

        temperature = args.temperature if args.temperature is not None else SINGLE_PROMPT_TEMPERATURE
        return await run_single_prompt(
            client,
            args.model,
            prompt,
            options=GenerationOptions(temperature=temperature),
            stream=stream,
            console=console,
            system=args.system,
        )
    finally:
        await client.close()


def run_until_complete(coro) -> int:
    """Run ``coro`` on a fresh event loop and tear the loop down afterwards.

    Unlike ``asyncio.run`` this leaves SIGINT alone, so Ctrl-C raises
    ``KeyboardInterrupt`` wherever the main thread is, including a blocking
    stdin read.
    """
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.run_until_complete(loop.shutdown_default_executor())
        finally:
            loop.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser(settings)
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not (args.conv or args.prompt or args.file is not None):
        print("--file, --prompt or --conv is required.", file=sys.stderr)
        return 2

    logger.info("Using model %s at %s", args.model, args.endpoint)
    try:
        return run_until_complete(_run(args))
    except PromptSourceError as e:
        print(e, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130
