"""Terminal colors and screen control for the interactive client."""

import os
import sys
from typing import Optional, TextIO

ANSI_GREEN = "\033[32m"
ANSI_YELLOW = "\033[33m"
ANSI_RED = "\033[31m"
ANSI_RESET = "\033[m"

# Cursor home, clear screen, clear scrollback
CLEAR_SEQUENCE = "\033[H\033[J\033[3J"

PROMPT_MARKER = "➤ "


def should_use_color(stream: TextIO) -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    isatty = getattr(stream, "isatty", None)
    if isatty is None or not isatty():
        return False
    term = os.getenv("TERM", "").strip().lower()
    return bool(term) and term != "dumb"


def colorize(text: str, color: str, use_color: bool) -> str:
    if not use_color:
        return text
    return f"{color}{text}{ANSI_RESET}"


class Console:
    """Writes conversation output, notices and errors to the terminal."""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        use_color: Optional[bool] = None,
    ):
        self.out = out if out is not None else sys.stdout
        self.err = err if err is not None else sys.stderr
        self.use_color = should_use_color(self.out) if use_color is None else use_color

    def write(self, text: str) -> None:
        """Write without a newline and flush, for live streaming."""
        self.out.write(text)
        self.out.flush()

    def line(self, text: str = "") -> None:
        print(text, file=self.out, flush=True)

    def prompt(self) -> None:
        self.write(colorize(PROMPT_MARKER, ANSI_GREEN, self.use_color))

    def notice(self, text: str) -> None:
        self.line(colorize(f"✔ {text}", ANSI_YELLOW, self.use_color))

    def warning(self, text: str) -> None:
        self.line(colorize(f"⚠ {text}", ANSI_YELLOW, self.use_color))

    def error(self, text: str) -> None:
        print(colorize(text, ANSI_RED, self.use_color), file=self.err, flush=True)

    def clear(self) -> None:
        self.write(CLEAR_SEQUENCE)
