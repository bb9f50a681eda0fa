"""
Terminal control: raw keypress input and an in-place status region.
"""
import os
import select
import shutil
import sys
import termios
import tty
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional

from drumtakes.logging_config import get_logger
from drumtakes.ui import fit_line

logger = get_logger('terminal')

HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"
CLEAR_TO_END = "\033[J"

# Byte sequences produced by the keys the player understands
KEY_NAMES = {
    " ": "space",
    "\r": "enter",
    "\n": "enter",
    "\x03": "ctrl+c",
    "\x1b": "escape",
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
}

# How long to wait for the rest of an escape sequence
ESCAPE_TIMEOUT: float = 0.03


def decode_key(seq: str) -> str:
    """Map a raw input sequence to a key name.

    Unknown escape sequences map to ``"unknown"`` and printable
    characters to themselves (lowercased).
    """
    if seq in KEY_NAMES:
        return KEY_NAMES[seq]
    if seq.startswith("\x1b"):
        return "unknown"
    return seq.lower()


class KeyReader:
    """Reads single keypresses from a file descriptor in raw mode."""

    def __init__(self, fd: int):
        self.fd = fd

    def _ready(self, timeout: float) -> bool:
        return bool(select.select([self.fd], [], [], timeout)[0])

    def read_key(self, timeout: float) -> Optional[str]:
        """Wait up to ``timeout`` seconds for a key; None when none arrived."""
        if not self._ready(timeout):
            return None
        data = os.read(self.fd, 1)
        if not data:
            return None
        seq = data.decode("utf-8", errors="ignore")
        if seq == "\x1b":
            # Arrow keys arrive as ESC [ X; a lone ESC is the escape key
            while len(seq) < 3 and self._ready(ESCAPE_TIMEOUT):
                seq += os.read(self.fd, 1).decode("utf-8", errors="ignore")
        return decode_key(seq)

    def discard(self) -> None:
        """Drop keys typed while an action was being applied."""
        try:
            termios.tcflush(self.fd, termios.TCIFLUSH)
        except termios.error:
            # Not a terminal (e.g. a pipe): drain it instead
            while self._ready(0):
                if not os.read(self.fd, 1024):
                    break


@contextmanager
def raw_input_mode(stream: Optional[IO] = None) -> Iterator[KeyReader]:
    """Put the terminal in cbreak mode without signal keys for the block.

    Ctrl+C arrives as a key rather than SIGINT. The previous terminal
    attributes are restored on every exit path.
    """
    stream = stream or sys.stdin
    fd = stream.fileno()
    old = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        attrs = termios.tcgetattr(fd)
        attrs[3] &= ~termios.ISIG
        termios.tcsetattr(fd, termios.TCSANOW, attrs)
        logger.debug("Terminal switched to raw input")
        yield KeyReader(fd)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old)
        logger.debug("Terminal input mode restored")


class StatusRegion:
    """A block of lines redrawn in place instead of appended."""

    def __init__(self, stream: Optional[IO] = None, width: Optional[int] = None):
        self.stream = stream or sys.stdout
        self.width = width
        self.lines: List[str] = []
        self.active = False

    def _rewind(self) -> str:
        if len(self.lines) > 1:
            return f"\r\033[{len(self.lines) - 1}A{CLEAR_TO_END}"
        return f"\r{CLEAR_TO_END}"

    def open(self) -> None:
        self.stream.write(HIDE_CURSOR)
        self.active = True

    def columns(self) -> int:
        """Usable width: the configured one, else the terminal's."""
        if self.width:
            return self.width
        return shutil.get_terminal_size().columns

    def draw(self, lines: List[str]) -> None:
        """Replace the previously drawn block with ``lines``."""
        width = self.columns()
        fitted = [fit_line(line, width) for line in lines]
        self.stream.write(self._rewind() + "\n".join(fitted))
        self.stream.flush()
        self.lines = fitted

    def clear(self) -> None:
        """Erase the block and show the cursor again."""
        if not self.active:
            return
        self.stream.write(self._rewind() + SHOW_CURSOR)
        self.stream.flush()
        self.lines = []
        self.active = False
