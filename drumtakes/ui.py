"""
User-facing output helpers: colored message lines and time formatting.
"""
import math
import re
import sys
import textwrap
from datetime import datetime, timezone
from typing import Dict, Optional

COLOR_MAP: Dict[str, str] = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "gray": "\033[90m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "reset": "\033[0m",
    "default": "",
}

# Output settings, changed once at startup by configure()
TERM_WIDTH: int = 72
USE_COLORS: bool = True


def configure(width: int = 72, colors: bool = True) -> None:
    """Apply UI settings from the loaded configuration."""
    global TERM_WIDTH, USE_COLORS
    TERM_WIDTH = max(20, width)
    USE_COLORS = colors and sys.stdout.isatty()


def _strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text for accurate length calculation."""
    return re.sub(r"\x1b\[[0-?]*[ -/]*[@-~]", "", text)


def paint(text: str, color: str) -> str:
    if not USE_COLORS or not COLOR_MAP.get(color):
        return text
    return f"{COLOR_MAP[color]}{text}{COLOR_MAP['reset']}"


def wrap_line(text: str = "") -> str:
    """Soft-wrap plain text to the configured width."""
    if not text:
        return text
    return "\n".join(
        textwrap.fill(part, width=TERM_WIDTH, break_long_words=False) if part else part
        for part in text.split("\n")
    )


def fit_line(text: str, width: Optional[int] = None) -> str:
    """Hard-truncate a single line so it never wraps in the terminal."""
    width = width or TERM_WIDTH
    if len(_strip_ansi(text)) <= width:
        return text
    return text[: max(0, width - 3)] + "..."


class Voice:
    """The tool's way of talking: one calm, lowercase line per message."""

    def say(self, text: str = "") -> None:
        print(wrap_line(text))

    def hint(self, text: str = "") -> None:
        print(paint(wrap_line(text), "dim"))

    def success(self, text: str = "") -> None:
        print(paint(wrap_line(text), "green"))

    def warn(self, text: str = "") -> None:
        print(paint(wrap_line(text), "yellow"))

    def error(self, text: str = "") -> None:
        print(paint(wrap_line(text), "red"))


voice = Voice()


def format_time(seconds: Optional[float]) -> str:
    """Format seconds as MM:SS, or ``??:??`` when unknown.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string
    """
    if seconds is None or isinstance(seconds, bool):
        return "??:??"
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return "??:??"
    if math.isnan(value) or value < 0:
        return "??:??"
    mins = int(value) // 60
    secs = int(value) % 60
    return f"{mins:02d}:{secs:02d}"


def format_relative_time(moment: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Render a timestamp as a short age like ``3h ago``."""
    if moment is None:
        return ""
    if now is None:
        now = datetime.now(timezone.utc) if moment.tzinfo else datetime.now()
    minutes = int((now - moment).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    if days < 28:
        return f"{days // 7}w ago"
    if days < 365:
        return f"{max(1, days // 30)}mo ago"
    return f"{days // 365}y ago"


def tidy_title(title: str = "") -> str:
    """Collapse runs of whitespace in a title."""
    return re.sub(r"\s+", " ", title).strip()
