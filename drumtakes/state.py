"""
Playback state for a single listening session.
"""
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from drumtakes.logging_config import get_logger

logger = get_logger('state')

VOLUME_MIN: float = 0.0
VOLUME_MAX: float = 4.0


@dataclass
class PlaybackState:
    """Position, transport and volume of one session.

    ``offset`` is the position at the start of the current run segment and
    ``started_at`` the clock reading when that segment began. While playing
    the live position is ``offset + (now - started_at)``; while paused it is
    ``offset``. ``duration`` is ``None`` when the probe could not read it,
    in which case positions are only clamped at zero.
    """

    duration: Optional[float] = None
    offset: float = 0.0
    started_at: float = 0.0
    playing: bool = False
    volume: float = 1.0
    max_volume: float = VOLUME_MAX
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def clamp_position(self, seconds: float) -> float:
        seconds = max(0.0, seconds)
        if self.duration is not None:
            seconds = min(seconds, self.duration)
        return seconds

    def live_position(self) -> float:
        """Current playback position in seconds."""
        if self.playing:
            return self.clamp_position(self.offset + (self.clock() - self.started_at))
        return self.clamp_position(self.offset)

    def progress(self) -> float:
        """Fraction of the file played, 0.0 when the duration is unknown."""
        if not self.duration:
            return 0.0
        return self.live_position() / self.duration

    def start_segment(self, offset: float) -> None:
        """Begin a new run segment at ``offset``."""
        self.offset = self.clamp_position(offset)
        self.started_at = self.clock()
        self.playing = True

    def freeze(self) -> float:
        """Stop the clock at the live position and return it."""
        self.offset = self.live_position()
        self.playing = False
        return self.offset

    def seek_target(self, delta: float) -> float:
        """Position ``delta`` seconds away from the live one, clamped."""
        return self.clamp_position(self.live_position() + delta)

    def change_volume(self, delta: float) -> float:
        # Rounded so repeated 0.1 steps land exactly on the bounds
        self.volume = round(max(VOLUME_MIN, min(self.max_volume, self.volume + delta)), 2)
        logger.debug(f"Volume now {self.volume}")
        return self.volume

    def volume_percent(self) -> int:
        return int(round(self.volume * 100))
