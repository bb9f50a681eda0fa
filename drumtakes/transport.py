"""
Interactive transport: play, pause, seek and volume over an external decoder.

The decoder has no control channel, so every audible change restarts it
at the right offset and volume. The old process is always stopped and
reaped before the next one is spawned.
"""
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Union

from drumtakes.audio import DecodeExit, DecodeProcess, decoder_command
from drumtakes.logging_config import get_logger, log_stage, AudioPlayerError
from drumtakes.state import PlaybackState
from drumtakes.terminal import StatusRegion, raw_input_mode
from drumtakes.ui import fit_line, format_time

logger = get_logger('transport')

CONTROLS_HINT = "controls: space play/pause · ← -5s · → +5s · ↑ louder · ↓ softer · q exit"
SHORT_CONTROLS_HINT = "space pause · ← → seek · ↑ ↓ vol · q exit"

# Narrowest bar kept before the label starts losing characters
MIN_BAR_WIDTH = 5


class KeySource(Protocol):
    def read_key(self, timeout: float) -> Optional[str]: ...

    def discard(self) -> None: ...


class TransportController:
    """Runs one interactive listening session for a single file."""

    KEYMAP: Dict[str, str] = {
        "space": "toggle_pause",
        "left": "seek_back",
        "right": "seek_forward",
        "up": "volume_up",
        "down": "volume_down",
        "q": "quit",
        "escape": "quit",
        "enter": "quit",
        "ctrl+c": "quit",
    }

    def __init__(
        self,
        path: Union[str, Path],
        duration: Optional[float],
        decoder: str = "ffplay",
        spawner: Callable[[Sequence[str]], DecodeProcess] = DecodeProcess.spawn,
        seek_seconds: float = 5.0,
        volume_step: float = 0.1,
        max_volume: float = 4.0,
        refresh_interval: float = 0.125,
        bar_width: int = 24,
        clock: Callable[[], float] = time.monotonic,
        region: Optional[StatusRegion] = None,
    ):
        self.path = Path(path)
        self.label = self.path.name
        self.decoder = decoder
        self.spawner = spawner
        self.seek_seconds = seek_seconds
        self.volume_step = volume_step
        self.refresh_interval = refresh_interval
        self.bar_width = bar_width
        self.clock = clock
        self.region = region or StatusRegion()
        self.state = PlaybackState(duration=duration, max_volume=max_volume, clock=clock)
        self.process: Optional[DecodeProcess] = None
        self.keys: Optional[KeySource] = None
        self.busy = False

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def run(self, keys: Optional[KeySource] = None) -> bool:
        """Play until the file ends (True) or the user stops it (False).

        Without ``keys`` the controlling terminal is switched to raw input
        for the length of the session.
        """
        if keys is not None:
            return self._session(keys)
        with raw_input_mode() as reader:
            return self._session(reader)

    def _session(self, keys: KeySource) -> bool:
        log_stage(logger, "PLAY", "Interactive session", str(self.path))
        self.keys = keys
        self.region.open()
        try:
            self._start_decoder(0.0)
            self.render()
            return self._loop(keys)
        finally:
            self._teardown()

    def _loop(self, keys: KeySource) -> bool:
        next_render = self.clock() + self.refresh_interval
        while True:
            finished = self._check_decoder()
            if finished is not None:
                return finished

            try:
                key = keys.read_key(max(0.0, next_render - self.clock()))
            except KeyboardInterrupt:
                key = "ctrl+c"

            if key is not None:
                result = self.handle_key(key)
                if result is not None:
                    return result

            if self.clock() >= next_render:
                self.render()
                next_render = self.clock() + self.refresh_interval

    def _check_decoder(self) -> Optional[bool]:
        """True once the decoder has exited on its own."""
        if self.process is None:
            return None
        outcome = self.process.poll()
        if outcome is None:
            return None

        process, self.process = self.process, None
        self.state.freeze()
        if outcome is DecodeExit.FAILED:
            detail = process.error_output()
            logger.error(f"Decoder exited unexpectedly: {detail}")
            raise AudioPlayerError("playback stopped unexpectedly.", detail=detail or None)
        logger.info(f"Reached end of {self.label}")
        return True

    def _teardown(self) -> None:
        self._stop_decoder()
        self.region.clear()

    # ------------------------------------------------------------------
    # Decoder lifecycle
    # ------------------------------------------------------------------
    def _stop_decoder(self) -> None:
        if self.process is None:
            return
        process, self.process = self.process, None
        outcome = process.stop()
        logger.debug(f"Decoder stop acknowledged ({outcome.value})")

    def _start_decoder(self, offset: float) -> None:
        offset = self.state.clamp_position(offset)
        self._stop_decoder()
        cmd = decoder_command(self.decoder, self.path, offset, self.state.volume)
        self.process = self.spawner(cmd)
        self.state.start_segment(offset)

    # ------------------------------------------------------------------
    # Transport actions
    # ------------------------------------------------------------------
    def handle_key(self, key: str) -> Optional[bool]:
        """Apply one keypress. Returns the session result when it ends it."""
        if self.busy:
            logger.debug(f"Ignoring {key!r} while busy")
            return None
        action = self.KEYMAP.get(key)
        if action is None:
            return None

        self.busy = True
        try:
            result = getattr(self, action)()
        finally:
            # Keys typed while the decoder was being restarted are dropped
            if self.keys is not None:
                self.keys.discard()
            self.busy = False
        if result is None:
            self.render()
        return result

    def toggle_pause(self) -> None:
        if self.state.playing:
            self.state.freeze()
            self._stop_decoder()
            logger.debug(f"Paused at {self.state.offset:.2f}s")
        else:
            self._start_decoder(self.state.offset)
            logger.debug(f"Resumed at {self.state.offset:.2f}s")

    def seek(self, delta: float) -> None:
        target = self.state.seek_target(delta)
        if self.state.playing:
            self._start_decoder(target)
        else:
            self.state.offset = target
        logger.debug(f"Seeked to {target:.2f}s")

    def seek_back(self) -> None:
        self.seek(-self.seek_seconds)

    def seek_forward(self) -> None:
        self.seek(self.seek_seconds)

    def change_volume(self, delta: float) -> None:
        previous = self.state.volume
        if self.state.change_volume(delta) == previous:
            return
        if self.state.playing:
            self._start_decoder(self.state.live_position())

    def volume_up(self) -> None:
        self.change_volume(self.volume_step)

    def volume_down(self) -> None:
        self.change_volume(-self.volume_step)

    def quit(self) -> bool:
        self.state.freeze()
        self._stop_decoder()
        return False

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def progress_bar(self, width: Optional[int] = None) -> str:
        width = self.bar_width if width is None else width
        filled = int(self.state.progress() * width)
        filled = max(0, min(width, filled))
        return "=" * filled + " " * (width - filled)

    def status_lines(self) -> List[str]:
        """The status and controls lines, fitted to the terminal width.

        The bar shrinks first, then the file name. Elapsed time, mode and
        volume are always kept whole.
        """
        # Stay off the last column so the terminal never autowraps
        room = self.region.columns() - 1
        elapsed = format_time(self.state.live_position())
        total = format_time(self.state.duration)
        mode = "playing" if self.state.playing else "paused"
        head = "listening to "
        tail = f"] {elapsed} / {total} · {mode} · vol {self.state.volume_percent()}%"

        spare = room - len(head) - len(" [") - len(tail)
        bar_width = min(self.bar_width, max(MIN_BAR_WIDTH, spare - len(self.label)))
        label = self.label
        if len(label) > spare - bar_width:
            label = fit_line(label, max(4, spare - bar_width))

        status = f"{head}{label} [{self.progress_bar(bar_width)}{tail}"
        controls = CONTROLS_HINT if len(CONTROLS_HINT) <= room else SHORT_CONTROLS_HINT
        return [status, controls]

    def render(self) -> None:
        self.region.draw(self.status_lines())
