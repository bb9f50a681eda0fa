"""
Playback entry point used by the CLI.

Chooses between the interactive transport and basic playback, shows the
one-time hints about missing prerequisites and turns playback failures
into a single calm line.
"""
import sys
from pathlib import Path
from typing import IO, Callable, Optional, Union

from drumtakes.audio import BasicPlayer, decoder_available, probe_duration
from drumtakes.config import AppConfig
from drumtakes.logging_config import (
    get_logger,
    log_stage,
    AudioPlayerError,
    PlaybackStartError,
)
from drumtakes.transport import TransportController
from drumtakes.ui import Voice, voice as default_voice

logger = get_logger('player')


class PlaybackService:
    """Long-lived playback front door, one per process.

    Holds the flags that make the fallback hints appear at most once no
    matter how many files are played.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        voice: Voice = default_voice,
        debug: bool = False,
        stdin: Optional[IO] = None,
        controller_factory: Callable[..., TransportController] = TransportController,
        basic_player: Optional[BasicPlayer] = None,
    ):
        self.config = config or AppConfig()
        self.voice = voice
        self.debug = debug
        self.stdin = stdin or sys.stdin
        self.controller_factory = controller_factory
        self.basic_player = basic_player or BasicPlayer(self.config.fallback_players)
        self.interactive_hint_shown = False
        self.start_failure_notice_shown = False

    def probe(self, path: Union[str, Path]) -> Optional[float]:
        return probe_duration(path, self.config.probe, warn=self.voice.warn)

    def interactive_unavailable_reason(self) -> Optional[str]:
        """Why the interactive player can't be used, or None if it can."""
        try:
            is_tty = self.stdin.isatty()
        except (AttributeError, ValueError):
            is_tty = False
        if not is_tty:
            return "interactive controls need a real terminal, so this is basic playback."
        if not decoder_available(self.config.decoder):
            return (
                f"install {self.config.decoder} (part of ffmpeg) for pause, seek "
                "and volume controls. using basic playback for now."
            )
        return None

    def play(self, path: Union[str, Path], duration: Optional[float] = None) -> Optional[bool]:
        """Play a file and report whether it ran to the end.

        True when it finished, False when the user stopped it. Failures
        are shown to the user and reported as None.
        """
        path = Path(path)
        if not path.exists():
            self.voice.error("can't find that file to play.")
            return None
        if duration is None:
            duration = self.probe(path)

        log_stage(logger, "PLAY", "Playing file", str(path))
        try:
            completed = self._play(path, duration)
        except AudioPlayerError as e:
            self._report(e)
            return None

        if completed:
            self.voice.success(f"done listening to {path.name}.")
        else:
            self.voice.say(f"stopped {path.name}.")
        return completed

    def _play(self, path: Path, duration: Optional[float]) -> bool:
        reason = self.interactive_unavailable_reason()
        if reason is not None:
            if not self.interactive_hint_shown:
                self.voice.hint(reason)
                self.interactive_hint_shown = True
            return self.basic_player.play(path, duration)

        controller = self.controller_factory(
            path,
            duration,
            decoder=self.config.decoder,
            seek_seconds=self.config.seek_seconds,
            volume_step=self.config.volume_step,
            max_volume=self.config.max_volume,
            refresh_interval=self.config.refresh_interval,
            bar_width=self.config.bar_width,
        )
        try:
            return controller.run()
        except PlaybackStartError as e:
            logger.warning(f"Interactive playback failed to start: {e} ({e.detail})")
            if not self.start_failure_notice_shown:
                self.voice.hint(f"{self.config.decoder} wouldn't start, switching to basic playback.")
                self.start_failure_notice_shown = True
            return self.basic_player.play(path, duration)

    def _report(self, error: AudioPlayerError) -> None:
        logger.debug("Playback failed", exc_info=error)
        if self.debug and error.detail:
            self.voice.warn(f"{error} ({error.detail})")
        else:
            self.voice.warn(str(error))
