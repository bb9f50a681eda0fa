"""
Audio processing module for drumtakes.

Everything here shells out: ffprobe reads durations, ffplay decodes for
the interactive player and a platform player handles basic playback.
"""
import enum
import os
import shutil
import signal
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import IO, Callable, Dict, List, Optional, Sequence, Union

from drumtakes.logging_config import (
    get_logger,
    log_stage,
    AudioPlayerError,
    PlaybackStartError,
)
from drumtakes.ui import format_time, voice

logger = get_logger('audio')

# Seconds a decoder gets to exit after SIGTERM before it is SIGKILLed
STOP_GRACE: float = 1.0

# Arguments each basic player needs to play a file quietly to the end
PLAYER_ARGS: Dict[str, List[str]] = {
    "afplay": [],
    "mpg123": ["-q"],
    "mpg321": ["-q"],
    "mplayer": ["-really-quiet"],
    "play": ["-q"],
    "aplay": ["-q"],
    "cvlc": ["--play-and-exit", "--quiet"],
    "ffplay": ["-nodisp", "-autoexit", "-loglevel", "quiet"],
}

# External command cache
_command_cache: Dict[str, Optional[str]] = {}
# Version probe results, kept for the life of the process
_version_cache: Dict[str, bool] = {}


def find_command(cmd: str) -> Optional[str]:
    """Find an external command in PATH with caching.

    Args:
        cmd: Command name to find

    Returns:
        Path to command if found, None otherwise
    """
    if cmd in _command_cache:
        return _command_cache[cmd]
    result = shutil.which(cmd)
    _command_cache[cmd] = result
    return result


def decoder_available(decoder: str = "ffplay") -> bool:
    """Whether ``decoder -version`` succeeds. Checked once per process."""
    if decoder in _version_cache:
        return _version_cache[decoder]
    try:
        subprocess.run(
            [decoder, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
        )
        available = True
    except (subprocess.SubprocessError, OSError) as e:
        logger.debug(f"Version probe for {decoder} failed: {e}")
        available = False
    _version_cache[decoder] = available
    return available


def probe_duration(
    path: Union[str, Path],
    probe: str = "ffprobe",
    warn: Callable[[str], None] = voice.warn,
) -> Optional[float]:
    """Read the container duration of an audio file.

    Args:
        path: Path to the audio file
        probe: ffprobe-compatible program
        warn: Receives one user-facing line when the duration can't be read

    Returns:
        Duration in seconds, or None if unavailable. Never raises.
    """
    cmd = [
        probe,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    log_stage(logger, "PROBE", "Running", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except FileNotFoundError:
        warn(f"{probe} isn't available, so duration will be hidden. install ffmpeg to unlock it.")
        return None
    except subprocess.CalledProcessError as e:
        log_stage(logger, "PROBE", "failed", e.stderr or str(e))
        warn("couldn't read the audio duration.")
        return None
    except (subprocess.SubprocessError, OSError) as e:
        log_stage(logger, "PROBE", "failed", str(e))
        warn("couldn't read the audio duration.")
        return None

    try:
        duration = float(result.stdout.strip())
    except ValueError:
        log_stage(logger, "PROBE", "invalid duration", result.stdout)
        warn(f"{probe} returned an unexpected duration format.")
        return None
    if duration != duration or duration < 0:
        log_stage(logger, "PROBE", "invalid duration", result.stdout)
        warn(f"{probe} returned an unexpected duration format.")
        return None

    logger.debug(f"Duration of {path}: {duration}s")
    return duration


def decoder_command(decoder: str, path: Union[str, Path], offset: float, volume: float) -> List[str]:
    """Command line that plays ``path`` from ``offset`` at ``volume``, headless."""
    return [
        decoder,
        "-nodisp",
        "-autoexit",
        "-nostats",
        "-loglevel",
        "error",
        "-ss",
        f"{offset:.3f}",
        "-af",
        f"volume={volume:.2f}",
        str(path),
    ]


def _kill_group(process: subprocess.Popen, sig: int) -> None:
    """Signal the process group a player was started in."""
    try:
        os.killpg(os.getpgid(process.pid), sig)
    except (ProcessLookupError, PermissionError) as e:
        # Already gone; wait() will reap it
        logger.debug(f"Signal {sig} to {process.pid} failed: {e}")


class DecodeExit(enum.Enum):
    """How a decode process ended."""

    FINISHED = "finished"   # reached end of stream on its own
    STOPPED = "stopped"     # killed at our request
    FAILED = "failed"       # exited with an error on its own


class DecodeProcess:
    """One running decoder. Stops are marked expected before signalling.

    The decoder's stderr goes to an unnamed temporary file rather than a
    pipe, so a chatty decoder can never block on a full pipe buffer. The
    file is read and closed once the process has exited.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        grace: float = STOP_GRACE,
        log: Optional[IO[bytes]] = None,
    ):
        self.process = process
        self.grace = grace
        self.log = log
        self.error_text = ""
        self.stop_requested = False

    @classmethod
    def spawn(cls, cmd: Sequence[str]) -> "DecodeProcess":
        log_stage(logger, "DECODE", "Spawning", " ".join(cmd))
        log = tempfile.TemporaryFile()
        try:
            process = subprocess.Popen(
                list(cmd),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=log,
                preexec_fn=os.setsid,
            )
        except OSError as e:
            log.close()
            logger.error(f"Failed to start {cmd[0]}: {e}")
            raise PlaybackStartError(f"couldn't start {cmd[0]}.", detail=str(e))
        logger.info(f"Started decoder: {process.pid}")
        return cls(process, log=log)

    def _outcome(self, code: int) -> DecodeExit:
        if self.stop_requested:
            return DecodeExit.STOPPED
        if code == 0:
            return DecodeExit.FINISHED
        return DecodeExit.FAILED

    def _collect_log(self) -> None:
        if self.log is None:
            return
        log, self.log = self.log, None
        try:
            log.seek(0)
            self.error_text = log.read().decode("utf-8", errors="replace").strip()
        except (OSError, ValueError) as e:
            logger.debug(f"Couldn't read decoder output: {e}")
        finally:
            log.close()

    def poll(self) -> Optional[DecodeExit]:
        """Exit outcome if the process has ended, otherwise None."""
        code = self.process.poll()
        if code is None:
            return None
        self._collect_log()
        return self._outcome(code)

    def stop(self) -> DecodeExit:
        """Kill the decoder and block until it has exited."""
        self.stop_requested = True
        if self.process.poll() is None:
            _kill_group(self.process, signal.SIGTERM)
            try:
                self.process.wait(timeout=self.grace)
            except subprocess.TimeoutExpired:
                logger.warning(f"Decoder {self.process.pid} ignored SIGTERM, killing")
                _kill_group(self.process, signal.SIGKILL)
                self.process.wait()
        self._collect_log()
        logger.info(f"Stopped decoder: {self.process.pid}")
        return self._outcome(self.process.returncode)

    def error_output(self) -> str:
        """What the decoder wrote to stderr, once it has exited."""
        return self.error_text


class BasicPlayer:
    """Plays a whole file through the first available platform player.

    No seek, pause or volume. Progress is estimated from the wall clock.
    """

    def __init__(
        self,
        players: Sequence[str] = ("afplay", "mpg123", "mplayer", "play", "aplay", "cvlc"),
        stream: Optional[IO] = None,
        refresh_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.players = list(players)
        self.stream = stream or sys.stdout
        self.refresh_interval = refresh_interval
        self.clock = clock

    def find_player(self) -> List[str]:
        """Command prefix for the first installed player."""
        for name in self.players:
            executable = find_command(name)
            if executable:
                return [executable] + PLAYER_ARGS.get(name, [])
        examples = ", ".join(self.players[:2])
        raise AudioPlayerError(
            f"no compatible audio player found ({examples}, ...).",
            detail=f"searched PATH for: {', '.join(self.players)}",
        )

    def _status(self, label: str, elapsed: float, duration: Optional[float]) -> str:
        if duration is not None:
            elapsed = min(elapsed, duration)
        return f"listening to {label} [{format_time(elapsed)} / {format_time(duration)}] · ctrl+c to stop"

    def _write(self, text: str) -> None:
        self.stream.write(f"\r\033[2K{text}")
        self.stream.flush()

    def play(self, path: Union[str, Path], duration: Optional[float] = None) -> bool:
        """Play to the end. Returns False if interrupted with ctrl+c."""
        cmd = self.find_player() + [str(path)]
        label = Path(path).name
        log_stage(logger, "PLAY", "Basic playback", " ".join(cmd))
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                preexec_fn=os.setsid,
            )
        except OSError as e:
            raise AudioPlayerError(f"audio player error: {e.strerror or e}", detail=str(e))

        started = self.clock()
        self._write(self._status(label, 0.0, duration))
        try:
            while True:
                try:
                    code = process.wait(timeout=self.refresh_interval)
                    break
                except subprocess.TimeoutExpired:
                    self._write(self._status(label, self.clock() - started, duration))
        except KeyboardInterrupt:
            _kill_group(process, signal.SIGKILL)
            process.wait()
            logger.info(f"Basic playback interrupted: {label}")
            return False
        finally:
            self._write("")

        if code != 0:
            raise AudioPlayerError(
                f"audio player error: {Path(cmd[0]).name} exited with code {code}.",
                detail=" ".join(cmd),
            )
        return True
