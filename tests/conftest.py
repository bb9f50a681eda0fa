import io
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from drumtakes import audio
from drumtakes.audio import DecodeExit
from drumtakes.terminal import StatusRegion


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDecoder:
    """Stands in for DecodeProcess; exits only when told to."""

    def __init__(self, spawner: "FakeSpawner", cmd: List[str]):
        self.spawner = spawner
        self.cmd = cmd
        self.returncode: Optional[int] = None
        self.stop_requested = False

    @property
    def alive(self) -> bool:
        return self.returncode is None

    def exit(self, code: int = 0) -> None:
        if self.alive:
            self.returncode = code
            self.spawner.live -= 1

    def _outcome(self) -> DecodeExit:
        if self.stop_requested:
            return DecodeExit.STOPPED
        return DecodeExit.FINISHED if self.returncode == 0 else DecodeExit.FAILED

    def poll(self) -> Optional[DecodeExit]:
        return None if self.alive else self._outcome()

    def stop(self) -> DecodeExit:
        self.stop_requested = True
        if self.spawner.on_stop is not None:
            self.spawner.on_stop()
        self.exit(-15)
        return self._outcome()

    def error_output(self) -> str:
        return "decoder blew up"


class FakeSpawner:
    """Records spawned decoders and the most that were alive at once."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.on_stop: Optional[Callable[[], None]] = None
        self.decoders: List[FakeDecoder] = []
        self.live = 0
        self.max_live = 0

    def __call__(self, cmd):
        if self.fail_with is not None:
            raise self.fail_with
        decoder = FakeDecoder(self, list(cmd))
        self.decoders.append(decoder)
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        return decoder

    @property
    def current(self) -> FakeDecoder:
        return self.decoders[-1]

    def offsets(self) -> List[float]:
        return [float(d.cmd[d.cmd.index("-ss") + 1]) for d in self.decoders]

    def volumes(self) -> List[str]:
        return [d.cmd[d.cmd.index("-af") + 1] for d in self.decoders]


class ScriptedKeys:
    """Key source fed from a script.

    Strings are keypresses, numbers advance the clock with no key and
    callables run (e.g. to make the decoder finish). An exhausted script
    presses q so a broken test can't spin forever. Keys queued with
    press() are read before the script and dropped by discard().
    """

    def __init__(self, clock: FakeClock, script):
        self.clock = clock
        self.script = list(script)
        self.pending: List[str] = []
        self.discarded: List[str] = []
        self.timeouts: List[float] = []

    def press(self, key: str) -> None:
        self.pending.append(key)

    def discard(self) -> None:
        self.discarded.extend(self.pending)
        self.pending.clear()

    def read_key(self, timeout: float):
        self.timeouts.append(timeout)
        if self.pending:
            return self.pending.pop(0)
        if not self.script:
            return "q"
        step = self.script.pop(0)
        if isinstance(step, str):
            return step
        if callable(step):
            step()
            return None
        self.clock.advance(step)
        return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def region():
    return StatusRegion(stream=io.StringIO(), width=200)


@pytest.fixture(autouse=True)
def clear_audio_caches():
    """Forget cached command lookups and version probes between tests."""
    audio._command_cache.clear()
    audio._version_cache.clear()
    yield
    audio._command_cache.clear()
    audio._version_cache.clear()
