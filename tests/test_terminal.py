import io
import os
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))
from drumtakes.terminal import (
    CLEAR_TO_END,
    HIDE_CURSOR,
    SHOW_CURSOR,
    KeyReader,
    StatusRegion,
    decode_key,
)


class TestDecodeKey:
    """Tests for mapping input bytes to key names."""

    @pytest.mark.parametrize("seq, name", [
        (" ", "space"),
        ("\r", "enter"),
        ("\n", "enter"),
        ("\x03", "ctrl+c"),
        ("\x1b", "escape"),
        ("\x1b[A", "up"),
        ("\x1b[B", "down"),
        ("\x1b[C", "right"),
        ("\x1b[D", "left"),
        ("\x1bOD", "left"),
        ("Q", "q"),
        ("\x1b[Z", "unknown"),
    ])
    def test_decode(self, seq, name):
        """Test each supported key sequence."""
        assert decode_key(seq) == name


class TestKeyReader:
    """Tests for reading keys from a descriptor."""

    def setup_method(self):
        self.read_fd, self.write_fd = os.pipe()
        self.reader = KeyReader(self.read_fd)

    def teardown_method(self):
        os.close(self.read_fd)
        os.close(self.write_fd)

    def test_timeout_returns_none(self):
        """Test no input yields None."""
        assert self.reader.read_key(0.01) is None

    def test_arrow_sequence(self):
        """Test an arrow escape sequence is read as one key."""
        os.write(self.write_fd, b"\x1b[C")

        assert self.reader.read_key(0.1) == "right"

    def test_lone_escape(self):
        """Test escape with nothing after it is the escape key."""
        os.write(self.write_fd, b"\x1b")

        assert self.reader.read_key(0.1) == "escape"

    def test_keys_in_order(self):
        """Test consecutive keys are read one at a time."""
        os.write(self.write_fd, b" q")

        assert self.reader.read_key(0.1) == "space"
        assert self.reader.read_key(0.1) == "q"

    def test_discard_drops_pending_keys(self):
        """Test keys typed before a discard are never read."""
        os.write(self.write_fd, b"\x1b[C\x1b[C")

        self.reader.discard()

        assert self.reader.read_key(0.01) is None


class TestStatusRegion:
    """Tests for the in-place status block."""

    def setup_method(self):
        self.stream = io.StringIO()
        self.region = StatusRegion(stream=self.stream, width=40)

    def test_redraw_rewinds_over_previous_block(self):
        """Test a second draw moves back over the first instead of appending."""
        self.region.open()
        self.region.draw(["one", "two"])
        self.region.draw(["three", "four"])

        output = self.stream.getvalue()
        assert output.startswith(HIDE_CURSOR)
        assert output.endswith(f"\r\033[1A{CLEAR_TO_END}three\nfour")

    def test_long_lines_truncated(self):
        """Test lines never exceed the region width."""
        self.region.open()
        self.region.draw(["x" * 100])

        assert self.region.lines == ["x" * 37 + "..."]

    def test_clear(self):
        """Test clearing erases the block and shows the cursor."""
        self.region.open()
        self.region.draw(["one", "two"])
        self.region.clear()

        assert self.stream.getvalue().endswith(f"\r\033[1A{CLEAR_TO_END}{SHOW_CURSOR}")
        assert self.region.active is False
        assert self.region.lines == []

    def test_default_width_follows_terminal(self, monkeypatch):
        """Test a region without a fixed width uses the terminal columns."""
        monkeypatch.setenv("COLUMNS", "50")
        region = StatusRegion(stream=self.stream)
        region.open()
        region.draw(["x" * 100])

        assert region.columns() == 50
        assert region.lines == ["x" * 47 + "..."]

    def test_clear_without_open(self):
        """Test clearing an unused region writes nothing."""
        self.region.clear()

        assert self.stream.getvalue() == ""
