import json
import os
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
import tempfile
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))
from drumtakes import takes


class TestCollectDrumStems:
    """Tests for finding the stems of a take."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.folder = Path(self.temp_dir) / "Funky_Drummer"
        self.folder.mkdir()

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_stems_from_result_json(self):
        """Test stems listed in workflow.result.json are used."""
        (self.folder / takes.RESULT_FILE).write_text(json.dumps({
            "kick": "outputs/kick.wav",
            "snare": "outputs/snare.WAV",
            "other": "outputs/other.wav",
            "meta": 3,
        }))

        stems = takes.collect_drum_stems(self.folder)

        assert stems == [self.folder / "kick.wav", self.folder / "snare.WAV"]

    def test_scan_when_result_missing(self):
        """Test the folder is scanned when there's no result file."""
        for name in ["toms.wav", "combined_drums.wav", "other.wav", "notes.txt", "hats.wav"]:
            (self.folder / name).touch()

        stems = takes.collect_drum_stems(self.folder)

        assert stems == [self.folder / "hats.wav", self.folder / "toms.wav"]

    def test_scan_when_result_corrupt(self):
        """Test a broken result file falls back to scanning."""
        (self.folder / takes.RESULT_FILE).write_text("{not json")
        (self.folder / "kick.wav").touch()

        assert takes.collect_drum_stems(self.folder) == [self.folder / "kick.wav"]


class TestTakeMetadata:
    """Tests for per-take notes and playback stamps."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults_when_missing(self):
        """Test a take without metadata gets empty defaults."""
        metadata = takes.read_take_metadata(self.temp_dir)

        assert metadata.notes == []
        assert metadata.last_played_at is None

    def test_defaults_when_corrupt(self):
        """Test corrupt metadata is ignored."""
        (self.temp_dir / takes.METADATA_FILE).write_text("[[[")

        assert takes.read_take_metadata(self.temp_dir).notes == []

    def test_append_notes_deduplicates(self):
        """Test appended notes are trimmed and not repeated."""
        takes.append_take_notes(self.temp_dir, ["ghost notes", " half-time "])
        metadata = takes.append_take_notes(self.temp_dir, ["half-time", "", "fill at 1:20"])

        assert metadata.notes == ["ghost notes", "half-time", "fill at 1:20"]
        saved = json.loads((self.temp_dir / takes.METADATA_FILE).read_text())
        assert saved["notes"] == metadata.notes

    def test_record_playback(self):
        """Test playback stamps keep existing notes."""
        takes.append_take_notes(self.temp_dir, ["swing"])
        moment = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        metadata = takes.record_take_playback(self.temp_dir, now=moment)

        assert metadata.notes == ["swing"]
        assert metadata.last_played_at == "2026-03-01T12:00:00+00:00"

    def test_parse_note_input(self):
        """Test free text splits on commas, slashes and newlines."""
        assert takes.parse_note_input("ghost notes, swing / fill\n\n linear ") == [
            "ghost notes", "swing", "fill", "linear",
        ]


class TestLoadTakes:
    """Tests for loading the catalog."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_take(self, name, files, mtime):
        folder = self.temp_dir / name
        folder.mkdir()
        for file_name in files:
            (folder / file_name).touch()
        os.utime(folder, (mtime, mtime))
        return folder

    def test_missing_catalog(self):
        """Test a missing catalog is just empty."""
        assert takes.load_takes(self.temp_dir / "nowhere") == []

    def test_newest_first_and_playable_only(self):
        """Test takes are sorted newest first and empty folders skipped."""
        self.make_take("Old_Song", ["kick.wav"], 1000)
        self.make_take("New__Song", ["combined_drums.wav", "kick.wav", "snare.wav"], 2000)
        self.make_take("Empty", [], 3000)

        loaded = takes.load_takes(self.temp_dir, probe=lambda path: 90.0)

        assert [take.id for take in loaded] == ["New__Song", "Old_Song"]
        newest = loaded[0]
        assert newest.title == "New Song"
        assert newest.primary_file == self.temp_dir / "New__Song" / "combined_drums.wav"
        assert newest.drum_files == [self.temp_dir / "New__Song" / "kick.wav",
                                     self.temp_dir / "New__Song" / "snare.wav"]
        assert newest.duration == 90.0

    def test_primary_without_combined(self):
        """Test the first stem plays when there's no blend."""
        self.make_take("Solo", ["kick.wav"], 1000)

        take = takes.load_takes(self.temp_dir)[0]

        assert take.primary_file == self.temp_dir / "Solo" / "kick.wav"
        assert take.stems() == [take.primary_file]
        assert take.duration is None

    def test_choice_label(self):
        """Test the picker label shows duration, stem count and age."""
        take = takes.Take(
            id="Amen",
            title="Amen",
            folder=self.temp_dir,
            updated_at=datetime.now(),
            drum_files=[self.temp_dir / "kick.wav"],
            duration=125.4,
        )

        assert take.choice_label() == "Amen · 02:05 · 1 stem · just now"

    def test_choice_label_shows_last_played(self):
        """Test a take that was listened to before says when."""
        self.make_take("Amen", ["kick.wav"], 1000)
        played = datetime.now(timezone.utc) - timedelta(days=3)
        takes.record_take_playback(self.temp_dir / "Amen", now=played)

        take = takes.load_takes(self.temp_dir)[0]

        assert take.last_played_at == played
        assert take.choice_label().endswith(" · played 3d ago")

    def test_find_take(self):
        """Test looking a take up by folder name."""
        self.make_take("Amen", ["kick.wav"], 1000)
        loaded = takes.load_takes(self.temp_dir)

        assert takes.find_take(loaded, "Amen").id == "Amen"
        assert takes.find_take(loaded, "Nope") is None
