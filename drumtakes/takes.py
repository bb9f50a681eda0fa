"""
Catalog of processed takes.

Each take is a folder under the catalog directory holding the drum stems
returned by the separation service, optionally a blended
``combined_drums.wav`` and a small ``bata.meta.json`` with notes.
"""
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from drumtakes.logging_config import get_logger, log_stage, CatalogError
from drumtakes.ui import format_relative_time, format_time, tidy_title

logger = get_logger('takes')

RESULT_FILE = "workflow.result.json"
COMBINED_FILE = "combined_drums.wav"
METADATA_FILE = "bata.meta.json"
EXCLUDED_STEMS = frozenset(["other.wav", COMBINED_FILE])


@dataclass
class TakeMetadata:
    """Notes and playback stamp stored beside a take."""
    notes: List[str] = field(default_factory=list)
    last_played_at: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {"notes": self.notes, "lastPlayedAt": self.last_played_at}


@dataclass
class Take:
    """One processed song in the catalog."""
    id: str
    title: str
    folder: Path
    updated_at: datetime
    drum_files: List[Path] = field(default_factory=list)
    combined_path: Optional[Path] = None
    duration: Optional[float] = None
    notes: List[str] = field(default_factory=list)
    last_played_at: Optional[datetime] = None

    @property
    def primary_file(self) -> Optional[Path]:
        if self.combined_path is not None:
            return self.combined_path
        return self.drum_files[0] if self.drum_files else None

    def stems(self) -> List[Path]:
        """Playable files, blended take first."""
        files = [self.combined_path] if self.combined_path else []
        return files + self.drum_files

    def choice_label(self) -> str:
        count = len(self.drum_files)
        stems = "1 stem" if count == 1 else f"{count} stems"
        age = format_relative_time(self.updated_at)
        label = f"{self.title} · {format_time(self.duration)} · {stems} · {age}"
        if self.last_played_at is not None:
            label += f" · played {format_relative_time(self.last_played_at)}"
        return label


def _stems_from_result(folder: Path) -> List[Path]:
    result_path = folder / RESULT_FILE
    if not result_path.exists():
        log_stage(logger, "CATALOG", f"{RESULT_FILE} missing, scanning folder", str(folder))
        return []
    try:
        data = json.loads(result_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log_stage(logger, "CATALOG", f"failed parsing {RESULT_FILE}", str(e))
        return []
    if not isinstance(data, dict):
        return []
    stems = [
        folder / Path(value).name
        for value in data.values()
        if isinstance(value, str) and value.lower().endswith(".wav")
    ]
    logger.debug(f"WAV files found via JSON: {stems}")
    return stems


def collect_drum_stems(folder: Path) -> List[Path]:
    """Drum stem files of a take folder.

    Stem names come from the service's result file when it lists any,
    otherwise from the ``.wav`` files in the folder.
    """
    folder = Path(folder)
    stems = _stems_from_result(folder)
    if not stems:
        try:
            stems = sorted(
                path for path in folder.iterdir()
                if path.suffix.lower() == ".wav" and path.name != COMBINED_FILE
            )
        except OSError as e:
            log_stage(logger, "CATALOG", "error reading results directory", str(e))
            stems = []
    return [path for path in stems if path.name.lower() not in EXCLUDED_STEMS]


def read_take_metadata(folder: Path) -> TakeMetadata:
    """Metadata of a take; defaults when the file is missing or corrupt."""
    path = Path(folder) / METADATA_FILE
    if not path.exists():
        return TakeMetadata()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable {path}: {e}")
        return TakeMetadata()
    if not isinstance(raw, dict):
        return TakeMetadata()
    last_played = raw.get("lastPlayedAt")
    return TakeMetadata(
        notes=normalize_notes(raw.get("notes")),
        last_played_at=last_played if isinstance(last_played, str) else None,
    )


def write_take_metadata(folder: Path, metadata: TakeMetadata) -> None:
    path = Path(folder) / METADATA_FILE
    try:
        path.write_text(json.dumps(metadata.to_json(), indent=2), encoding="utf-8")
    except OSError as e:
        raise CatalogError(f"couldn't save notes for {Path(folder).name}.") from e


def normalize_notes(notes: Any) -> List[str]:
    if not isinstance(notes, list):
        return []
    return [note.strip() for note in notes if isinstance(note, str) and note.strip()]


def parse_note_input(text: str = "") -> List[str]:
    """Split free text into notes on commas, slashes and newlines."""
    return [part.strip() for part in re.split(r"[,/]|\r?\n", str(text)) if part.strip()]


def append_take_notes(folder: Path, notes: List[str]) -> TakeMetadata:
    """Add notes to a take, keeping existing ones and dropping repeats."""
    metadata = read_take_metadata(folder)
    added = normalize_notes(notes)
    if not added:
        return metadata
    metadata.notes = list(dict.fromkeys(metadata.notes + added))
    write_take_metadata(folder, metadata)
    return metadata


def record_take_playback(folder: Path, now: Optional[datetime] = None) -> TakeMetadata:
    metadata = read_take_metadata(folder)
    metadata.last_played_at = (now or datetime.now(timezone.utc)).isoformat()
    write_take_metadata(folder, metadata)
    return metadata


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def load_take(folder: Path, probe: Optional[Callable[[Path], Optional[float]]] = None) -> Take:
    """Build a Take from its folder, probing the primary file's duration."""
    folder = Path(folder)
    combined = folder / COMBINED_FILE
    metadata = read_take_metadata(folder)
    take = Take(
        id=folder.name,
        title=tidy_title(folder.name.replace("_", " ")),
        folder=folder,
        updated_at=datetime.fromtimestamp(folder.stat().st_mtime),
        drum_files=collect_drum_stems(folder),
        combined_path=combined if combined.exists() else None,
        notes=metadata.notes,
        last_played_at=_parse_timestamp(metadata.last_played_at),
    )
    if probe is not None and take.primary_file is not None:
        take.duration = probe(take.primary_file)
    return take


def load_takes(directory: Path, probe: Optional[Callable[[Path], Optional[float]]] = None) -> List[Take]:
    """All playable takes in the catalog, newest first."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.info(f"Catalog directory {directory} does not exist")
        return []
    try:
        folders = [entry for entry in directory.iterdir() if entry.is_dir()]
    except OSError as e:
        raise CatalogError(f"couldn't read the catalog at {directory}.") from e

    takes = [load_take(folder, probe) for folder in folders]
    takes = [take for take in takes if take.primary_file is not None]
    takes.sort(key=lambda take: take.updated_at, reverse=True)
    logger.debug(f"Loaded {len(takes)} takes from {directory}")
    return takes


def find_take(takes: List[Take], take_id: str) -> Optional[Take]:
    for take in takes:
        if take.id == take_id:
            return take
    return None
