"""
Command-line entry point for drumtakes.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from drumtakes import __version__, __description__
from drumtakes.config import ConfigManager
from drumtakes.logging_config import get_logger, setup_logging, CatalogError, DrumTakesError
from drumtakes.player import PlaybackService
from drumtakes.takes import (
    Take,
    append_take_notes,
    find_take,
    load_takes,
    parse_note_input,
    record_take_playback,
)
from drumtakes.ui import configure, voice

logger = get_logger('main')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="drumtakes", description=__description__)
    parser.add_argument("--version", action="version", version=f"drumtakes {__version__}")
    parser.add_argument("--debug", action="store_true", help="show diagnostic detail")
    parser.add_argument("--config", type=Path, help="path to drumtakes.toml")
    parser.add_argument("--log-file", type=Path, help="also write a debug log here")

    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="listen to an audio file")
    play.add_argument("file", type=Path)

    sub.add_parser("takes", help="browse processed takes")

    note = sub.add_parser("note", help="add notes to a take")
    note.add_argument("take_id")
    note.add_argument("text", nargs="+", help="notes separated by commas or slashes")
    return parser


def _pick(prompt: str) -> str:
    try:
        return input(prompt).strip().lower()
    except (EOFError, KeyboardInterrupt):
        print()
        return ""


def _play_take_file(service: PlaybackService, take: Take, path: Path) -> None:
    duration = take.duration if path == take.primary_file else None
    if service.play(path, duration) is None:
        return
    try:
        record_take_playback(take.folder)
    except CatalogError as e:
        logger.debug(f"Recording playback failed: {e}", exc_info=True)
        voice.warn(f"couldn't remember that you played {take.title}.")


def show_location(take: Take) -> None:
    voice.say(f"folder: {take.folder}")
    if take.combined_path is not None:
        voice.hint(f"blended take: {take.combined_path.name}")
    if take.drum_files:
        voice.hint(f"stems: {', '.join(path.name for path in take.drum_files)}")


def _choose_stem(service: PlaybackService, take: Take) -> None:
    stems = take.stems()
    if not stems:
        voice.warn("no stems available for this take.")
        return
    for number, path in enumerate(stems, 1):
        label = "blended take" if path == take.combined_path else path.name
        voice.say(f"  {number}. {label}")
    choice = _pick("choose a stem (enter to go back): ")
    if choice.isdigit() and 1 <= int(choice) <= len(stems):
        _play_take_file(service, take, stems[int(choice) - 1])


def browse_takes(service: PlaybackService, catalog: Path) -> int:
    """Numbered take picker.

    N plays a take, sN picks one of its stems and lN shows where its
    files live.
    """
    takes = load_takes(catalog, probe=service.probe)
    if not takes:
        voice.say("no processed takes yet. find one first.")
        return 0

    while True:
        voice.say(f"browse your catalog ({len(takes)} takes)")
        for number, take in enumerate(takes, 1):
            voice.say(f"  {number}. {take.choice_label()}")
            if take.notes:
                voice.hint(f"     notes: {', '.join(take.notes)}")
        choice = _pick(
            "play which take? (number, s<number> for stems, l<number> for location, enter to leave): "
        )
        if choice in ("", "q"):
            return 0

        action = choice[0] if choice[0] in "sl" else ""
        digits = choice[len(action):]
        if not digits.isdigit() or not 1 <= int(digits) <= len(takes):
            voice.warn(f"there's no take {choice}.")
            continue

        take = takes[int(digits) - 1]
        if action == "s":
            _choose_stem(service, take)
        elif action == "l":
            show_location(take)
        elif take.primary_file is not None:
            _play_take_file(service, take, take.primary_file)


def add_notes(catalog: Path, take_id: str, text: str) -> int:
    take = find_take(load_takes(catalog), take_id)
    if take is None:
        voice.warn(f"there's no take called {take_id}.")
        return 1
    notes = parse_note_input(text)
    if not notes:
        voice.warn("nothing to note.")
        return 1
    metadata = append_take_notes(take.folder, notes)
    voice.success(f"noted: {', '.join(metadata.notes)}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.debug else "WARNING", args.log_file)

    try:
        manager = ConfigManager(args.config)
        config = manager.validate_config()
        configure(config.width, config.colors)
        if manager.created:
            voice.hint(f"config file created at: {manager.config_path}")

        service = PlaybackService(config, debug=args.debug)
        if args.command == "play":
            if not args.file.exists():
                voice.error("can't find that file to play.")
                return 1
            return 0 if service.play(args.file) is not None else 1
        if args.command == "takes":
            return browse_takes(service, config.catalog_path())
        if args.command == "note":
            return add_notes(config.catalog_path(), args.take_id, " ".join(args.text))
    except DrumTakesError as e:
        logger.debug("Command failed", exc_info=True)
        voice.warn(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
