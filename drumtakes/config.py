"""
Configuration management for drumtakes.
"""
import os
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from drumtakes.logging_config import get_logger, ConfigurationError

logger = get_logger('config')


DEFAULT_CONFIG: str = """# drumtakes configuration

[player]
# Decoder used for interactive playback (needs seek and volume flags)
decoder = "ffplay"
# Tool used to read the duration of a file
probe = "ffprobe"
seek_seconds = 5
volume_step = 0.1
max_volume = 4.0
refresh_interval = 0.125
bar_width = 24
# Players tried in order when interactive playback is unavailable
fallback_players = ["afplay", "mpg123", "mplayer", "play", "aplay", "cvlc"]

[catalog]
# Folder holding one sub-folder per processed take
directory = "~/drumtakes/downloads/processed_stems"

[ui]
width = 72
colors = true
"""

# TOML section each AppConfig field lives in
_SECTIONS: Dict[str, str] = {
    "decoder": "player",
    "probe": "player",
    "seek_seconds": "player",
    "volume_step": "player",
    "max_volume": "player",
    "refresh_interval": "player",
    "bar_width": "player",
    "fallback_players": "player",
    "catalog_directory": "catalog",
    "width": "ui",
    "colors": "ui",
}


@dataclass
class AppConfig:
    """Application configuration settings."""

    # Player settings
    decoder: str = "ffplay"
    probe: str = "ffprobe"
    seek_seconds: float = 5.0
    volume_step: float = 0.1
    max_volume: float = 4.0
    refresh_interval: float = 0.125
    bar_width: int = 24
    fallback_players: List[str] = field(
        default_factory=lambda: ["afplay", "mpg123", "mplayer", "play", "aplay", "cvlc"]
    )

    # Catalog
    catalog_directory: str = "~/drumtakes/downloads/processed_stems"

    # UI settings
    width: int = 72
    colors: bool = True

    def validate(self) -> List[str]:
        """Return a list of human readable problems, empty when valid."""
        issues = []

        if not (1 <= self.seek_seconds <= 30):
            issues.append(f"seek_seconds must be 1-30, got {self.seek_seconds}")

        if not (0.01 <= self.volume_step <= 1.0):
            issues.append(f"volume_step must be 0.01-1.0, got {self.volume_step}")

        if not (0.1 <= self.max_volume <= 4.0):
            issues.append(f"max_volume must be 0.1-4.0, got {self.max_volume}")

        if not (0.02 <= self.refresh_interval <= 1.0):
            issues.append(f"refresh_interval must be 0.02-1.0, got {self.refresh_interval}")

        if not (5 <= self.bar_width <= 80):
            issues.append(f"bar_width must be 5-80, got {self.bar_width}")

        if not self.decoder or not self.probe:
            issues.append("decoder and probe must name a program")

        return issues

    def catalog_path(self) -> Path:
        """Catalog folder with ``~`` expanded."""
        return Path(self.catalog_directory).expanduser()


def _get_config_dir() -> Path:
    """Get the configuration directory following XDG spec.

    Returns:
        Path to the config directory (~/.config/drumtakes by default)
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "drumtakes"
    return Path.home() / ".config" / "drumtakes"


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib

    with open(path, "rb") as f:
        return tomllib.load(f)


class ConfigManager:
    """Loads the TOML configuration file and exposes an AppConfig."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or _get_config_dir() / "drumtakes.toml"
        self.config: AppConfig = AppConfig()
        self.created = False
        self._load_config()
        self._apply_environment()

    def _load_config(self) -> None:
        """Load configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._create_default_config()
            return

        try:
            data = _read_toml(self.config_path)
        except (OSError, ValueError) as e:
            # tomllib.TOMLDecodeError subclasses ValueError
            logger.warning(f"Could not load config file {self.config_path}: {e}")
            logger.info("Using default configuration")
            return

        self._apply_config_data(data)
        logger.info(f"Loaded configuration from {self.config_path}")

    def _create_default_config(self) -> None:
        """Write the commented default config file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as f:
                f.write(DEFAULT_CONFIG)
            self.created = True
            logger.info(f"Created default config at {self.config_path}")
        except OSError as e:
            logger.warning(f"Failed to create default config: {e}")

    def _apply_config_data(self, data: Dict[str, Any]) -> None:
        """Merge parsed TOML sections over the defaults."""
        defaults = asdict(self.config)
        for key, section in _SECTIONS.items():
            table = data.get(section)
            if not isinstance(table, dict):
                continue
            toml_key = "directory" if key == "catalog_directory" else key
            if toml_key not in table:
                continue
            value = table[toml_key]
            expected = type(defaults[key])
            if expected is float and isinstance(value, int) and not isinstance(value, bool):
                value = float(value)
            if not isinstance(value, expected):
                logger.warning(f"Invalid config value for {section}.{toml_key}: {value!r}")
                continue
            setattr(self.config, key, value)

        for section, table in data.items():
            if not isinstance(table, dict):
                continue
            for toml_key in table:
                key = "catalog_directory" if (section, toml_key) == ("catalog", "directory") else toml_key
                if _SECTIONS.get(key) != section:
                    logger.warning(f"Unknown config key: {section}.{toml_key}")

    def _apply_environment(self) -> None:
        catalog = os.environ.get("DRUMTAKES_CATALOG")
        if catalog:
            self.config.catalog_directory = catalog
            logger.debug(f"Catalog directory overridden from environment: {catalog}")

    def validate_config(self) -> AppConfig:
        """Return the config, raising ConfigurationError when it is invalid."""
        issues = self.config.validate()
        if issues:
            logger.warning(f"Configuration validation issues: {issues}")
            raise ConfigurationError(f"invalid configuration in {self.config_path}: {'; '.join(issues)}")
        return self.config


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration."""
    return ConfigManager(config_path).validate_config()
