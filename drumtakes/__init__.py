"""
drumtakes - listen back to isolated drum takes from the terminal.
"""

__version__ = "2.0.0"
__author__ = "drumtakes contributors"
__description__ = "Browse processed drum takes and listen to them with pause, seek and volume controls."

from drumtakes.audio import BasicPlayer, DecodeExit, DecodeProcess, probe_duration
from drumtakes.config import AppConfig, ConfigManager, load_config
from drumtakes.player import PlaybackService
from drumtakes.state import PlaybackState
from drumtakes.transport import TransportController

__all__ = [
    # Audio
    'BasicPlayer',
    'DecodeExit',
    'DecodeProcess',
    'probe_duration',

    # Playback
    'PlaybackService',
    'PlaybackState',
    'TransportController',

    # Config
    'AppConfig',
    'ConfigManager',
    'load_config',
]
