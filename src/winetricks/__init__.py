"""
winetricks - install runtime components into Wine prefixes.

Example usage:
    from winetricks import Config, Executor

    config = Config.default(unattended=True)
    config.select_prefix("mygame")

    executor = Executor(config)
    executor.install_verb("vcrun2019")
    executor.install_verb("corefonts")

    print(executor.list_installed())
    executor.uninstall_verb("corefonts")
"""

__version__ = "0.1.0"

from winetricks.config import Config, detect_display_server
from winetricks.download import DownloadManager
from winetricks.errors import (
    ChecksumMismatch,
    CommandExecutionError,
    ConfigError,
    DownloadError,
    VerbAlreadyInstalled,
    VerbConflict,
    VerbError,
    VerbNotFound,
    WineError,
    WinetricksError,
    WinetricksIOError,
)
from winetricks.executor import Executor
from winetricks.installer import InstallerType, detect_installer_type
from winetricks.verb import MediaType, VerbCategory, VerbFile, VerbMetadata, VerbRegistry
from winetricks.wine import Wine

__all__ = [
    "Config",
    "detect_display_server",
    "DownloadManager",
    "Executor",
    "InstallerType",
    "detect_installer_type",
    "MediaType",
    "VerbCategory",
    "VerbFile",
    "VerbMetadata",
    "VerbRegistry",
    "Wine",
    "WinetricksError",
    "WinetricksIOError",
    "ConfigError",
    "WineError",
    "DownloadError",
    "ChecksumMismatch",
    "VerbNotFound",
    "VerbAlreadyInstalled",
    "VerbConflict",
    "CommandExecutionError",
    "VerbError",
]
