"""
Error types raised by the verb pipeline.

Every failure surfaced by the library derives from WinetricksError, so
front-ends can catch one class and print the message.
"""

from __future__ import annotations


class WinetricksError(Exception):
    """Base class for all winetricks errors."""
    pass


class WinetricksIOError(WinetricksError):
    """Filesystem or process-spawn failure."""

    def __init__(self, error: OSError | str):
        self.error = error
        super().__init__(f"IO error: {error}")


class ConfigError(WinetricksError):
    """Missing directories or invalid configuration values."""

    def __init__(self, message: str):
        super().__init__(f"Configuration error: {message}")


class WineError(WinetricksError):
    """Wine is missing or an internal Wine command failed."""

    def __init__(self, message: str):
        super().__init__(f"Wine error: {message}")


class DownloadError(WinetricksError):
    """HTTP failure while fetching an artifact."""

    def __init__(self, message: str):
        super().__init__(f"Download error: {message}")


class ChecksumMismatch(WinetricksError):
    """Downloaded artifact failed SHA-256 verification."""

    def __init__(self, expected: str, got: str):
        self.expected = expected
        self.got = got
        super().__init__(f"Checksum mismatch: expected {expected}, got {got}")


class VerbNotFound(WinetricksError):
    """No descriptor and no fallback script for the requested verb."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Verb not found: {name}")


class VerbAlreadyInstalled(WinetricksError):
    """Reserved: install prefers skip-on-log unless forced."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Verb already installed: {name}")


class VerbConflict(WinetricksError):
    """A conflicting verb is already installed in the prefix."""

    def __init__(self, verb: str, conflicting: str):
        self.verb = verb
        self.conflicting = conflicting
        super().__init__(f"Verb conflict: {verb} conflicts with {conflicting}")


class CommandExecutionError(WinetricksError):
    """A subprocess could not be spawned or waited on."""

    def __init__(self, command: str, error: str):
        self.command = command
        self.error = error
        super().__init__(f"Command execution failed: {command} - {error}")


class VerbError(WinetricksError):
    """Generic verb-stage failure, including installer exit codes."""

    def __init__(self, message: str):
        super().__init__(f"Verb error: {message}")
