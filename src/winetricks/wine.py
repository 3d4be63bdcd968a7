"""
Wine installation discovery.

Locates the ``wine`` and ``wineserver`` binaries, reads the Wine version,
and translates Unix paths to Windows paths through ``winepath``.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from winetricks.errors import CommandExecutionError, WineError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def strip_version(version: str) -> str:
    """
    Reduce ``wine --version`` output to a bare version number.

    ``wine-9.0-rc3 (Staging)`` -> ``9.0-rc3`` -> ``9.0``
    """
    tokens = version.replace("wine-", "", 1).split()
    stripped = tokens[0] if tokens else version
    return stripped.split("-rc", 1)[0]


def version_tuple(version: str) -> tuple[int, ...]:
    """Numeric components of a dotted version; non-numeric tails are dropped."""
    parts = []
    for piece in version.split("."):
        match = re.match(r"\d+", piece)
        if not match:
            break
        parts.append(int(match.group(0)))
    return tuple(parts)


def unix_to_z_drive(path: Path | str) -> str:
    """Literal Z: drive mapping used when winepath is unavailable."""
    return "Z:" + str(path).replace("/", "\\")


@dataclass
class Wine:
    """A located Wine installation."""
    wine_bin: Path
    wineserver_bin: Path
    version: str
    version_stripped: str
    runner: Runner = subprocess.run

    @classmethod
    def detect(cls, search_prefix: Path | None = None, runner: Runner = subprocess.run) -> Wine:
        """
        Locate Wine and read its version.

        A custom build shipped next to ``search_prefix`` takes precedence
        over the binaries on PATH.

        Raises:
            WineError: If wine or wineserver cannot be found, or the
                version query prints nothing
            CommandExecutionError: If ``wine --version`` cannot be run
        """
        wine_bin = None
        wineserver_bin = None

        if search_prefix is not None:
            found = cls._find_custom_build(Path(search_prefix))
            if found:
                wine_bin, wineserver_bin = found
                logger.info("Using custom Wine build at %s", wine_bin)

        if wine_bin is None:
            which_wine = shutil.which("wine")
            if not which_wine:
                raise WineError("wine binary not found in PATH")
            which_server = shutil.which("wineserver")
            if not which_server:
                raise WineError("wineserver binary not found in PATH")
            wine_bin, wineserver_bin = Path(which_wine), Path(which_server)

        version = cls._get_version(wine_bin, runner)
        return cls(
            wine_bin=wine_bin,
            wineserver_bin=wineserver_bin,
            version=version,
            version_stripped=strip_version(version),
            runner=runner,
        )

    @staticmethod
    def _find_custom_build(prefix: Path) -> tuple[Path, Path] | None:
        candidates = [
            prefix / "bin" / "wine",
            prefix / "wine" / "bin" / "wine",
            prefix.parent / "wine" / "bin" / "wine",
        ]
        for wine_path in candidates:
            server = wine_path.parent / "wineserver"
            if wine_path.is_file() and server.exists():
                return wine_path, server
        return None

    @staticmethod
    def _get_version(wine_bin: Path, runner: Runner) -> str:
        try:
            result = runner([str(wine_bin), "--version"], capture_output=True, text=True)
        except OSError as e:
            raise CommandExecutionError(f"{wine_bin} --version", str(e)) from e

        version = (result.stdout or "").strip()
        if not version:
            raise WineError("wine --version returned empty")
        return version

    def version_ge(self, version: str) -> bool:
        """
        Compare the stripped version against ``version``.

        The comparison is lexicographic, so ``10.0`` sorts before ``9.0``.
        Use version_tuple() where ordering across major versions matters.
        """
        return self.version_stripped >= version

    def exec(self, args: Sequence[str], env: dict[str, str] | None = None) -> subprocess.CompletedProcess:
        """Run ``wine <args>`` and fail on a non-zero exit."""
        command = [str(self.wine_bin), *args]
        try:
            result = self.runner(command, capture_output=True, text=True, env=env)
        except OSError as e:
            raise CommandExecutionError(" ".join(command), str(e)) from e

        if result.returncode != 0:
            raise WineError(f"wine command failed: {(result.stderr or '').strip()}")
        return result

    def unix_to_wine_path(self, path: Path | str, prefix: Path | str | None = None) -> str:
        """
        Convert a Unix path to the Windows path Wine sees.

        Falls back to the Z: drive mapping if winepath fails.
        """
        env = os.environ.copy()
        if prefix is not None:
            env["WINEPREFIX"] = str(prefix)

        command = [str(self.wine_bin), "winepath", "-w", str(path)]
        try:
            result = self.runner(command, capture_output=True, text=True, env=env)
        except OSError as e:
            raise CommandExecutionError(" ".join(command), str(e)) from e

        converted = (result.stdout or "").strip()
        if result.returncode == 0 and converted:
            return converted
        return unix_to_z_drive(path)

    def wait_server(self, env: dict[str, str] | None = None) -> None:
        """Block until the wineserver for the prefix has exited."""
        try:
            self.runner([str(self.wineserver_bin), "-w"], env=env)
        except OSError as e:
            logger.warning("Failed to wait for wineserver: %s", e)
