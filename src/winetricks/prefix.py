"""
Wine prefix state: the install log and on-disk layout checks.
"""

from __future__ import annotations

import re
from pathlib import Path

from winetricks.errors import WinetricksIOError

LOG_NAME = "winetricks.log"

# Placeholders used by descriptors for well-known Windows directories
_PATH_TEMPLATES = {
    "W_WINDIR_WIN": "drive_c/windows",
    "W_SYSTEM32_DLLS_WIN": "drive_c/windows/system32",
    "W_SYSTEM32_WIN": "drive_c/windows/system32",
    "W_SYSTEM64_DLLS_WIN": "drive_c/windows/system32",
    "W_FONTSDIR_WIN": "drive_c/windows/Fonts",
    "W_PROGRAMS_WIN": "drive_c/Program Files",
    "W_PROGRAMS_X86_WIN": "drive_c/Program Files (x86)",
}
_TEMPLATE_RE = re.compile(r"\$\{?(W_[A-Z0-9_]+)\}?")


def is_verb_line(line: str) -> bool:
    """True if a trimmed log line names a verb (not a flag, comment or command)."""
    if not line:
        return False
    if line.startswith(("-", "#", "//")):
        return False
    return "=" not in line


class InstallLog:
    """
    The prefix's ``winetricks.log``: one installed verb name per line.

    Lines that are flags, comments or ``key=value`` commands are ignored
    when reading and never written.
    """

    def __init__(self, prefix_path: Path | str):
        self.path = Path(prefix_path) / LOG_NAME

    def _read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise WinetricksIOError(e) from e

    def entries(self) -> list[str]:
        """Installed verb names in log order, without duplicates."""
        names = []
        for line in self._read().splitlines():
            trimmed = line.strip()
            if is_verb_line(trimmed) and trimmed not in names:
                names.append(trimmed)
        return names

    def contains(self, verb_name: str) -> bool:
        return any(
            line.strip() == verb_name and is_verb_line(line.strip())
            for line in self._read().splitlines()
        )

    def append(self, verb_name: str) -> None:
        """Record a verb, creating the log (and prefix dir) if needed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(f"{verb_name}\n")
        except OSError as e:
            raise WinetricksIOError(e) from e

    def remove(self, verb_name: str) -> bool:
        """
        Drop every line equal to ``verb_name`` and all blank lines.

        Returns:
            True if the log existed and was rewritten
        """
        if not self.path.exists():
            return False

        name = verb_name.strip()
        kept = [
            line for line in self._read().splitlines()
            if line.strip() and line.strip() != name
        ]
        content = "\n".join(kept) + "\n" if kept else ""
        try:
            self.path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise WinetricksIOError(e) from e
        return True


class WinePrefix:
    """Read-only checks of a prefix's directory layout."""

    def __init__(self, prefix_path: Path | str):
        self.path = Path(prefix_path).expanduser()

    @property
    def drive_c(self) -> Path:
        return self.path / "drive_c"

    def exists(self) -> bool:
        return self.drive_c.is_dir()

    def detect_arch(self) -> str:
        """win64 prefixes carry a syswow64 directory."""
        syswow64 = self.drive_c / "windows" / "syswow64"
        return "win64" if syswow64.exists() else "win32"

    def resolve_windows_path(self, windows_path: str) -> list[Path]:
        """
        Candidate Unix locations for a Windows path inside the prefix.

        Understands ``${W_*}`` directory placeholders and ``C:\\`` paths.
        On win64 prefixes 32-bit system DLLs may live in syswow64, so both
        locations are returned for system32 paths.
        """
        match = _TEMPLATE_RE.match(windows_path)
        if match and match.group(1) in _PATH_TEMPLATES:
            base = _PATH_TEMPLATES[match.group(1)]
            rest = windows_path[match.end():]
        elif re.match(r"^[A-Za-z]:[\\/]", windows_path):
            if windows_path[0].lower() != "c":
                return []
            base = "drive_c"
            rest = windows_path[2:]
        else:
            base = "drive_c"
            rest = windows_path

        rel = rest.replace("\\", "/").strip("/")
        candidates = [self.path / base / rel]

        if base.endswith("system32") and self.detect_arch() == "win64":
            candidates.insert(0, self.path / "drive_c" / "windows" / "syswow64" / rel)
        if base.endswith("Fonts"):
            candidates.append(self.path / "drive_c" / "windows" / "fonts" / rel)
        return candidates

    def windows_path_exists(self, windows_path: str) -> bool:
        return any(p.exists() for p in self.resolve_windows_path(windows_path))
