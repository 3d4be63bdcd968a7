"""
Installer family detection and silent-switch selection.

Windows installers each take their own flags for "no UI". The family is
guessed from the artifact filename and the verb name, and can be refined
by looking for vendor markers near the start of the file.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

SCAN_BYTES = 32 * 1024

# DotNet filenames carrying one of these version tokens take the sfx switches
_DOTNET_SFX_TOKENS = ("48", "472", "46", "462")


class InstallerType(str, Enum):
    """Installer family."""
    NSIS = "nsis"
    INNO_SETUP = "innosetup"
    INSTALLSHIELD = "installshield"
    MSI_BOOTSTRAPPER = "msi-bootstrapper"
    DOTNET = "dotnet"
    VCREDIST = "vcredist"
    GENERIC = "generic"


SILENT_SWITCHES = {
    InstallerType.NSIS: ["/S"],
    InstallerType.INNO_SETUP: ["/VERYSILENT", "/NORESTART", "/SP-"],
    InstallerType.INSTALLSHIELD: ["/s"],
    InstallerType.MSI_BOOTSTRAPPER: ["/quiet", "/norestart"],
    InstallerType.DOTNET: ["/q", "/norestart"],
    InstallerType.VCREDIST: ["/q"],
    InstallerType.GENERIC: ["/q"],
}


def detect_installer_type(filename: str, verb_name: str) -> InstallerType:
    """Classify an installer by name; the first matching rule wins."""
    if (
        "dotnet" in verb_name
        or "dotnet" in filename
        or "ndp" in filename
        or filename.startswith("NDP")
    ):
        return InstallerType.DOTNET

    if (
        "vcredist" in filename
        or "vc_redist" in filename
        or verb_name.startswith("vcrun20")
        or verb_name.startswith("ucrtbase")
    ):
        return InstallerType.VCREDIST

    lower = filename.lower()

    if "nsis" in lower or "nullsoft" in lower:
        return InstallerType.NSIS
    if lower.startswith("7z") and lower.endswith(".exe"):
        return InstallerType.NSIS

    if "innosetup" in lower or "inno" in lower:
        return InstallerType.INNO_SETUP
    if lower == "setup.exe" or lower.endswith("-setup.exe") or lower.endswith("_setup.exe"):
        return InstallerType.INNO_SETUP

    if "installshield" in lower:
        return InstallerType.INSTALLSHIELD

    return InstallerType.GENERIC


def detect_from_file(file_path: Path | str) -> InstallerType | None:
    """Look for installer vendor strings in the first 32 KiB of a file."""
    try:
        with open(file_path, "rb") as f:
            head = f.read(SCAN_BYTES)
    except OSError:
        return None
    if not head:
        return None

    content = head.decode("utf-8", errors="replace").lower()
    if "nullsoft" in content or "nsis" in content:
        return InstallerType.NSIS
    if "inno setup" in content or "innosetup" in content:
        return InstallerType.INNO_SETUP
    if "installshield" in content:
        return InstallerType.INSTALLSHIELD
    return None


def get_silent_switches(installer_type: InstallerType, unattended: bool) -> list[str]:
    if not unattended:
        return []
    return list(SILENT_SWITCHES[installer_type])


def get_msi_silent_switch(unattended: bool) -> str | None:
    return "/qn" if unattended else None


IE_SWITCHES = ["/quiet", "/forcerestart"]


def is_ie_installer(filename: str) -> bool:
    return "IE" in filename or "ie" in filename or "internetexplorer" in filename.lower()


def dotnet_switches(filename: str, unattended: bool) -> list[str]:
    """
    Switches for .NET Framework installers.

    4.6+ web/offline installers are self-extractors that need a language
    id; older ones pass the quiet flag through to install.exe.
    """
    if not unattended:
        return []
    if any(token in filename for token in _DOTNET_SFX_TOKENS):
        return ["/sfxlang:1027", "/q", "/norestart"]
    return ["/q", '/c:"install.exe /q"']


def exe_switches(installer_type: InstallerType, filename: str, unattended: bool) -> list[str]:
    """
    Switches for an .exe of the given family.

    Internet Explorer packages are recognised by name after the .NET and
    VC++ families and take precedence over the generic families.
    """
    if not unattended:
        return []
    if installer_type == InstallerType.DOTNET:
        return dotnet_switches(filename, unattended)
    if installer_type == InstallerType.VCREDIST:
        return get_silent_switches(installer_type, unattended)
    if is_ie_installer(filename):
        return list(IE_SWITCHES)
    return get_silent_switches(installer_type, unattended)
