"""
Verb execution engine.

Drives a single verb through lookup, conflict checks, download, installer
execution under Wine, and the prefix install log. Uninstall only restores
the log; files written by installers stay in the prefix.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import time
from pathlib import Path
from typing import Callable, Sequence

from rich.console import Console

from winetricks.config import WINDOWS_VERSIONS, Config
from winetricks.download import DownloadManager
from winetricks.errors import (
    CommandExecutionError,
    VerbConflict,
    VerbError,
    VerbNotFound,
    WinetricksIOError,
)
from winetricks.installer import (
    InstallerType,
    detect_from_file,
    detect_installer_type,
    exe_switches,
    get_msi_silent_switch,
)
from winetricks.prefix import InstallLog, WinePrefix
from winetricks.registry import wine_renderer
from winetricks.verb import VerbCategory, VerbMetadata, VerbRegistry
from winetricks.wine import Wine

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

# "Reboot required" exit codes from .NET installers; meaningless under Wine
DOTNET_REBOOT_CODES = (236, 3010)

FALLBACK_SCRIPT_PATHS = [
    Path("/usr/bin/winetricks"),
    Path("/usr/local/bin/winetricks"),
]

# DLL overrides some runtimes need before their installer runs
PRE_INSTALL_OVERRIDES = {
    "dotnet35": {"mscoree": "native", "mscorwks": "native"},
}

# DLL overrides applied once the installer has finished
POST_INSTALL_OVERRIDES = {
    "dotnet48": {"mscoree": "native"},
    "dotnet48.1": {"mscoree": "native"},
}


def format_elapsed(seconds: float) -> str:
    """``12.345s`` below a minute, ``2m 3.456s`` above."""
    minutes, rest = divmod(seconds, 60)
    if minutes >= 1:
        return f"{int(minutes)}m {rest:.3f}s"
    return f"{rest:.3f}s"


class Executor:
    """
    Installs and uninstalls verbs in the configured prefix.

    Usage:
        config = Config.default(unattended=True)
        executor = Executor(config)
        executor.install_verb("corefonts")
        executor.is_installed("corefonts")   # True
        executor.uninstall_verb("corefonts")
    """

    def __init__(
        self,
        config: Config,
        registry: VerbRegistry | None = None,
        wine: Wine | None = None,
        downloader: DownloadManager | None = None,
        console: Console | None = None,
        runner: Runner = subprocess.run,
    ):
        self.config = config.model_copy(deep=True)
        self.console = console or Console()
        self.runner = runner
        self.wine = wine or Wine.detect(self.config.wineprefix_path(), runner=runner)
        self.downloader = downloader or DownloadManager(self.config.cache_dir, console=self.console)

        if registry is None:
            self.config.ensure_cache_initialized()
            metadata_dir = self.config.metadata_dir()
            if metadata_dir.is_dir():
                registry = VerbRegistry.load_from_dir(metadata_dir)
            else:
                logger.warning("Verb metadata directory not found: %s", metadata_dir)
                registry = VerbRegistry()
        self.registry = registry

    # -- prefix state --------------------------------------------------------

    @property
    def prefix_path(self) -> Path:
        return self.config.wineprefix_path()

    @property
    def install_log(self) -> InstallLog:
        return InstallLog(self.prefix_path)

    def is_installed(self, verb_name: str) -> bool:
        return self.install_log.contains(verb_name)

    def list_installed(self) -> list[str]:
        return self.install_log.entries()

    def list_by_category(self, category: VerbCategory | str) -> list[VerbMetadata]:
        return self.registry.list_by_category(category)

    def is_verb_cached(self, metadata: VerbMetadata) -> bool:
        """All of a verb's files are in its cache dir (or the legacy flat cache)."""
        if not metadata.files:
            return False
        verb_cache = self.config.cache_dir / metadata.name
        return all(
            (verb_cache / f.filename).exists() or self.downloader.is_cached(f.filename)
            for f in metadata.files
        )

    def list_cached(self) -> list[str]:
        """Names of verbs whose files are all present in the download cache."""
        return sorted(v.name for v in self.registry.list() if self.is_verb_cached(v))

    # -- environment ---------------------------------------------------------

    def build_env(self) -> dict[str, str]:
        """Environment for Wine children; the parent environment is left alone."""
        env = os.environ.copy()
        env["WINEPREFIX"] = str(self.prefix_path)
        env["W_OPT_UNATTENDED"] = "1" if self.config.unattended else "0"

        if self.config.renderer:
            env["WINE_D3D_CONFIG"] = f"renderer={wine_renderer(self.config.renderer)}"

        if self.config.wayland == "wayland":
            env.pop("DISPLAY", None)
        elif self.config.wayland == "xwayland":
            env["DISPLAY"] = env.get("DISPLAY") or ":0"

        if self.config.winearch:
            env["WINEARCH"] = self.config.winearch
        return env

    def _run(self, command: Sequence[str], env: dict[str, str]) -> int:
        logger.debug("Running: %s", " ".join(command))
        try:
            result = self.runner(list(command), env=env)
        except OSError as e:
            raise CommandExecutionError(" ".join(command), str(e)) from e
        return result.returncode

    # -- install -------------------------------------------------------------

    def install_verb(self, verb_name: str) -> None:
        """
        Install a verb into the current prefix.

        Already-installed verbs are skipped unless ``force`` is set, in
        which case the log entry is dropped and the verb reinstalled.
        With ``isolate``, application verbs go into their own prefix under
        ``prefixes_root``; later installs use the configured prefix again.

        Raises:
            VerbNotFound: No descriptor and no fallback script
            VerbConflict: A conflicting verb is installed (without force)
            DownloadError, ChecksumMismatch: Fetching failed
            VerbError: An installer failed or a file is missing
            ConfigError: A Windows version or DLL override could not be set
        """
        logger.info("Installing verb: %s", verb_name)

        metadata = self.registry.get(verb_name)
        if metadata is None:
            script = self.find_fallback_script()
            if script is None:
                raise VerbNotFound(verb_name)
            self._delegate(verb_name, script)
            return

        if not (self.config.isolate and metadata.category == VerbCategory.APPS):
            self._install(metadata)
            return

        # The isolated prefix only applies to this one install
        shared_prefix = self.config.wineprefix
        prefix = self.config.select_prefix(verb_name)
        logger.info("Isolating %s in %s", verb_name, prefix)
        try:
            self._install(metadata)
        finally:
            self.config.wineprefix = shared_prefix

    def _install(self, metadata: VerbMetadata) -> None:
        verb_name = metadata.name
        started = time.monotonic()

        if self._skip_or_reset(verb_name):
            return

        if not self.config.force:
            for conflict in metadata.conflicts:
                if self.is_installed(conflict):
                    raise VerbConflict(verb_name, conflict)

        if metadata.category == VerbCategory.SETTINGS and not metadata.files:
            self._apply_setting(verb_name)
        else:
            verb_cache = self._fetch(metadata)
            self._apply_overrides(PRE_INSTALL_OVERRIDES.get(verb_name))
            self._execute(metadata, verb_cache)
            self._apply_overrides(POST_INSTALL_OVERRIDES.get(verb_name))
            self._verify(metadata)

        self.install_log.append(verb_name)

        message = f"Successfully installed {verb_name} in {format_elapsed(time.monotonic() - started)}"
        logger.info("%s", message)
        if not self.config.unattended:
            self.console.print(f"[green]✓[/green] {message}")

    def _apply_setting(self, verb_name: str) -> None:
        """Settings verbs without files change the prefix directly."""
        version = WINDOWS_VERSIONS.get(verb_name)
        if version is None:
            logger.info("Settings verb %s has no handler, recording only", verb_name)
            return
        self.config.set_windows_version(version, wine=self.wine)

    def _apply_overrides(self, overrides: dict[str, str] | None) -> None:
        for dll_name, mode in (overrides or {}).items():
            self.config.set_dll_override(dll_name, mode, wine=self.wine)

    def _skip_or_reset(self, verb_name: str) -> bool:
        """True if the install should stop because the verb is already logged."""
        if not self.is_installed(verb_name):
            return False
        if self.config.force:
            logger.info("Force reinstall requested for %s (removing from log)", verb_name)
            self.install_log.remove(verb_name)
            return False
        self.console.print(f"{verb_name} already installed, skipping")
        self.console.print("Use --force to reinstall")
        return True

    def _fetch(self, metadata: VerbMetadata) -> Path:
        """Make sure every file of the verb is in ``<cache_dir>/<verb>/``."""
        verb_cache = self.config.cache_dir / metadata.name
        try:
            verb_cache.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WinetricksIOError(e) from e

        for file in metadata.files:
            dest = verb_cache / file.filename
            if file.url:
                self.downloader.download(
                    file.url,
                    dest,
                    expected_sha256=file.sha256,
                    progress=self.console.is_terminal,
                )
            elif not dest.exists():
                raise VerbError(
                    f"{metadata.name} requires {file.filename}; "
                    f"download it manually and place it in {verb_cache}"
                )
            elif file.sha256 and not self.downloader.verify_checksum(dest, file.sha256):
                raise VerbError(f"{dest} does not match the expected checksum")
        return verb_cache

    def _execute(self, metadata: VerbMetadata, verb_cache: Path) -> None:
        env = self.build_env()
        for file in metadata.files:
            path = verb_cache / file.filename
            ext = path.suffix.lower()

            if ext == ".msi":
                self._run_msi(path, env)
            elif ext == ".exe":
                self._run_exe(metadata.name, path, env)
            elif ext in (".zip", ".cab"):
                raise VerbError(f"{ext} extraction not implemented ({file.filename})")
            else:
                logger.warning("Don't know how to install %s, skipping", file.filename)
                continue

            self.wine.wait_server(env)

    def _run_msi(self, path: Path, env: dict[str, str]) -> None:
        logger.info("Running MSI installer: %s", path.name)
        win_path = self.wine.unix_to_wine_path(path, self.prefix_path)
        command = [str(self.wine.wine_bin), "start", "/wait", "msiexec.exe", "/i", win_path]
        switch = get_msi_silent_switch(self.config.unattended)
        if switch:
            command.append(switch)

        returncode = self._run(command, env)
        if returncode != 0:
            raise VerbError(f"msiexec failed for {path.name} with exit code {returncode}")

    def _run_exe(self, verb_name: str, path: Path, env: dict[str, str]) -> None:
        family = detect_installer_type(path.name, verb_name)
        if family == InstallerType.GENERIC:
            family = detect_from_file(path) or InstallerType.GENERIC
        logger.info("Running %s installer: %s", family.value, path.name)

        exe_env = dict(env)
        if family == InstallerType.DOTNET:
            exe_env["WINEDLLOVERRIDES"] = "fusion=b"
        switches = exe_switches(family, path.name, self.config.unattended)

        win_path = self.wine.unix_to_wine_path(path, self.prefix_path)
        returncode = self._run([str(self.wine.wine_bin), win_path, *switches], exe_env)

        if returncode == 0:
            return
        if family == InstallerType.DOTNET and returncode in DOTNET_REBOOT_CODES:
            logger.info("%s exited with %d (reboot required), treating as success", path.name, returncode)
            return
        raise VerbError(f"{path.name} failed with exit code {returncode}")

    def _verify(self, metadata: VerbMetadata) -> None:
        if not metadata.installed_file:
            return
        logger.info("Verifying %s: %s", metadata.name, metadata.installed_file)
        prefix = WinePrefix(self.prefix_path)
        if prefix.exists() and not prefix.windows_path_exists(metadata.installed_file):
            logger.warning(
                "%s: expected file %s not found after install",
                metadata.name, metadata.installed_file,
            )

    # -- fallback script -----------------------------------------------------

    def find_fallback_script(self) -> Path | None:
        """
        Locate an external winetricks shell script to delegate unknown verbs to.

        The program currently running is never chosen, so a front-end
        installed as ``winetricks`` does not call itself.
        """
        candidates = []
        on_path = shutil.which("winetricks")
        if on_path:
            candidates.append(Path(on_path))
        candidates.extend(FALLBACK_SCRIPT_PATHS)
        candidates.append(self.config.data_dir / "winetricks")

        running = Path(sys.argv[0]).resolve() if sys.argv and sys.argv[0] else None
        for candidate in candidates:
            if not candidate.is_file():
                continue
            if running is not None and candidate.resolve() == running:
                logger.debug("Skipping %s (current program)", candidate)
                continue
            return candidate
        return None

    def _delegate(self, verb_name: str, script: Path) -> None:
        if self._skip_or_reset(verb_name):
            return

        logger.info("No descriptor for %s, delegating to %s", verb_name, script)
        command = ["sh", str(script)]
        flags = [
            (self.config.force, "--force"),
            (self.config.unattended, "--unattended"),
            (self.config.torify, "--torify"),
            (self.config.isolate, "--isolate"),
            (self.config.no_clean, "--no-clean"),
        ]
        command.extend(flag for enabled, flag in flags if enabled)
        command.append(verb_name)

        returncode = self._run(command, self.build_env())
        if returncode != 0:
            raise VerbError(f"winetricks script failed for {verb_name} with exit code {returncode}")
        self.install_log.append(verb_name)

    # -- uninstall -----------------------------------------------------------

    def uninstall_verb(self, verb_name: str) -> None:
        """
        Remove a verb from the install log.

        Files and registry changes made by the installer are left behind.
        """
        say = self.console.print if not self.config.unattended else (lambda *a, **k: None)
        logger.info("Uninstalling verb: %s", verb_name)

        if not self.is_installed(verb_name):
            say(f"{verb_name} is not installed")
            return

        metadata = self.registry.get(verb_name)
        category = metadata.category if metadata else None

        self.install_log.remove(verb_name)
        say(f"Removed {verb_name} from installation log")

        if category == VerbCategory.APPS:
            say("Note: Application files may still be present. Use the Windows uninstaller if needed.")
        elif category in (VerbCategory.DLLS, VerbCategory.FONTS):
            say("Note: DLL/Font files may still be present in the wineprefix.")
            say("To fully remove them, delete the files manually or reset the wineprefix.")
        elif category == VerbCategory.SETTINGS:
            say("Note: Settings changes persist. Reset the wineprefix to undo.")
