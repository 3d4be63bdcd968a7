"""
Configuration for winetricks.

Resolves user directories, keeps the user's copy of the verb descriptor
tree in sync with the read-only source tree, and reads/writes the few
Wine registry settings the front-ends expose (Direct3D renderer and
graphics driver).
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from winetricks.errors import ConfigError, WineError, WinetricksIOError
from winetricks.registry import (
    DIRECT3D_KEY,
    DLL_OVERRIDE_MODES,
    DLL_OVERRIDES_KEY,
    DRIVERS_KEY,
    GRAPHICS_VALUE,
    RENDERER_ALIASES,
    RENDERER_FROM_WINE,
    RENDERER_TO_WINE,
    RENDERER_VALUE,
    WAYLAND_FROM_WINE,
    WAYLAND_TO_WINE,
    compose_reg_import,
    parse_reg_query,
    short_key,
)
from winetricks.verb import VerbCategory
from winetricks.wine import Wine

logger = logging.getLogger(__name__)

# data_dir ending in this component means "running from a source checkout"
DEV_SENTINEL = "files"

SYSTEM_DATA_DIRS = [
    Path("/usr/share/winetricks/json"),
    Path("/usr/local/share/winetricks/json"),
]

WAYLAND_KEY_ABSENT_EXIT = 1

Renderer = Literal["opengl", "vulkan", "gdi", "no3d"]
WaylandMode = Literal["wayland", "xwayland", "auto"]
WineArch = Literal["win32", "win64"]

ARCH_ALIASES = {"32": "win32", "win32": "win32", "64": "win64", "win64": "win64"}
WAYLAND_ALIASES = {"wayland": "wayland", "xwayland": "xwayland", "x11": "xwayland", "auto": "auto"}

# Settings verb name -> version name accepted by ``winecfg -v``
WINDOWS_VERSIONS = {
    "win95": "win95",
    "win98": "win98",
    "winme": "winme",
    "win2k": "win2k",
    "winxp": "winxp",
    "win2k3": "win2003",
    "winvista": "vista",
    "win2k8": "win2008",
    "win7": "win7",
    "win8": "win8",
    "win81": "win81",
    "win10": "win10",
    "win11": "win11",
}


def _home() -> Path:
    home = os.environ.get("HOME")
    if home:
        return Path(home)
    try:
        return Path.home()
    except RuntimeError as e:
        raise ConfigError("Could not determine home directory") from e


def _xdg_dir(var: str, fallback: str) -> Path:
    value = os.environ.get(var)
    if value:
        return Path(value)
    return _home() / fallback


def detect_display_server(environ: dict[str, str] | None = None) -> str | None:
    """
    Guess the display server from the environment.

    Returns "wayland", "xwayland" or None.
    """
    env = os.environ if environ is None else environ
    display = env.get("DISPLAY", "")
    if env.get("WAYLAND_DISPLAY") and not display:
        return "wayland"
    if display:
        return "xwayland"
    return None


def _newest_mtime(root: Path) -> float:
    newest = 0.0
    for entry in root.rglob("*"):
        try:
            newest = max(newest, entry.stat().st_mtime)
        except OSError:
            continue
    return newest


class Config(BaseModel):
    """
    Per-process winetricks configuration.

    Owned by the front-end; the executor keeps its own copy.
    """
    model_config = ConfigDict(validate_assignment=True)

    cache_dir: Path = Field(description="Download cache, one subdirectory per verb")
    data_dir: Path = Field(description="winetricks data directory")
    prefixes_root: Path = Field(description="Parent directory of named prefixes")
    config_dir: Path = Field(description="User config directory holding the cached verb tree")
    wineprefix: Optional[Path] = Field(default=None, description="Current prefix, overrides $WINEPREFIX")
    source_verbs_dir: Optional[Path] = Field(default=None, description="Read-only descriptor tree override")

    verbosity: int = Field(default=0, ge=0, le=2)
    force: bool = False
    unattended: bool = False
    torify: bool = False
    isolate: bool = False
    no_clean: bool = False
    winearch: Optional[WineArch] = None
    renderer: Optional[Renderer] = None
    wayland: Optional[WaylandMode] = None

    @classmethod
    def default(cls, **overrides) -> Config:
        """
        Build a config from the XDG environment.

        Raises:
            ConfigError: If directories cannot be resolved or an override
                is invalid
        """
        data_home = _xdg_dir("XDG_DATA_HOME", ".local/share")
        values = {
            "cache_dir": _xdg_dir("XDG_CACHE_HOME", ".cache") / "winetricks",
            "data_dir": data_home / "winetricks",
            "prefixes_root": data_home / "wineprefixes",
            "config_dir": _xdg_dir("XDG_CONFIG_HOME", ".config") / "winetricks",
        }
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    def set_option(self, name: str, value) -> None:
        """
        Set an option, accepting the spellings front-ends use.

        ``arch=32`` -> ``winearch="win32"``, ``renderer=vk`` -> ``"vulkan"``,
        ``wayland=x11`` -> ``"xwayland"``.
        """
        if name == "arch":
            name = "winearch"
        if isinstance(value, str):
            lowered = value.lower()
            if name == "winearch":
                value = ARCH_ALIASES.get(lowered, lowered)
            elif name == "renderer":
                value = RENDERER_ALIASES.get(lowered, lowered)
            elif name == "wayland":
                value = WAYLAND_ALIASES.get(lowered, lowered)

        if name not in type(self).model_fields:
            raise ConfigError(f"Unknown option: {name}")
        try:
            setattr(self, name, value)
        except ValidationError as e:
            raise ConfigError(f"Invalid value for {name}: {value!r}") from e

    # -- paths -------------------------------------------------------------

    @property
    def cached_verbs_dir(self) -> Path:
        """User-writable mirror of the descriptor tree."""
        return self.config_dir / "verbs"

    @property
    def reg_temp_dir(self) -> Path:
        """Where temporary .reg import files are written."""
        return self.cache_dir / "winetricks"

    def wineprefix_path(self) -> Path:
        """Configured prefix, else $WINEPREFIX, else ~/.wine."""
        if self.wineprefix is not None:
            return self.wineprefix
        env_prefix = os.environ.get("WINEPREFIX")
        if env_prefix:
            return Path(env_prefix)
        return _home() / ".wine"

    def select_prefix(self, name: str) -> Path:
        """Switch to the named prefix under prefixes_root."""
        self.wineprefix = self.prefixes_root / name
        return self.wineprefix

    def install_log_path(self) -> Path:
        return self.wineprefix_path() / "winetricks.log"

    def _dev_verbs_dir(self) -> Path | None:
        if self.data_dir.name == DEV_SENTINEL:
            return self.data_dir / "json"
        return None

    def _has_categories(self, path: Path) -> bool:
        if not path.is_dir():
            return False
        return any(
            child.is_dir() and VerbCategory.parse(child.name) is not None
            for child in path.iterdir()
        )

    def metadata_dir(self) -> Path:
        """
        Directory the verb registry is loaded from.

        Precedence: development checkout, populated user cache, the data
        dir's json tree, system data dirs, and finally the (empty) user
        cache.
        """
        dev = self._dev_verbs_dir()
        if dev is not None:
            return dev

        if self._has_categories(self.cached_verbs_dir):
            return self.cached_verbs_dir

        data_json = self.data_dir / "json"
        if data_json.is_dir():
            return data_json

        for candidate in SYSTEM_DATA_DIRS:
            if candidate.is_dir():
                return candidate

        return self.cached_verbs_dir

    def source_verbs_dir_path(self) -> Path | None:
        """The read-only descriptor tree the user cache mirrors, if any."""
        if self.source_verbs_dir is not None:
            return self.source_verbs_dir

        dev = self._dev_verbs_dir()
        if dev is not None:
            return dev

        data_json = self.data_dir / "json"
        if data_json.is_dir():
            return data_json

        for candidate in SYSTEM_DATA_DIRS:
            if candidate.is_dir():
                return candidate
        return None

    def ensure_dirs(self) -> None:
        """Create cache, data, prefix-root and metadata directories."""
        try:
            for directory in (self.cache_dir, self.data_dir, self.prefixes_root, self.cached_verbs_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WinetricksIOError(e) from e

    # -- descriptor sync ---------------------------------------------------

    def cache_needs_sync(self, source: Path) -> bool:
        cache = self.cached_verbs_dir
        if not self._has_categories(cache):
            return True
        return _newest_mtime(source) > _newest_mtime(cache)

    def ensure_cache_initialized(self) -> int:
        """
        Mirror the source descriptor tree into the user cache when stale.

        Only ``<category>/<verb>.json`` files are copied; nothing in the
        cache is ever deleted.

        Returns:
            Number of descriptor files copied
        """
        source = self.source_verbs_dir_path()
        cache = self.cached_verbs_dir
        if source is None or not source.is_dir():
            logger.debug("No source descriptor tree, skipping sync")
            return 0
        if source.resolve() == cache.resolve():
            return 0
        if not self.cache_needs_sync(source):
            return 0

        copied = 0
        try:
            for category_dir in sorted(source.iterdir()):
                if not category_dir.is_dir():
                    continue
                dest_dir = cache / category_dir.name
                for descriptor in sorted(category_dir.glob("*.json")):
                    dest_dir.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(descriptor, dest_dir / descriptor.name)
                    copied += 1
        except OSError as e:
            raise WinetricksIOError(e) from e

        logger.info("Synced %d verb descriptors from %s to %s", copied, source, cache)
        return copied

    # -- Wine registry settings -------------------------------------------

    def _wine_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["WINEPREFIX"] = str(self.wineprefix_path())
        return env

    def _detect_wine(self, wine: Wine | None) -> Wine:
        return wine if wine is not None else Wine.detect(self.wineprefix_path())

    def _import_registry(self, wine: Wine, key: str, values: dict[str, str | None]) -> None:
        """Write a .reg file, import it with ``regedit /S`` and remove it."""
        try:
            self.reg_temp_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", suffix=".reg", dir=self.reg_temp_dir, delete=False, encoding="utf-8"
            ) as tmp:
                tmp.write(compose_reg_import(key, values))
                reg_path = Path(tmp.name)
        except OSError as e:
            raise WinetricksIOError(e) from e

        try:
            win_path = wine.unix_to_wine_path(reg_path, self.wineprefix_path())
            wine.exec(["regedit", "/S", win_path], env=self._wine_env())
        finally:
            reg_path.unlink(missing_ok=True)

    def _query_registry(self, wine: Wine | None, key: str, value_name: str) -> str | None:
        try:
            wine = self._detect_wine(wine)
        except WineError:
            return None

        command = [str(wine.wine_bin), "reg", "query", short_key(key), "/v", value_name]
        try:
            result = wine.runner(command, capture_output=True, text=True, env=self._wine_env())
        except OSError as e:
            logger.debug("reg query failed: %s", e)
            return None
        if result.returncode != 0:
            return None
        return parse_reg_query(result.stdout or "", value_name)

    def set_renderer_in_registry(self, renderer: str | None, wine: Wine | None = None) -> None:
        """Persist the Direct3D renderer in the prefix. None leaves it untouched."""
        if renderer is None:
            return
        friendly = RENDERER_ALIASES.get(renderer.lower())
        if friendly is None:
            raise ConfigError(f"Invalid renderer '{renderer}'. Use opengl, vulkan, gdi or no3d")

        wine = self._detect_wine(wine)
        self._import_registry(wine, DIRECT3D_KEY, {RENDERER_VALUE: RENDERER_TO_WINE[friendly]})
        logger.info("Set Direct3D renderer=%s in registry", RENDERER_TO_WINE[friendly])

    def get_renderer_from_registry(self, wine: Wine | None = None) -> str | None:
        value = self._query_registry(wine, DIRECT3D_KEY, RENDERER_VALUE)
        if value is None:
            return None
        return RENDERER_FROM_WINE.get(value.lower(), value.lower())

    def set_wayland_in_registry(self, mode: str | None, wine: Wine | None = None) -> None:
        """
        Persist the graphics driver choice.

        None (or "auto") deletes the setting so Wine picks a driver itself;
        a missing value is not an error.
        """
        if mode is not None:
            mode = WAYLAND_ALIASES.get(mode.lower())
            if mode is None:
                raise ConfigError("Invalid wayland value. Use wayland, xwayland or auto")

        wine = self._detect_wine(wine)

        if mode is None or mode == "auto":
            command = [
                str(wine.wine_bin), "reg", "delete", short_key(DRIVERS_KEY),
                "/v", GRAPHICS_VALUE, "/f",
            ]
            try:
                result = wine.runner(command, capture_output=True, text=True, env=self._wine_env())
            except OSError as e:
                raise WineError(f"reg delete failed: {e}") from e
            if result.returncode not in (0, WAYLAND_KEY_ABSENT_EXIT):
                raise WineError(f"reg delete failed: {(result.stderr or '').strip()}")
            return

        self._import_registry(wine, DRIVERS_KEY, {GRAPHICS_VALUE: WAYLAND_TO_WINE[mode]})
        logger.info("Set graphics driver=%s in registry", WAYLAND_TO_WINE[mode])

    def get_wayland_from_registry(self, wine: Wine | None = None) -> str | None:
        value = self._query_registry(wine, DRIVERS_KEY, GRAPHICS_VALUE)
        if value is None:
            return None
        return WAYLAND_FROM_WINE.get(value.lower(), value.lower())

    def set_dll_override(self, dll_name: str, mode: str | None, wine: Wine | None = None) -> None:
        """
        Set how Wine loads ``dll_name``: native, builtin, both orders or disabled.

        None removes the override.
        """
        if mode is None:
            data = None
        elif mode.lower() in DLL_OVERRIDE_MODES:
            data = DLL_OVERRIDE_MODES[mode.lower()]
        else:
            raise ConfigError(f"Invalid DLL override '{mode}' for {dll_name}")

        wine = self._detect_wine(wine)
        self._import_registry(wine, DLL_OVERRIDES_KEY, {dll_name: data})
        logger.info("Set DLL override %s=%s", dll_name, mode)

    def set_windows_version(self, version: str, wine: Wine | None = None) -> None:
        """Set the prefix's reported Windows version through ``winecfg -v``."""
        wine = self._detect_wine(wine)
        try:
            wine.exec(["winecfg", "-v", version], env=self._wine_env())
        except WineError as e:
            raise ConfigError(f"Failed to set Windows version to {version}") from e
        logger.info("Set Windows version to %s", version)
