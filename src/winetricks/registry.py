"""
Wine registry text handling.

There is no host-side binding to Wine's registry. Writes are done by
composing a ``.reg`` import file for ``regedit /S``; reads parse the text
printed by ``wine reg query``.
"""

from __future__ import annotations

from textwrap import dedent

DIRECT3D_KEY = r"HKEY_CURRENT_USER\Software\Wine\Direct3D"
DRIVERS_KEY = r"HKEY_CURRENT_USER\Software\Wine\Drivers"
DLL_OVERRIDES_KEY = r"HKEY_CURRENT_USER\Software\Wine\DllOverrides"
GRAPHICS_VALUE = "Graphics"
RENDERER_VALUE = "renderer"

# Friendly renderer names -> Wine's Direct3D renderer values
RENDERER_TO_WINE = {
    "opengl": "gl",
    "vulkan": "vulkan",
    "gdi": "gdi",
    "no3d": "no3d",
}
RENDERER_FROM_WINE = {v: k for k, v in RENDERER_TO_WINE.items()}

# Accepted spellings on input
RENDERER_ALIASES = {
    "opengl": "opengl",
    "gl": "opengl",
    "w": "opengl",
    "vulkan": "vulkan",
    "vk": "vulkan",
    "v": "vulkan",
    "gdi": "gdi",
    "no3d": "no3d",
}

# Friendly display-server names -> Wine graphics driver values
WAYLAND_TO_WINE = {
    "wayland": "wayland",
    "xwayland": "x11",
}
WAYLAND_FROM_WINE = {v: k for k, v in WAYLAND_TO_WINE.items()}

# DLL override modes -> DllOverrides value data ("disabled" is an empty string)
DLL_OVERRIDE_MODES = {
    "native": "native",
    "builtin": "builtin",
    "native,builtin": "native,builtin",
    "builtin,native": "builtin,native",
    "disabled": "",
}


def wine_renderer(renderer: str) -> str:
    """Map a friendly renderer name to the value Wine expects."""
    friendly = RENDERER_ALIASES.get(renderer.lower(), renderer.lower())
    return RENDERER_TO_WINE.get(friendly, friendly)


def short_key(key: str) -> str:
    """HKEY_CURRENT_USER\\... -> HKCU\\... for ``wine reg``."""
    return key.replace("HKEY_CURRENT_USER", "HKCU").replace("HKEY_LOCAL_MACHINE", "HKLM")


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def compose_reg_import(key: str, values: dict[str, str | None]) -> str:
    """
    Build the text of a ``.reg`` file that sets string values under ``key``.

    A value of None deletes that value (``"name"=-``).

    Args:
        key: Full registry key, e.g. ``HKEY_CURRENT_USER\\Software\\Wine\\Direct3D``
        values: Value names mapped to string data
    """
    lines = []
    for name, data in values.items():
        if data is None:
            lines.append(f'"{_escape(name)}"=-')
        else:
            lines.append(f'"{_escape(name)}"="{_escape(data)}"')

    body = "\n".join(lines)
    return dedent('''\
        REGEDIT4

        [{key}]
        {body}

    ''').format(key=key, body=body)


def parse_reg_query(output: str, value_name: str) -> str | None:
    """
    Extract a value from ``wine reg query`` output.

    Output lines look like ``    renderer    REG_SZ    vulkan``; the data is
    the last whitespace-separated token of the line naming the value.
    Values containing spaces are not supported.
    """
    wanted = value_name.lower()
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 3:
            continue
        if tokens[0].lower() == wanted and tokens[1].upper().startswith("REG_"):
            return tokens[-1]
    return None
