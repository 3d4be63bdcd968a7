"""
Pytest configuration and shared fixtures.

No test touches the network or a real Wine installation: subprocesses go
through FakeRunner and HTTP through FakeSession.
"""

import hashlib
import io
import json
import subprocess
from pathlib import Path

import pytest
from rich.console import Console

from winetricks.config import Config
from winetricks.download import DownloadManager
from winetricks.executor import Executor
from winetricks.verb import VerbRegistry
from winetricks.wine import Wine

WINE_BIN = "/usr/bin/wine"
WINESERVER_BIN = "/usr/bin/wineserver"


def sha256_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class FakeRunner:
    """Stand-in for subprocess.run that records every command."""

    def __init__(self):
        self.calls = []
        self.exit_codes = {}
        self.stdout = {}

    def set_exit(self, needle: str, code: int) -> None:
        """Commands containing ``needle`` in any argument exit with ``code``."""
        self.exit_codes[needle] = code

    def __call__(self, command, **kwargs):
        self.calls.append({"command": list(command), "env": kwargs.get("env")})

        if command[1:3] == ["winepath", "-w"]:
            return subprocess.CompletedProcess(command, 0, stdout="Z:" + command[3].replace("/", "\\") + "\n", stderr="")

        code = 0
        for needle, exit_code in self.exit_codes.items():
            if any(needle in str(arg) for arg in command):
                code = exit_code
        stdout = ""
        for needle, out in self.stdout.items():
            if any(needle in str(arg) for arg in command):
                stdout = out
        return subprocess.CompletedProcess(command, code, stdout=stdout, stderr="")

    def commands(self):
        return [c["command"] for c in self.calls]

    def installer_calls(self):
        """Calls that run an installer, i.e. everything but winepath and wineserver."""
        return [
            c for c in self.calls
            if c["command"][0] != WINESERVER_BIN and c["command"][1:2] != ["winepath"]
        ]


class FakeResponse:
    def __init__(self, body: bytes, status: int = 200, with_length: bool = True):
        self.body = body
        self.status_code = status
        self.headers = {"Content-Length": str(len(body))} if with_length else {}

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def raise_for_status(self):
        import requests
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]


class FakeSession:
    """Serves canned bodies by URL and counts requests."""

    def __init__(self, routes=None):
        self.headers = {}
        self.routes = dict(routes or {})
        self.requests = []

    def get(self, url, stream=False, **kwargs):
        self.requests.append(url)
        if url not in self.routes:
            return FakeResponse(b"", status=404)
        return FakeResponse(self.routes[url])


def write_verb(root: Path, category: str, name: str, /, **fields) -> Path:
    """Write a descriptor JSON document at ``root/category/name.json``."""
    data = {"name": name, "category": category, "title": fields.pop("title", name.title())}
    data.update(fields)
    path = root / category / f"{name}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


@pytest.fixture
def config(tmp_path):
    cfg = Config(
        cache_dir=tmp_path / "cache",
        data_dir=tmp_path / "data",
        prefixes_root=tmp_path / "prefixes",
        config_dir=tmp_path / "config",
        wineprefix=tmp_path / "prefix",
        unattended=True,
    )
    cfg.wineprefix.mkdir(parents=True)
    return cfg


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def wine(runner):
    return Wine(
        wine_bin=Path(WINE_BIN),
        wineserver_bin=Path(WINESERVER_BIN),
        version="wine-9.0",
        version_stripped="9.0",
        runner=runner,
    )


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def verbs_dir(tmp_path):
    path = tmp_path / "verbs"
    path.mkdir()
    return path


@pytest.fixture
def make_executor(config, runner, wine, session, console, verbs_dir):
    """Build an Executor over the verbs written to ``verbs_dir``."""

    def _make(**config_updates):
        cfg = config.model_copy(update=config_updates)
        registry = VerbRegistry.load_from_dir(verbs_dir)
        downloader = DownloadManager(cfg.cache_dir, session=session, console=console)
        return Executor(
            cfg,
            registry=registry,
            wine=wine,
            downloader=downloader,
            console=console,
            runner=runner,
        )

    return _make
