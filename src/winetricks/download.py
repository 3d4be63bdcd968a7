"""
Download manager with on-disk cache and SHA-256 verification.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import requests
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from winetricks import __version__
from winetricks.errors import ChecksumMismatch, DownloadError, WinetricksIOError

logger = logging.getLogger(__name__)

USER_AGENT = f"winetricks-py/{__version__}"
CHUNK_SIZE = 64 * 1024


def sha256sum(path: Path | str) -> str:
    """Hex SHA-256 of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


class DownloadManager:
    """
    Fetch artifacts over HTTP into the cache.

    Usage:
        downloader = DownloadManager(config.cache_dir)
        path = downloader.download(url, config.cache_dir / "corefonts" / "arial32.exe",
                                   expected_sha256="85297a4d...")
    """

    def __init__(
        self,
        cache_dir: Path | str,
        session: requests.Session | None = None,
        console: Console | None = None,
    ):
        self.cache_dir = Path(cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WinetricksIOError(e) from e

        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT
        self.console = console or Console(stderr=True)

    def download(
        self,
        url: str,
        dest_path: Path | str,
        expected_sha256: str | None = None,
        progress: bool = False,
    ) -> Path:
        """
        Download ``url`` to ``dest_path`` unless a good copy is already there.

        An existing file is trusted as-is when no checksum is given. The
        file is written in place; an interrupted download leaves a partial
        file that fails verification (or is overwritten) next time.

        Raises:
            DownloadError: On connection or HTTP status errors
            ChecksumMismatch: If the downloaded bytes do not hash to
                ``expected_sha256`` (the file is removed)
        """
        dest_path = Path(dest_path)
        expected = expected_sha256.lower() if expected_sha256 else None

        if dest_path.exists():
            if expected is None:
                logger.debug("Using cached %s (no checksum)", dest_path)
                return dest_path
            if self.verify_checksum(dest_path, expected):
                logger.debug("Using cached %s (checksum ok)", dest_path)
                return dest_path
            logger.info("Cached %s failed checksum, re-downloading", dest_path.name)
            self._remove(dest_path)

        logger.info("Downloading %s from %s", dest_path.name, url)
        try:
            with self.session.get(url, stream=True) as resp:
                resp.raise_for_status()
                total = int(resp.headers.get("Content-Length") or 0)
                computed = self._stream_to_file(resp, dest_path, total, progress)
        except requests.RequestException as e:
            raise DownloadError(f"{url}: {e}") from e
        except OSError as e:
            raise WinetricksIOError(e) from e

        if expected is not None and computed != expected:
            self._remove(dest_path)
            raise ChecksumMismatch(expected=expected, got=computed)

        return dest_path

    def _stream_to_file(
        self,
        resp: requests.Response,
        dest_path: Path,
        total: int,
        progress: bool,
    ) -> str:
        hasher = hashlib.sha256()
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        if not (progress and total > 0):
            with open(dest_path, "wb") as f:
                for chunk in resp.iter_content(CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        hasher.update(chunk)
            return hasher.hexdigest()

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
            transient=True,
        ) as bar:
            task = bar.add_task(f"Downloading {dest_path.name}", total=total)
            with open(dest_path, "wb") as f:
                for chunk in resp.iter_content(CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        hasher.update(chunk)
                        bar.advance(task, len(chunk))
        return hasher.hexdigest()

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise WinetricksIOError(e) from e

    def verify_checksum(self, path: Path | str, expected: str) -> bool:
        try:
            return sha256sum(path) == expected.lower()
        except OSError as e:
            raise WinetricksIOError(e) from e

    def is_cached(self, filename: str) -> bool:
        """Whether ``filename`` exists in the flat (legacy) cache layout."""
        return self.get_cached_path(filename).exists()

    def get_cached_path(self, filename: str) -> Path:
        return self.cache_dir / filename
