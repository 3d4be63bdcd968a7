"""
Verb descriptor models and the verb registry.

A verb is described by one JSON document stored at
``<category>/<name>.json``. The registry loads a whole tree of those
documents and indexes them by name and by category.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from winetricks.errors import VerbError, WinetricksIOError

logger = logging.getLogger(__name__)

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class VerbCategory(str, Enum):
    """Category a verb is filed under."""
    APPS = "apps"
    BENCHMARKS = "benchmarks"
    DLLS = "dlls"
    FONTS = "fonts"
    SETTINGS = "settings"
    DOWNLOAD = "download"
    MANUAL_DOWNLOAD = "manual-download"

    @classmethod
    def parse(cls, value: str) -> VerbCategory | None:
        """Return the category for a directory name, or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class MediaType(str, Enum):
    """Whether artifacts can be fetched automatically."""
    DOWNLOAD = "download"
    MANUAL_DOWNLOAD = "manual_download"


# Categories whose downloadable verbs are expected to carry at least one URL
URL_EXPECTED_CATEGORIES = (VerbCategory.APPS, VerbCategory.DLLS, VerbCategory.FONTS)


class VerbFile(BaseModel):
    """A file a verb needs in its cache directory."""
    filename: str = Field(description="Basename of the artifact inside the verb cache dir")
    url: Optional[str] = Field(default=None, description="Download URL, absent for manual files")
    sha256: Optional[str] = Field(default=None, description="Lowercase hex SHA-256 of the artifact")

    @field_validator("filename")
    @classmethod
    def _basename_only(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError(f"filename must be a bare basename: {value!r}")
        return value

    @field_validator("sha256")
    @classmethod
    def _valid_sha256(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lower()
        if not _SHA256_RE.match(value):
            raise ValueError(f"invalid sha256: {value!r}")
        return value


class VerbMetadata(BaseModel):
    """
    Descriptor for a single verb.

    The ``name`` stored in a document is informational only: the registry
    always replaces it with the document's filename stem.
    """
    name: str = Field(default="", description="Verb name, equal to the file stem")
    category: VerbCategory
    title: str = Field(description="Human-readable title")
    publisher: Optional[str] = Field(default=None)
    year: Optional[str] = Field(default=None)
    media: MediaType = Field(default=MediaType.DOWNLOAD)
    files: list[VerbFile] = Field(default_factory=list)
    installed_file: Optional[str] = Field(default=None, description="Windows path checked after install")
    installed_exe: Optional[str] = Field(default=None, description="Windows path of the main executable")
    conflicts: list[str] = Field(default_factory=list)

    @field_validator("year", mode="before")
    @classmethod
    def _year_as_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("conflicts")
    @classmethod
    def _dedupe_conflicts(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _unique_filenames(self) -> VerbMetadata:
        seen: set[str] = set()
        for file in self.files:
            if file.filename in seen:
                raise ValueError(f"duplicate filename in verb files: {file.filename}")
            seen.add(file.filename)
        return self

    def warnings(self) -> list[str]:
        """Advisory problems that do not prevent loading."""
        problems = []
        if (
            self.category in URL_EXPECTED_CATEGORIES
            and self.media == MediaType.DOWNLOAD
            and not any(f.url for f in self.files)
        ):
            problems.append(f"{self.name}: downloadable {self.category.value} verb has no file URL")
        return problems

    def save(self, path: Path | str) -> Path:
        """Write the descriptor as JSON; a directory means ``<dir>/<category>/<name>.json``."""
        path = Path(path)
        if path.is_dir():
            path = path / self.category.value / f"{self.name}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2, exclude_none=True))
        return path

    @classmethod
    def load(cls, path: Path | str) -> VerbMetadata:
        """Load a descriptor, taking the filename stem as its name."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise WinetricksIOError(e) from e
        except json.JSONDecodeError as e:
            raise VerbError(f"Malformed descriptor {path}: {e}") from e

        if isinstance(data, dict):
            data["name"] = path.stem
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise VerbError(f"Invalid descriptor {path}: {e}") from e


class VerbRegistry:
    """
    Indexed collection of verb descriptors.

    Usage:
        registry = VerbRegistry.load_from_dir(config.metadata_dir())
        for verb in registry.list_by_category(VerbCategory.DLLS):
            print(verb.name, verb.title)
    """

    def __init__(self):
        self._verbs: dict[str, VerbMetadata] = {}
        self._by_category: dict[VerbCategory, list[str]] = {}

    @classmethod
    def load_from_dir(cls, path: Path | str) -> VerbRegistry:
        """
        Load every descriptor under ``path/<category>/*.json``.

        Subdirectories that are not categories are ignored. Any unreadable
        directory or bad document aborts the whole load.

        Raises:
            WinetricksIOError: If a directory cannot be listed
            VerbError: On malformed documents or duplicate names
        """
        path = Path(path)
        registry = cls()

        try:
            category_dirs = sorted(p for p in path.iterdir() if p.is_dir())
        except OSError as e:
            raise WinetricksIOError(e) from e

        for category_dir in category_dirs:
            category = VerbCategory.parse(category_dir.name)
            if category is None:
                logger.debug("Skipping non-category directory %s", category_dir)
                continue

            try:
                files = sorted(p for p in category_dir.iterdir() if p.suffix == ".json")
            except OSError as e:
                raise WinetricksIOError(e) from e

            for file_path in files:
                metadata = VerbMetadata.load(file_path)
                registry.register(file_path.stem, metadata, category)

        logger.debug("Loaded %d verbs from %s", len(registry), path)
        return registry

    def register(self, name: str, metadata: VerbMetadata, category: VerbCategory) -> None:
        """Add a verb; the given name and category override the document."""
        if name in self._verbs:
            raise VerbError(f"Verb '{name}' already registered")

        metadata = metadata.model_copy(update={"name": name, "category": category})
        for warning in metadata.warnings():
            logger.warning(warning)

        self._verbs[name] = metadata
        self._by_category.setdefault(category, []).append(name)

    def get(self, name: str) -> VerbMetadata | None:
        return self._verbs.get(name)

    def list(self) -> list[VerbMetadata]:
        return list(self._verbs.values())

    def list_by_category(self, category: VerbCategory | str) -> list[VerbMetadata]:
        """Verbs in a category, in the order they were registered."""
        category = VerbCategory(category)
        return [self._verbs[name] for name in self._by_category.get(category, [])]

    def list_by_media(self, media: MediaType | str) -> list[VerbMetadata]:
        media = MediaType(media)
        return [verb for verb in self._verbs.values() if verb.media == media]

    def categories(self) -> list[VerbCategory]:
        """Categories that hold at least one verb."""
        return list(self._by_category)

    def exists(self, name: str) -> bool:
        return name in self._verbs

    def __contains__(self, name: object) -> bool:
        return name in self._verbs

    def __len__(self) -> int:
        return len(self._verbs)
