"""Tests for verb descriptors and the verb registry."""

import json

import pytest

from winetricks.errors import VerbError, WinetricksIOError
from winetricks.verb import MediaType, VerbCategory, VerbFile, VerbMetadata, VerbRegistry

from conftest import write_verb

SHA = "a" * 64


class TestVerbMetadata:

    def test_defaults(self):
        verb = VerbMetadata(category="dlls", title="Test")
        assert verb.media == MediaType.DOWNLOAD
        assert verb.files == []
        assert verb.conflicts == []

    def test_year_accepts_integer(self):
        verb = VerbMetadata(category="apps", title="App", year=2019)
        assert verb.year == "2019"

    def test_sha256_normalized_to_lowercase(self):
        file = VerbFile(filename="a.exe", sha256="A" * 64)
        assert file.sha256 == "a" * 64

    @pytest.mark.parametrize("bad", ["abc", "g" * 64, "a" * 63])
    def test_invalid_sha256_rejected(self, bad):
        with pytest.raises(ValueError):
            VerbFile(filename="a.exe", sha256=bad)

    @pytest.mark.parametrize("bad", ["dir/a.exe", "..\\a.exe", ""])
    def test_filename_must_be_basename(self, bad):
        with pytest.raises(ValueError):
            VerbFile(filename=bad)

    def test_duplicate_filenames_rejected(self):
        with pytest.raises(ValueError):
            VerbMetadata(
                category="dlls",
                title="Dup",
                files=[{"filename": "x.exe"}, {"filename": "x.exe"}],
            )

    def test_conflicts_deduplicated(self):
        verb = VerbMetadata(category="dlls", title="T", conflicts=["b", "a", "b"])
        assert verb.conflicts == ["b", "a"]

    def test_missing_url_is_only_a_warning(self):
        verb = VerbMetadata(name="f", category="fonts", title="F", files=[{"filename": "f.exe"}])
        assert verb.warnings()

    def test_manual_download_without_url_has_no_warning(self):
        verb = VerbMetadata(
            name="m", category="apps", title="M", media="manual_download",
            files=[{"filename": "m.exe"}],
        )
        assert verb.warnings() == []

    def test_load_uses_stem_as_name(self, tmp_path):
        path = write_verb(tmp_path, "dlls", "real_name", name="other_name")
        assert VerbMetadata.load(path).name == "real_name"

    def test_load_malformed_json(self, tmp_path):
        path = tmp_path / "dlls" / "broken.json"
        path.parent.mkdir()
        path.write_text("{not json")
        with pytest.raises(VerbError):
            VerbMetadata.load(path)

    def test_save_and_load(self, tmp_path):
        verb = VerbMetadata(
            name="vcrun2019",
            category="dlls",
            title="Visual C++ 2015-2019",
            publisher="Microsoft",
            files=[{"filename": "vc_redist.x86.exe", "url": "https://example.com/vc.exe", "sha256": SHA}],
            conflicts=["vcrun2017"],
        )
        path = verb.save(tmp_path)
        assert path == tmp_path / "dlls" / "vcrun2019.json"
        assert "installed_file" not in json.loads(path.read_text())
        assert VerbMetadata.load(path) == verb


class TestVerbRegistry:

    def test_list_by_category(self, verbs_dir):
        for name in ("a", "b", "c"):
            write_verb(verbs_dir, "dlls", name, files=[{"filename": f"{name}.exe", "url": "https://x"}])

        registry = VerbRegistry.load_from_dir(verbs_dir)
        names = [v.name for v in registry.list_by_category(VerbCategory.DLLS)]

        assert len(names) == 3
        assert set(names) == {"a", "b", "c"}

    def test_every_loaded_verb_appears_once_in_its_category(self, verbs_dir):
        write_verb(verbs_dir, "fonts", "corefonts", files=[{"filename": "arial32.exe", "url": "https://x"}])
        write_verb(verbs_dir, "settings", "win10")
        write_verb(verbs_dir, "apps", "7zip", files=[{"filename": "7z.exe", "url": "https://x"}])

        registry = VerbRegistry.load_from_dir(verbs_dir)
        for verb in registry.list():
            names = [v.name for v in registry.list_by_category(verb.category)]
            assert names.count(verb.name) == 1

    def test_directory_overrides_category(self, verbs_dir):
        write_verb(verbs_dir, "fonts", "tahoma")
        (verbs_dir / "fonts" / "tahoma.json").write_text(
            json.dumps({"category": "dlls", "title": "Tahoma"})
        )
        registry = VerbRegistry.load_from_dir(verbs_dir)
        assert registry.get("tahoma").category == VerbCategory.FONTS

    def test_unknown_directories_and_files_ignored(self, verbs_dir):
        write_verb(verbs_dir, "dlls", "d3dx9")
        (verbs_dir / "dlls" / "README.txt").write_text("notes")
        (verbs_dir / "templates").mkdir()
        (verbs_dir / "templates" / "x.json").write_text("{}")
        (verbs_dir / "stray.json").write_text("{}")

        registry = VerbRegistry.load_from_dir(verbs_dir)
        assert len(registry) == 1
        assert registry.exists("d3dx9")

    def test_duplicate_name_across_categories(self, verbs_dir):
        write_verb(verbs_dir, "dlls", "dup")
        write_verb(verbs_dir, "apps", "dup")
        with pytest.raises(VerbError, match="already registered"):
            VerbRegistry.load_from_dir(verbs_dir)

    def test_malformed_document_fails_whole_load(self, verbs_dir):
        write_verb(verbs_dir, "dlls", "good")
        (verbs_dir / "dlls" / "bad.json").write_text("[")
        with pytest.raises(VerbError):
            VerbRegistry.load_from_dir(verbs_dir)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(WinetricksIOError):
            VerbRegistry.load_from_dir(tmp_path / "nope")

    def test_manual_download_category_directory(self, verbs_dir):
        write_verb(verbs_dir, "manual-download", "office", media="manual_download")
        registry = VerbRegistry.load_from_dir(verbs_dir)
        assert [v.name for v in registry.list_by_category("manual-download")] == ["office"]
        assert [v.name for v in registry.list_by_media(MediaType.MANUAL_DOWNLOAD)] == ["office"]

    def test_get_unknown(self):
        registry = VerbRegistry()
        assert registry.get("nothing") is None
        assert not registry.exists("nothing")
        assert "nothing" not in registry
