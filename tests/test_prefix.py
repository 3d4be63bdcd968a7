"""Tests for the install log and prefix layout checks."""

import pytest

from winetricks.prefix import InstallLog, WinePrefix, is_verb_line


class TestInstallLog:

    def test_missing_log_is_empty(self, tmp_path):
        log = InstallLog(tmp_path)
        assert log.entries() == []
        assert not log.contains("corefonts")
        assert log.remove("corefonts") is False

    def test_append_creates_log(self, tmp_path):
        log = InstallLog(tmp_path / "new-prefix")
        log.append("corefonts")
        assert log.path.read_text() == "corefonts\n"
        assert log.contains("corefonts")

    @pytest.mark.parametrize("line", ["-corefonts", "#corefonts", "//corefonts", "corefonts=1", ""])
    def test_non_verb_lines(self, line):
        assert not is_verb_line(line)

    def test_filtered_lines_do_not_count(self, tmp_path):
        (tmp_path / "winetricks.log").write_text(
            "-q\n#corefonts\n//corefonts\nrenderer=vulkan\ncorefonts=1\n"
        )
        log = InstallLog(tmp_path)
        assert not log.contains("corefonts")
        assert log.entries() == []

    def test_whitespace_tolerated(self, tmp_path):
        (tmp_path / "winetricks.log").write_text("  vcrun2019  \r\ncorefonts\n")
        log = InstallLog(tmp_path)
        assert log.contains("vcrun2019")
        assert log.entries() == ["vcrun2019", "corefonts"]

    def test_entries_deduplicated(self, tmp_path):
        (tmp_path / "winetricks.log").write_text("a\nb\na\n")
        assert InstallLog(tmp_path).entries() == ["a", "b"]

    def test_remove_keeps_other_lines(self, tmp_path):
        (tmp_path / "winetricks.log").write_text("vcrun2019\n\ncorefonts\n  corefonts \nw_workaround=1\n")
        log = InstallLog(tmp_path)

        assert log.remove("corefonts") is True

        assert log.path.read_text() == "vcrun2019\nw_workaround=1\n"

    def test_remove_last_entry(self, tmp_path):
        log = InstallLog(tmp_path)
        log.append("corefonts")
        log.remove("corefonts")
        assert log.path.read_text() == ""


class TestWinePrefix:

    @pytest.fixture
    def prefix(self, tmp_path):
        (tmp_path / "drive_c" / "windows" / "system32").mkdir(parents=True)
        return WinePrefix(tmp_path)

    def test_exists(self, prefix, tmp_path):
        assert prefix.exists()
        assert not WinePrefix(tmp_path / "nothing").exists()

    def test_arch(self, prefix):
        assert prefix.detect_arch() == "win32"
        (prefix.drive_c / "windows" / "syswow64").mkdir()
        assert prefix.detect_arch() == "win64"

    def test_c_drive_path(self, prefix):
        target = prefix.drive_c / "windows" / "system32" / "d3dx9_43.dll"
        target.write_bytes(b"")
        assert prefix.windows_path_exists("C:\\windows\\system32\\d3dx9_43.dll")
        assert prefix.windows_path_exists("c:/windows/system32/d3dx9_43.dll")

    def test_other_drive(self, prefix):
        assert prefix.resolve_windows_path("D:\\setup.exe") == []

    def test_template_path(self, prefix):
        target = prefix.drive_c / "windows" / "system32" / "msvcp140.dll"
        target.write_bytes(b"")
        assert prefix.windows_path_exists("${W_SYSTEM32_DLLS_WIN}\\msvcp140.dll")

    def test_syswow64_on_win64(self, prefix):
        syswow64 = prefix.drive_c / "windows" / "syswow64"
        syswow64.mkdir()
        (syswow64 / "msvcp140.dll").write_bytes(b"")
        candidates = prefix.resolve_windows_path("${W_SYSTEM32_DLLS_WIN}\\msvcp140.dll")
        assert candidates[0] == syswow64 / "msvcp140.dll"
        assert prefix.windows_path_exists("${W_SYSTEM32_DLLS_WIN}\\msvcp140.dll")

    def test_lowercase_fonts_dir(self, prefix):
        fonts = prefix.drive_c / "windows" / "fonts"
        fonts.mkdir()
        (fonts / "arial.ttf").write_bytes(b"")
        assert prefix.windows_path_exists("${W_FONTSDIR_WIN}\\arial.ttf")
