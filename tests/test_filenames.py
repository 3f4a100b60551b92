"""Tests for filename sanitization and MIME lookup"""
import pytest

from storage.filenames import DEFAULT_FILENAME, DEFAULT_MIME_TYPE, mime_type_for, sanitize_filename


class TestSanitizeFilename:
    """sanitize_filename keeps only a safe final component"""

    @pytest.mark.parametrize("name", [
        "../../etc/passwd",
        "a/b/c.txt",
        "..\\..\\windows\\system32",
        "dir/",
        "/",
        "\\",
        "mixed/slash\\name.pdf",
    ])
    def test_separators_never_survive(self, name):
        result = sanitize_filename(name)
        assert "/" not in result
        assert "\\" not in result
        assert result

    def test_keeps_last_component(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("C:\\Users\\me\\report.pdf") == "report.pdf"

    @pytest.mark.parametrize("name", [".", "..", "...", "....."])
    def test_dots_only_becomes_default(self, name):
        assert sanitize_filename(name) == DEFAULT_FILENAME

    def test_empty_becomes_default(self):
        assert sanitize_filename("") == "file"

    def test_leading_dots_stripped(self):
        """Hidden-file names lose their leading dots"""
        assert sanitize_filename(".bashrc") == "bashrc"
        assert sanitize_filename("..hidden.txt") == "hidden.txt"

    def test_plain_name_unchanged(self):
        assert sanitize_filename("report.pdf") == "report.pdf"


class TestMimeTypeFor:
    """mime_type_for maps extensions case-insensitively"""

    def test_known_extensions(self):
        assert mime_type_for("report.pdf") == "application/pdf"
        assert mime_type_for("notes.txt") == "text/plain"
        assert mime_type_for("photo.png") == "image/png"

    def test_extension_case_ignored(self):
        assert mime_type_for("PHOTO.PNG") == "image/png"

    def test_unknown_extension_falls_back(self):
        assert mime_type_for("archive.weird") == DEFAULT_MIME_TYPE

    def test_no_extension_falls_back(self):
        assert mime_type_for("Makefile") == "application/octet-stream"
