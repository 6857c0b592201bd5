"""Tests for file_handler module: encoding-aware read and atomic write."""

import pytest

from backlog_jira_sync.file_handler import read_file_with_encoding, write_file

# =============================================================================
# read_file_with_encoding
# =============================================================================


class TestReadFileWithEncoding:
    """Tests for read_file_with_encoding(path)."""

    def test_utf8_file(self, tmp_path):
        """UTF-8 file returns content and 'utf-8' encoding."""
        f = tmp_path / "task-1 - Fix.md"
        f.write_text("---\nid: task-1\n---\n", encoding="utf-8")
        content, encoding = read_file_with_encoding(f)
        assert content == "---\nid: task-1\n---\n"
        assert encoding == "utf-8"

    def test_empty_file(self, tmp_path):
        """Empty file returns empty string and 'utf-8' default encoding."""
        f = tmp_path / "empty.md"
        f.write_bytes(b"")
        content, encoding = read_file_with_encoding(f)
        assert content == ""
        assert encoding == "utf-8"

    def test_non_utf8_file(self, tmp_path):
        """Non-UTF-8 file detects encoding and returns decoded content."""
        f = tmp_path / "latin1.md"
        text = (
            "Café résumé naïve üöä"
        )
        f.write_bytes(text.encode("latin-1"))
        content, encoding = read_file_with_encoding(f)
        assert "Caf" in content
        assert isinstance(encoding, str)


# =============================================================================
# write_file
# =============================================================================


class TestWriteFile:
    """Tests for write_file(path, content, encoding)."""

    def test_write_basic(self, tmp_path):
        """Writes content and returns bytes written count."""
        f = tmp_path / "output.md"
        count = write_file(f, "Hello, world!")
        assert f.read_text(encoding="utf-8") == "Hello, world!"
        assert count == len("Hello, world!".encode("utf-8"))

    def test_creates_parent_directories(self, tmp_path):
        """Creates parent directories if they don't exist."""
        f = tmp_path / "backlog" / "tasks" / "task-1.md"
        count = write_file(f, "nested content")
        assert f.read_text(encoding="utf-8") == "nested content"
        assert count > 0

    def test_write_with_encoding(self, tmp_path):
        """Writes with specified encoding."""
        f = tmp_path / "latin.md"
        text = "Café"
        count = write_file(f, text, encoding="latin-1")
        assert f.read_bytes() == text.encode("latin-1")
        assert count == len(text.encode("latin-1"))

    def test_replaces_existing_file(self, tmp_path):
        """Overwrites in place and leaves no temp files behind."""
        f = tmp_path / "task.md"
        f.write_text("old", encoding="utf-8")
        write_file(f, "new")
        assert f.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["task.md"]

    def test_failed_encode_keeps_original(self, tmp_path):
        """An unencodable string raises before the original is touched."""
        f = tmp_path / "task.md"
        f.write_text("old", encoding="utf-8")
        with pytest.raises(UnicodeEncodeError):
            write_file(f, "☃", encoding="ascii")
        assert f.read_text(encoding="utf-8") == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["task.md"]
