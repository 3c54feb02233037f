"""Tests for file_handler: path confinement, encoding-aware read/write, note revisions."""

import json

import pytest

from docsync.file_handler import (
    read_text_file,
    resolve_within,
    text_revision,
    write_json_atomic,
    write_text_file,
)

# =============================================================================
# resolve_within
# =============================================================================


class TestResolveWithin:
    """Tests for resolve_within(base_dir, relative)."""

    def test_inside(self, tmp_path):
        result = resolve_within(tmp_path, "notes/a.md")
        assert result == (tmp_path / "notes" / "a.md").resolve()

    def test_escape_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="outside base directory"):
            resolve_within(tmp_path, "../other.md")

    def test_absolute_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="must be relative"):
            resolve_within(tmp_path, "/etc/passwd")

    def test_empty_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="must be relative"):
            resolve_within(tmp_path, "")

    def test_symlink_out_of_base_rejected(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        base = tmp_path / "base"
        base.mkdir()
        (base / "link").symlink_to(outside)
        with pytest.raises(ValueError, match="outside base directory"):
            resolve_within(base, "link/a.md")


# =============================================================================
# read_text_file
# =============================================================================


class TestReadTextFile:
    """Tests for read_text_file(path)."""

    def test_utf8_file(self, tmp_path):
        f = tmp_path / "utf8.md"
        f.write_text("# 見出し\n\n本文です。\n", encoding="utf-8")
        content, encoding = read_text_file(f)
        assert content == "# 見出し\n\n本文です。\n"
        assert encoding in ("utf-8", "utf_8")

    def test_ascii_reported_as_utf8(self, tmp_path):
        f = tmp_path / "ascii.md"
        f.write_text("plain text only", encoding="ascii")
        assert read_text_file(f) == ("plain text only", "utf-8")

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.md"
        f.write_bytes(b"")
        assert read_text_file(f) == ("", "utf-8")

    def test_non_utf8_file(self, tmp_path):
        f = tmp_path / "latin.md"
        f.write_bytes(
            "Le café est très chaud, la crème brûlée aussi.".encode("latin-1")
        )
        content, encoding = read_text_file(f)
        assert "caf" in content
        assert encoding != "utf-8"


# =============================================================================
# write_text_file / write_json_atomic
# =============================================================================


class TestWriteTextFile:
    def test_write_basic(self, tmp_path):
        f = tmp_path / "out.md"
        assert write_text_file(f, "héllo") == len("héllo".encode("utf-8"))
        assert f.read_text(encoding="utf-8") == "héllo"

    def test_creates_parent_directories(self, tmp_path):
        f = tmp_path / "a" / "b" / "c.md"
        write_text_file(f, "x")
        assert f.exists()


class TestWriteJsonAtomic:
    def test_writes_json(self, tmp_path):
        target = tmp_path / "state" / "contents.json"
        write_json_atomic(target, {"title": "日本語"})
        assert json.loads(target.read_text(encoding="utf-8")) == {
            "title": "日本語"
        }
        assert "日本語" in target.read_text(encoding="utf-8")

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / "s.json"
        write_json_atomic(target, {"v": 1})
        write_json_atomic(target, {"v": 2})
        assert json.loads(target.read_text()) == {"v": 2}

    def test_failure_leaves_no_temp_file(self, tmp_path):
        target = tmp_path / "s.json"
        write_json_atomic(target, {"v": 1})
        with pytest.raises(TypeError):
            write_json_atomic(target, {"v": object()})
        assert list(tmp_path.glob("*.tmp")) == []
        assert json.loads(target.read_text()) == {"v": 1}


# =============================================================================
# text_revision
# =============================================================================


class TestTextRevision:
    def test_stable(self):
        assert text_revision("a\nb") == text_revision("a\nb")

    def test_line_endings_ignored(self):
        assert text_revision("a\r\nb\r\n") == text_revision("a\nb")

    def test_trailing_whitespace_ignored(self):
        assert text_revision("a  \nb\t\n\n\n") == text_revision("a\nb")

    def test_bom_ignored(self):
        assert text_revision("\ufeffa") == text_revision("a")

    def test_content_change_detected(self):
        assert text_revision("a\nb") != text_revision("a\nc")

    def test_leading_whitespace_significant(self):
        assert text_revision("  a") != text_revision("a")
