"""Tests for input validators (document paths and commit ids)."""

import pytest

from docsync.validators import (
    format_validation_error,
    validate_commit_id,
    validate_document_path,
)


def test_format_validation_error():
    assert format_validation_error("Path", "cannot be empty") == (
        "Path cannot be empty"
    )


class TestValidateDocumentPath:
    @pytest.mark.parametrize(
        "path", ["a.md", "docs/a.md", "docs/sub dir/b.md", ".obsidian/x.md"]
    )
    def test_valid(self, path):
        assert validate_document_path(path) == (True, "")

    @pytest.mark.parametrize(
        "path, reason",
        [
            ("", "cannot be empty"),
            ("   ", "cannot be empty"),
            ("/etc/passwd", "must be relative"),
            ("docs\\a.md", "forward slashes"),
            ("docs/../a.md", "cannot contain '..'"),
            ("docs//a.md", "empty path segments"),
            ("docs/", "empty path segments"),
        ],
    )
    def test_invalid(self, path, reason):
        ok, message = validate_document_path(path)
        assert not ok
        assert reason in message


class TestValidateCommitId:
    def test_valid(self):
        assert validate_commit_id("9f1c2ab") == (True, "")

    @pytest.mark.parametrize("commit_id", ["", "  "])
    def test_empty(self, commit_id):
        assert validate_commit_id(commit_id) == (
            False,
            "Commit id cannot be empty",
        )

    def test_whitespace_rejected(self):
        ok, message = validate_commit_id("abc def")
        assert not ok
        assert message == "Commit id cannot contain whitespace"
