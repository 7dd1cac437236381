"""Tests for the shared keyword table."""

from __future__ import annotations

from promptpack.context.keywords import TAG_PATTERNS, extract_tags, merge_tags


class TestExtractTags:
    """Tests for extract_tags."""

    def test_matches_keywords_case_insensitively(self) -> None:
        """Keywords match regardless of case."""
        assert extract_tags("SECURITY review of the Login flow") == ["security"]

    def test_multiple_texts_are_scanned(self) -> None:
        """Every text contributes, each tag reported once."""
        tags = extract_tags("Write unit tests", "Add pytest fixtures", "Log errors")
        assert tags == ["testing", "error", "logging"]

    def test_tags_follow_table_order(self) -> None:
        """Tags come out in table order, not text order."""
        tags = extract_tags("database migration for the api endpoint with tests")
        order = list(TAG_PATTERNS)
        assert tags == sorted(tags, key=order.index)
        assert tags[0] == "testing"

    def test_none_and_empty(self) -> None:
        """None and empty texts produce no tags."""
        assert extract_tags(None) == []
        assert extract_tags("", None) == []

    def test_word_boundaries(self) -> None:
        """Short keywords only match whole words."""
        assert "ui" not in extract_tags("build a quick guide")
        assert "ui" in extract_tags("polish the UI")
        assert "api" not in extract_tags("capital letters")


class TestMergeTags:
    """Tests for merge_tags."""

    def test_lowercases_and_dedupes(self) -> None:
        """Tags are normalized and first occurrence wins."""
        assert merge_tags(["Security", "testing"], ["security", "API"]) == ["security", "testing", "api"]

    def test_skips_empty_groups_and_blank_tags(self) -> None:
        """None groups and blank tags are ignored."""
        assert merge_tags(None, ["", "  "], ("ui",)) == ["ui"]
