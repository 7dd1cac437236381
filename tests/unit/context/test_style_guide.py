"""Tests for the style guide indexer."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from promptpack.context.style_guide import StyleGuideIndexer, slugify


def write_guide(project: Path, content: str) -> None:
    docs = project / "docs"
    docs.mkdir(exist_ok=True)
    (docs / "LLM_STYLE_GUIDE.md").write_text(textwrap.dedent(content))


@pytest.mark.parametrize(
    ("heading", "expected"),
    [
        ("Security Guidelines", "security-guidelines"),
        ("1. Core Rules", "1-core-rules"),
        ("  Naming & Style!  ", "naming-style"),
        ("C++ / Rust", "c-rust"),
    ],
)
def test_slugify(heading: str, expected: str) -> None:
    """Non-alphanumeric runs collapse to one hyphen, trimmed."""
    assert slugify(heading) == expected


class TestStyleGuideIndexer:
    """Tests for StyleGuideIndexer."""

    def test_missing_file_yields_nothing(self, tmp_project: Path) -> None:
        """A project without a style guide indexes to an empty list."""
        indexer = StyleGuideIndexer(tmp_project)

        assert indexer.index() == []
        assert indexer.all_tags() == []

    def test_nested_sections_do_not_overlap(self, tmp_project: Path) -> None:
        """A subsection is its own fragment and not part of its parent."""
        write_guide(
            tmp_project,
            """\
            ## 1. Core Rules

            Keep it simple.

            ### Testing Best Practices

            Test every branch.
            """,
        )

        fragments = StyleGuideIndexer(tmp_project).index()

        assert [(f.heading, f.level) for f in fragments] == [
            ("1. Core Rules", 2),
            ("Testing Best Practices", 3),
        ]
        assert fragments[0].content == "Keep it simple."
        assert "Test every branch" not in fragments[0].content
        assert fragments[1].content == "Test every branch."

    def test_sample_guide(self, sample_project: Path) -> None:
        """The sample guide yields one fragment per heading with tags."""
        indexer = StyleGuideIndexer(sample_project)
        fragments = indexer.index()

        assert [f.id for f in fragments] == [
            "llm-style-guide",
            "1-core-rules",
            "testing-best-practices",
            "security-guidelines",
            "naming-conventions",
        ]
        security = indexer.find_by_id("security-guidelines")
        assert security is not None
        assert "Always validate user input." in security.content
        assert security.tags == ["security", "logging"]

    def test_headings_inside_code_fences_are_content(self, sample_project: Path) -> None:
        """A '#' line inside a fenced block does not open a section."""
        indexer = StyleGuideIndexer(sample_project)
        indexer.index()

        naming = indexer.find_by_id("naming-conventions")
        assert naming is not None
        assert "# This is not a heading" in naming.content
        assert indexer.find_by_id("this-is-not-a-heading") is None

    def test_duplicate_headings_get_unique_ids(self, tmp_project: Path) -> None:
        """Repeated headings are suffixed to keep ids unique."""
        write_guide(
            tmp_project,
            """\
            ## Examples
            one
            ## Examples
            two
            ## Examples
            three
            """,
        )

        fragments = StyleGuideIndexer(tmp_project).index()

        assert [f.id for f in fragments] == ["examples", "examples-2", "examples-3"]

    def test_text_before_first_heading_is_ignored(self, tmp_project: Path) -> None:
        """Only headed sections become fragments."""
        write_guide(
            tmp_project,
            """\
            Preamble without heading.

            # Title
            Body
            """,
        )

        fragments = StyleGuideIndexer(tmp_project).index()

        assert len(fragments) == 1
        assert fragments[0].content == "Body"

    def test_find_fragments_combines_filters(self, sample_project: Path) -> None:
        """Every given criterion must hold."""
        indexer = StyleGuideIndexer(sample_project)
        indexer.index()

        assert [f.id for f in indexer.find_fragments(tags=["testing"])] == ["testing-best-practices"]
        assert [f.id for f in indexer.find_fragments(heading="rules|naming")] == [
            "1-core-rules",
            "naming-conventions",
        ]
        assert [f.id for f in indexer.find_fragments(min_level=3)] == ["testing-best-practices"]
        assert [f.id for f in indexer.find_fragments(max_level=1)] == ["llm-style-guide"]
        assert indexer.find_fragments(tags=["security"], max_level=1) == []

    def test_all_tags_sorted_unique(self, sample_project: Path) -> None:
        """all_tags returns the sorted union."""
        indexer = StyleGuideIndexer(sample_project)
        indexer.index()

        tags = indexer.all_tags()
        assert tags == sorted(set(tags))
        assert {"security", "testing", "naming", "style"} <= set(tags)

    def test_custom_location(self, tmp_project: Path) -> None:
        """The style guide path is configurable."""
        (tmp_project / "GUIDE.md").write_text("# Only\nBody\n")

        fragments = StyleGuideIndexer(tmp_project, "GUIDE.md").index()

        assert [f.id for f in fragments] == ["only"]

    def test_undecodable_file_degrades(self, tmp_project: Path) -> None:
        """Unreadable content yields no fragments instead of raising."""
        docs = tmp_project / "docs"
        docs.mkdir()
        (docs / "LLM_STYLE_GUIDE.md").write_bytes(b"# Title\n\xff\xfe\xfa")

        assert StyleGuideIndexer(tmp_project).index() == []

    def test_unresolvable_path_degrades(self, tmp_project: Path) -> None:
        """A style guide path the filesystem rejects yields no fragments."""
        indexer = StyleGuideIndexer(tmp_project, "docs/" + "x" * 300 + ".md")

        assert indexer.index() == []
