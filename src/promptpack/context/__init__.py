"""Indexing of style guides, templates and source code into fragments."""

from promptpack.context.fragments import (
    CodeFragment,
    CodeUnitType,
    Fragment,
    FragmentKind,
    Scorable,
    TemplateFragment,
    estimate_tokens,
)
from promptpack.context.keywords import TAG_PATTERNS, extract_tags, merge_tags
from promptpack.context.source_code import SourceCodeFragmenter
from promptpack.context.style_guide import StyleGuideIndexer
from promptpack.context.templates import TemplateIndexer

__all__ = [
    # Fragments
    "CodeFragment",
    "CodeUnitType",
    "Fragment",
    "FragmentKind",
    "Scorable",
    "TemplateFragment",
    "estimate_tokens",
    # Keywords
    "TAG_PATTERNS",
    "extract_tags",
    "merge_tags",
    # Indexers
    "SourceCodeFragmenter",
    "StyleGuideIndexer",
    "TemplateIndexer",
]
