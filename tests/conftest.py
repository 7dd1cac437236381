"""Pytest fixtures for promptpack tests."""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import pytest

from promptpack.config import PromptOptimizationConfig
from promptpack.context.fragments import CodeFragment, CodeUnitType, Fragment, TemplateFragment

STYLE_GUIDE = textwrap.dedent(
    """\
    # LLM Style Guide

    General conventions for all contributors.

    ## 1. Core Rules

    Keep methods small and focused.

    ### Testing Best Practices

    Write a failing test before the fix. Use descriptive spec names.

    ## Security Guidelines

    Always validate user input.
    Never log secrets or credentials.

    ## Naming Conventions

    Use snake_case for methods and CamelCase for classes.

    ```ruby
    # This is not a heading
    ```
    """
)

IMPLEMENT_TEMPLATE = textwrap.dedent(
    """\
    # Implement Feature

    Implement the feature with tests first. Follow the API conventions.
    """
)

REVIEW_TEMPLATE = "Review the architecture and note refactor candidates.\n"

USER_RB = textwrap.dedent(
    """\
    require "json"
    require_relative "base"

    module Accounts
      class User < Base
        def initialize(name)
          @name = name
        end

        def to_json(*args)
          { name: @name }.to_json(*args)
        end
      end
    end

    def helper_method; end
    """
)

USER_SERVICE_PY = textwrap.dedent(
    '''\
    """User service."""

    from __future__ import annotations

    from functools import cache
    from pathlib import Path


    class UserService:
        """Loads users."""

        class NotFound(Exception):
            pass

        def load(self, path: Path) -> str:
            return path.read_text()


    @cache
    def find_user(name: str) -> str:
        return name
    '''
)


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def sample_project(tmp_project: Path) -> Path:
    """Project with a style guide, two templates and two source files.

    Layout:
    - docs/LLM_STYLE_GUIDE.md (5 sections)
    - templates/implementation/implement_feature.md
    - templates/analysis/review_architecture.md
    - lib/user.rb
    - src/app/user_service.py
    """
    docs = tmp_project / "docs"
    docs.mkdir()
    (docs / "LLM_STYLE_GUIDE.md").write_text(STYLE_GUIDE)

    implementation = tmp_project / "templates" / "implementation"
    implementation.mkdir(parents=True)
    (implementation / "implement_feature.md").write_text(IMPLEMENT_TEMPLATE)

    analysis = tmp_project / "templates" / "analysis"
    analysis.mkdir(parents=True)
    (analysis / "review_architecture.md").write_text(REVIEW_TEMPLATE)

    lib = tmp_project / "lib"
    lib.mkdir()
    (lib / "user.rb").write_text(USER_RB)

    app = tmp_project / "src" / "app"
    app.mkdir(parents=True)
    (app / "user_service.py").write_text(USER_SERVICE_PY)

    return tmp_project


@pytest.fixture
def default_config() -> PromptOptimizationConfig:
    """Create a default optimization config."""
    return PromptOptimizationConfig()


@pytest.fixture
def make_style_fragment():
    """Factory for style guide fragments sized in tokens."""
    return _make_style_fragment


@pytest.fixture
def make_template():
    """Factory for template fragments."""
    return _make_template


@pytest.fixture
def make_code():
    """Factory for code fragments."""
    return _make_code


def _make_style_fragment(fragment_id: str, tokens: int = 10, tags: list[str] | None = None) -> Fragment:
    """Style guide fragment whose content estimates to exactly ``tokens``."""
    return Fragment(
        id=fragment_id,
        heading=fragment_id.replace("-", " ").title(),
        level=2,
        content="x" * (tokens * 4),
        tags=tags or [],
    )


def _make_template(category: str, name: str, content: str = "Template body", tags: list[str] | None = None) -> TemplateFragment:
    """Template fragment with a conventional id."""
    return TemplateFragment(
        id=f"{category}/{name}",
        name=name.replace("_", " ").title(),
        category=category,
        file_path=f"/project/templates/{category}/{name}.md",
        content=content,
        tags=tags or [category],
    )


def _make_code(
    file_path: str,
    name: str,
    *,
    unit_type: CodeUnitType = CodeUnitType.CLASS,
    content: str | None = None,
    line_start: int = 1,
    line_end: int = 3,
    tags: list[str] | None = None,
) -> CodeFragment:
    """Code fragment with an id derived from its path and name."""
    return CodeFragment(
        id=f"{file_path}:{name}",
        file_path=file_path,
        type=unit_type,
        name=name,
        content=content if content is not None else f"class {name}\nend",
        line_start=line_start,
        line_end=line_end,
        tags=tags if tags is not None else ["implementation"],
    )
