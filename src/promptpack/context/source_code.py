"""Source code fragmenter.

Splits source files into independently selectable code units: the
import block, each class (nested ones included) and each top-level
function. Python files are parsed with ``ast``; Ruby files with an
indentation-aware line scanner.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

import structlog

from promptpack.context.fragments import TEST_FILE_PATTERN, CodeFragment, CodeUnitType
from promptpack.context.keywords import extract_tags, merge_tags

logger = structlog.get_logger()

RUBY_REQUIRE = re.compile(r"^\s*require(_relative)?\s+")
RUBY_DEFINITION = re.compile(r"^(\s*)(class|module|def)\s+([^\s(;]+)")
RUBY_END = re.compile(r"^(\s*)end\b")
RUBY_ONE_LINER = re.compile(r";\s*end\s*$")


@dataclass
class _CodeUnit:
    type: CodeUnitType
    name: str
    line_start: int
    line_end: int
    content: str | None = None


def _readable_name(name: str) -> str:
    """``UserAuthService`` / ``load_user_auth`` → space separated words."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name)
    return re.sub(r"[_\W]+", " ", spaced)


def _python_units(content: str) -> list[_CodeUnit]:
    tree = ast.parse(content)
    lines = content.splitlines()
    units: list[_CodeUnit] = []

    import_nodes: list[ast.stmt] = []
    for node in tree.body:
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            import_nodes.append(node)
        elif isinstance(node, (ast.If, ast.Try)):
            # `if TYPE_CHECKING:` and `try: import x` guards.
            for child in ast.walk(node):
                if isinstance(child, (ast.Import, ast.ImportFrom)):
                    import_nodes.append(child)

    if import_nodes:
        line_numbers: list[int] = []
        for node in sorted(import_nodes, key=lambda n: n.lineno):
            end = node.end_lineno or node.lineno
            line_numbers.extend(n for n in range(node.lineno, end + 1) if n not in line_numbers)
        units.append(
            _CodeUnit(
                type=CodeUnitType.REQUIRES,
                name="requires",
                line_start=line_numbers[0],
                line_end=line_numbers[-1],
                content="\n".join(lines[n - 1] for n in line_numbers),
            )
        )

    def start_line(node: ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef) -> int:
        return min([node.lineno] + [d.lineno for d in node.decorator_list])

    classes = [n for n in ast.walk(tree) if isinstance(n, ast.ClassDef)]
    for node in sorted(classes, key=lambda n: n.lineno):
        units.append(
            _CodeUnit(
                type=CodeUnitType.CLASS,
                name=node.name,
                line_start=start_line(node),
                line_end=node.end_lineno or node.lineno,
            )
        )

    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            units.append(
                _CodeUnit(
                    type=CodeUnitType.METHOD,
                    name=node.name,
                    line_start=start_line(node),
                    line_end=node.end_lineno or node.lineno,
                )
            )

    return units


def _ruby_units(content: str) -> list[_CodeUnit]:
    lines = content.splitlines()
    units: list[_CodeUnit] = []

    require_lines = [idx + 1 for idx, line in enumerate(lines) if RUBY_REQUIRE.match(line)]
    if require_lines:
        units.append(
            _CodeUnit(
                type=CodeUnitType.REQUIRES,
                name="requires",
                line_start=require_lines[0],
                line_end=require_lines[-1],
                content="\n".join(lines[n - 1] for n in require_lines),
            )
        )

    # (keyword, name, indent, 1-indexed start line)
    open_units: list[tuple[str, str, int, int]] = []
    definitions: list[_CodeUnit] = []

    def emit(keyword: str, name: str, start: int, end: int, enclosing: list[tuple[str, str, int, int]]) -> None:
        if name == "<<":
            return
        if keyword in ("class", "module"):
            definitions.append(_CodeUnit(CodeUnitType.CLASS, name, start, end))
        elif not any(k in ("class", "module") for k, *_ in enclosing):
            definitions.append(_CodeUnit(CodeUnitType.METHOD, name, start, end))

    for idx, line in enumerate(lines):
        lineno = idx + 1
        match = RUBY_DEFINITION.match(line)
        if match:
            keyword, name = match.group(2), match.group(3)
            if RUBY_ONE_LINER.search(line):
                emit(keyword, name, lineno, lineno, open_units)
            else:
                open_units.append((keyword, name, len(match.group(1)), lineno))
            continue

        end_match = RUBY_END.match(line)
        if end_match and open_units and open_units[-1][2] == len(end_match.group(1)):
            keyword, name, _, start = open_units.pop()
            emit(keyword, name, start, lineno, open_units)

    # Unterminated definitions run to the end of the file.
    while open_units:
        keyword, name, _, start = open_units.pop()
        emit(keyword, name, start, len(lines), open_units)

    units.extend(sorted(definitions, key=lambda u: (u.line_start, u.type != CodeUnitType.CLASS)))
    return units


def _pad_methods(units: list[_CodeUnit], context_lines: int, line_count: int) -> None:
    for unit in units:
        if unit.type == CodeUnitType.METHOD:
            unit.line_start = max(unit.line_start - context_lines, 1)
            unit.line_end = min(unit.line_end + context_lines, line_count)


PARSERS: dict[str, Callable[[str], list[_CodeUnit]]] = {
    ".py": _python_units,
    ".rb": _ruby_units,
}


class SourceCodeFragmenter:
    """Fragments source files into code units.

    Example:
        >>> fragmenter = SourceCodeFragmenter(Path("/project"))
        >>> fragmenter.fragment_file("lib/user.rb")
    """

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = Path(project_dir)

    @staticmethod
    def supported_extensions() -> list[str]:
        """Extensions recognized as source files."""
        return sorted(PARSERS)

    def fragment_file(self, file_path: str | Path, context_lines: int = 0) -> list[CodeFragment]:
        """Fragment one source file.

        Args:
            file_path: Path relative to the project root, or absolute.
            context_lines: Lines of surrounding code added to each
                top-level function, clamped to the file.

        Returns:
            Code fragments; empty for missing, unreadable, unparsable or
            unsupported files.
        """
        abs_path = Path(file_path)
        if not abs_path.is_absolute():
            abs_path = self.project_dir / abs_path

        parser = PARSERS.get(abs_path.suffix)
        if parser is None:
            return []

        log = logger.bind(file=str(abs_path))
        try:
            if not abs_path.is_file():
                return []
            content = abs_path.read_text(encoding="utf-8")
            units = parser(content)
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Failed to read source file", error=str(e))
            return []
        except (SyntaxError, ValueError) as e:
            log.warning("Failed to parse source file", error=str(e))
            return []

        if context_lines > 0:
            _pad_methods(units, context_lines, len(content.splitlines()))

        fragments = self._to_fragments(abs_path, content, units)
        log.debug("Source file fragmented", count=len(fragments))
        return fragments

    def fragment_files(self, file_paths: Iterable[str | Path], context_lines: int = 0) -> list[CodeFragment]:
        """Fragment several files, skipping the ones that yield nothing."""
        fragments: list[CodeFragment] = []
        seen: set[str] = set()
        for path in file_paths:
            key = str(path).strip()
            if not key or key in seen:
                continue
            seen.add(key)
            fragments.extend(self.fragment_file(key, context_lines=context_lines))
        return fragments

    def _to_fragments(self, abs_path: Path, content: str, units: list[_CodeUnit]) -> list[CodeFragment]:
        lines = content.splitlines()
        try:
            display_path = abs_path.relative_to(self.project_dir).as_posix()
        except ValueError:
            display_path = abs_path.as_posix()
        is_test = bool(TEST_FILE_PATTERN.search(abs_path.as_posix()))

        fragments: list[CodeFragment] = []
        used_ids: set[str] = set()
        for unit in units:
            fragment_id = f"{display_path}:{unit.name}"
            if fragment_id in used_ids:
                fragment_id = f"{fragment_id}@{unit.line_start}"
            used_ids.add(fragment_id)

            body = unit.content
            if body is None:
                body = "\n".join(lines[unit.line_start - 1 : unit.line_end])

            base_tags = [] if unit.type == CodeUnitType.REQUIRES else ["implementation"]
            fragments.append(
                CodeFragment(
                    id=fragment_id,
                    file_path=abs_path.as_posix(),
                    type=unit.type,
                    name=unit.name,
                    content=body,
                    line_start=unit.line_start,
                    line_end=unit.line_end,
                    tags=merge_tags(
                        base_tags,
                        ["testing"] if is_test else [],
                        extract_tags(_readable_name(unit.name)) if unit.type != CodeUnitType.REQUIRES else [],
                    ),
                )
            )
        return fragments
