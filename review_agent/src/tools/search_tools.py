# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Text search and symbol lookup tools.

Search results are grouped per file and rendered in the same style as the
file viewer, with <FILE>, <PATH>, <LINES> and <CONTENT> sections.
"""

import re
import logging

from pathlib import Path
from typing import AsyncIterator, Literal, Optional
from pydantic import Field

from .base_tool import BaseTool
from ..utils.paths import PathOutsideRepositoryError, resolve_in_repo, to_repo_relative
from ..utils.symbols import Symbol, extract_symbols, is_code_file, iter_symbols
from ..utils.file_discovery import (
    GlobMatcher,
    is_probably_binary,
    read_text_lines,
    walk_files,
)
from ..utils.cancellation import CancellationToken
from ..types.tool_types import ToolResult, tool_error, tool_success
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SymbolKind = Literal["class", "interface", "enum", "function", "method", "variable", "constant"]

# Files larger than this are skipped by the search tools
MAX_SEARCH_FILE_BYTES = 2_000_000

MatchLine = tuple[int, str, bool]  # (line number, content, is_match)


def format_viewer_style(results: list[tuple[str, list[MatchLine]]], omitted_count: int, hint: str) -> str:
    """Format per-file match lines in a style similar to the file viewer."""
    if not results:
        return "No matches found."

    formatted_output = []
    for filepath, matches in results:
        formatted_output.append("<FILE>")
        formatted_output.append(f"<PATH>{filepath}</PATH>")
        if matches:
            max_line = max(line for line, _, _ in matches)
            formatted_output.append(f"<LINES>{max_line}</LINES>")
            formatted_output.append("<CONTENT>")
            line_width = len(str(max_line))
            for line, content, is_match in sorted(matches, key=lambda m: m[0]):
                # Context lines are indented by one extra space
                prefix = "" if is_match else " "
                formatted_output.append(f"{str(line).rjust(line_width)} |{prefix}{content}")
            formatted_output.append("</CONTENT>")
        formatted_output.append("</FILE>")

    if omitted_count > 0:
        formatted_output.append(
            f"\nNote: {omitted_count} additional matches were omitted due to the global limit. {hint}"
        )
    return "\n".join(formatted_output)


def _with_context(lines: list[str], match_lines: list[int], context_lines: int) -> list[MatchLine]:
    """Merge matched line numbers (1-based) with their surrounding context lines."""
    matched = set(match_lines)
    shown: dict[int, bool] = {}
    for line_no in match_lines:
        lo = max(1, line_no - context_lines)
        hi = min(len(lines), line_no + context_lines)
        for n in range(lo, hi + 1):
            shown[n] = shown.get(n, False) or n in matched
    return [(n, lines[n - 1], shown[n]) for n in sorted(shown)]


async def _single_file(path: Path) -> AsyncIterator[Path]:
    yield path


async def _iter_text_files(
    root: Path,
    target: Path,
    cancellation: Optional[CancellationToken],
    code_only: bool = False,
) -> AsyncIterator[tuple[Path, str]]:
    """Yield (path, repo-relative path) for readable text files at or below ``target``."""
    paths = _single_file(target) if target.is_file() else walk_files(target, cancellation)
    async for path in paths:
        rel = to_repo_relative(root, path)
        if code_only and not is_code_file(rel):
            continue
        try:
            if path.stat().st_size > MAX_SEARCH_FILE_BYTES:
                continue
        except OSError:
            continue
        if is_probably_binary(path):
            continue
        yield path, rel


def _resolve_target(context: ExecutionContext, relative_path: Optional[str]) -> tuple[Path, Path]:
    root = context.resolve_root()
    target = resolve_in_repo(root, relative_path or ".")
    if not target.exists():
        raise FileNotFoundError(f"Path does not exist: {relative_path}")
    return root, target


class SearchForPattern(BaseTool):
    """Regex search across repository files with context and line numbers"""

    TOOL_NAME = "search_for_pattern"
    TOOL_DESCRIPTION = """Search file contents for a regular expression (Python `re` syntax).

Key Features:
- Optional include glob to filter files (e.g. "*.py", "src/**/*.ts")
- Optional sub-path to restrict the search to a directory or a single file
- Shows context lines around matches with line numbers in the left gutter
- Limits the total number of matches across all files; the output notes how many were omitted
- Groups results by file

Output format matches the file viewer style with <FILE>, <PATH>, <LINES>, and <CONTENT> sections.
"""

    pattern: str = Field(
        ...,
        description="The regex pattern to search for in file contents",
        min_length=1,
    )
    include: Optional[str] = Field(
        default=None,
        description='Optional glob pattern to filter files (e.g. "*.py", "src/**/*.js")',
    )
    path: Optional[str] = Field(
        default=None,
        description='Optional relative path to search within (e.g. "src", "src/components")',
    )
    case_sensitive: bool = Field(
        default=True,
        description="Whether the search should be case-sensitive",
    )
    context_lines: int = Field(
        default=1,
        description="Number of context lines to show before and after matches",
        ge=0,
        le=5,
    )
    max_matches: int = Field(
        default=50,
        description="Maximum total number of matches to return across all files",
        ge=1,
        le=500,
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        try:
            regex = re.compile(self.pattern, 0 if self.case_sensitive else re.IGNORECASE)
        except re.error as e:
            return tool_error(f"Invalid regex pattern '{self.pattern}': {e}")

        try:
            root, target = _resolve_target(context, self.path)
            include = GlobMatcher(self.include) if self.include else None
        except (PathOutsideRepositoryError, FileNotFoundError, ValueError) as e:
            return tool_error(str(e))

        results: list[tuple[str, list[MatchLine]]] = []
        total_matches = 0
        omitted = 0
        async for file, rel in _iter_text_files(root, target, context.cancellation):
            if include is not None:
                rel_to_target = file.relative_to(target).as_posix() if target.is_dir() else file.name
                if not (include.matches(rel) or include.matches(rel_to_target)):
                    continue

            lines = read_text_lines(file)
            matched_line_nos = []
            for i, line in enumerate(lines):
                if regex.search(line):
                    if total_matches < self.max_matches:
                        matched_line_nos.append(i + 1)
                        total_matches += 1
                    else:
                        omitted += 1
            if matched_line_nos:
                results.append((rel, _with_context(lines, matched_line_nos, self.context_lines)))

        output = format_viewer_style(
            results,
            omitted,
            "Search more specific subdirectories or use an include glob for more results.",
        )
        return tool_success(
            output,
            metadata={"total_matches": total_matches, "omitted_matches": omitted, "files": len(results)},
        )


def matches_name_path(symbol: Symbol, name_path: str) -> bool:
    """
    ``name`` matches any symbol with that name, ``Parent/name`` requires the
    trailing part of the symbol's ancestry to match, and a leading '/' makes
    the path absolute (from the top level of the file).
    """
    absolute = name_path.startswith("/")
    segments = [s for s in name_path.strip().strip("/").split("/") if s]
    if not segments:
        return False
    chain = symbol.name_path.split("/")
    if absolute:
        return chain == segments
    return len(chain) >= len(segments) and chain[-len(segments):] == segments


def _kind_allowed(kind: str, include_kinds: Optional[list[str]], exclude_kinds: Optional[list[str]]) -> bool:
    # Exclusions take precedence over inclusions
    if exclude_kinds and kind in exclude_kinds:
        return False
    if include_kinds and kind not in include_kinds:
        return False
    return True


def _render_body(lines: list[str], symbol: Symbol) -> str:
    start = max(1, symbol.start_line)
    end = min(len(lines), symbol.end_line)
    width = len(str(end))
    return "\n".join(f"{n:>{width}} | {lines[n - 1]}" for n in range(start, end + 1))


class FindSymbol(BaseTool):
    TOOL_NAME = "find_symbol"
    TOOL_DESCRIPTION = """Find the definition of a symbol (class, function, method, ...) by name or name path.

Name paths:
- "process" matches any symbol named process
- "Parser/parse" matches a parse member of a Parser class
- "/Parser" matches only a top-level Parser

Set include_body to see the source of the definition, include_children to list its members. Use relative_path to restrict the search to a directory or file.
"""

    name_path: str = Field(
        ...,
        description='Symbol name or name path, e.g. "MyClass", "MyClass/my_method", "/top_level_function"',
        min_length=1,
    )
    relative_path: str = Field(
        default=".",
        description="Restrict the search to this file or directory (relative to the repository root)",
    )
    include_body: bool = Field(
        default=False,
        description="Include the symbol's source code",
    )
    include_children: bool = Field(
        default=False,
        description="List the symbol's direct children (e.g. the methods of a class)",
    )
    include_kinds: Optional[list[SymbolKind]] = Field(
        default=None,
        description="Only return symbols of these kinds",
    )
    exclude_kinds: Optional[list[SymbolKind]] = Field(
        default=None,
        description="Never return symbols of these kinds. Takes precedence over include_kinds.",
    )
    max_answer_chars: int = Field(
        default=50_000,
        description="Fail instead of answering when the output would be longer than this",
        ge=1000,
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        try:
            root, target = _resolve_target(context, self.relative_path)
        except (PathOutsideRepositoryError, FileNotFoundError) as e:
            return tool_error(str(e))

        blocks = []
        found = 0
        async for file, rel in _iter_text_files(root, target, context.cancellation, code_only=True):
            lines = read_text_lines(file)
            symbols = extract_symbols(rel, "\n".join(lines))
            for symbol in iter_symbols(symbols):
                if not matches_name_path(symbol, self.name_path):
                    continue
                if not _kind_allowed(symbol.kind, self.include_kinds, self.exclude_kinds):
                    continue
                found += 1
                block = [f"<SYMBOL name_path=\"{symbol.name_path}\" kind=\"{symbol.kind}\">"]
                block.append(f"<LOCATION>{rel}:{symbol.start_line}-{symbol.end_line}</LOCATION>")
                if self.include_children and symbol.children:
                    block.append("<CHILDREN>")
                    block.extend(
                        f"{c.start_line}: {c.name} ({c.kind})" for c in symbol.children
                    )
                    block.append("</CHILDREN>")
                if self.include_body:
                    block.append("<BODY>")
                    block.append(_render_body(lines, symbol))
                    block.append("</BODY>")
                block.append("</SYMBOL>")
                blocks.append("\n".join(block))

        if not blocks:
            return tool_success(
                f"No symbol matching '{self.name_path}' found in '{self.relative_path}'.",
                metadata={"count": 0},
            )

        output = "\n".join(blocks)
        if len(output) > self.max_answer_chars:
            return tool_error(
                f"Answer too long ({len(output)} characters, limit {self.max_answer_chars}). "
                "Use a more specific name path or relative_path, or set include_body=false."
            )
        return tool_success(output, metadata={"count": found})


class FindUsages(BaseTool):
    TOOL_NAME = "find_usages"
    TOOL_DESCRIPTION = """Find where a symbol is referenced across the repository (whole-word matches in code files).

Use this to check that every caller handles new behaviour or parameters. Combine with find_symbol: first understand the definition, then find who uses it.

file_path is the file where the symbol is defined; its declaration is excluded from the results unless should_include_declaration is true.
"""

    symbol_name: str = Field(
        ...,
        description="The name of the symbol to find usages for",
        min_length=1,
    )
    file_path: str = Field(
        ...,
        description="The file path where the symbol is defined",
        min_length=1,
    )
    should_include_declaration: bool = Field(
        default=False,
        description="Whether to include the symbol declaration in results",
    )
    context_line_count: int = Field(
        default=2,
        description="Number of context lines to include around each usage",
        ge=0,
        le=10,
    )
    max_results: int = Field(
        default=100,
        description="Maximum number of usages to return",
        ge=1,
        le=1000,
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        symbol_name = self.symbol_name.strip()
        if not symbol_name:
            return tool_error("Symbol name cannot be empty")

        root = context.resolve_root()
        try:
            definition_file = resolve_in_repo(root, self.file_path)
        except PathOutsideRepositoryError as e:
            return tool_error(str(e))
        if not definition_file.is_file():
            return tool_error(f"File not found: {self.file_path}")

        word = re.compile(rf"(?<![\w$]){re.escape(symbol_name)}(?![\w$])")
        declarations = self._declaration_lines(
            definition_file, to_repo_relative(root, definition_file), symbol_name, word
        )

        results: list[tuple[str, list[MatchLine]]] = []
        total = 0
        omitted = 0
        async for file, rel in _iter_text_files(root, root, context.cancellation, code_only=True):
            lines = read_text_lines(file)
            usage_lines = []
            for i, line in enumerate(lines):
                if not word.search(line):
                    continue
                if not self.should_include_declaration and (rel, i + 1) in declarations:
                    continue
                if total < self.max_results:
                    usage_lines.append(i + 1)
                    total += 1
                else:
                    omitted += 1
            if usage_lines:
                results.append((rel, _with_context(lines, usage_lines, self.context_line_count)))

        if not results:
            note = "" if declarations else f" (no definition of '{symbol_name}' was found in {self.file_path})"
            return tool_success(f"No usages of '{symbol_name}' found{note}.", metadata={"count": 0})

        output = format_viewer_style(
            results, omitted, "Narrow the search with find_symbol or search_for_pattern."
        )
        header = f"Found {total + omitted} usages of '{symbol_name}' in {len(results)} files:\n"
        return tool_success(header + output, metadata={"count": total + omitted})

    @staticmethod
    def _declaration_lines(path: Path, rel: str, symbol_name: str, word: re.Pattern) -> set[tuple[str, int]]:
        lines = read_text_lines(path)
        declarations = set()
        for symbol in iter_symbols(extract_symbols(rel, "\n".join(lines))):
            if symbol.name != symbol_name:
                continue
            # First line of the definition naming the symbol, skipping decorators
            for n in range(symbol.start_line, min(symbol.end_line, len(lines)) + 1):
                line = lines[n - 1]
                if word.search(line) and not line.strip().startswith("@"):
                    declarations.add((rel, n))
                    break
        return declarations


class GetSymbolsOverview(BaseTool):
    TOOL_NAME = "get_symbols_overview"
    TOOL_DESCRIPTION = """Get an overview of the symbols (classes, functions, methods, ...) defined in a file or directory.

Output format: "lineNumber: symbolName (symbolType)", indented by nesting level when show_hierarchy is true.
"""

    path: str = Field(
        ...,
        description='The relative path to the file or directory (e.g. "src", "src/services/parser.py")',
        min_length=1,
    )
    max_depth: int = Field(
        default=0,
        description="Symbol hierarchy depth: 0=top-level only, 1=include direct children, -1=unlimited depth",
        ge=-1,
    )
    include_body: bool = Field(
        default=False,
        description="Include symbol source code. Significantly increases response size.",
    )
    include_kinds: Optional[list[SymbolKind]] = Field(
        default=None,
        description="Include only these symbol kinds",
    )
    exclude_kinds: Optional[list[SymbolKind]] = Field(
        default=None,
        description="Exclude these symbol kinds. Takes precedence over include_kinds.",
    )
    max_symbols: int = Field(
        default=100,
        description="Maximum number of symbols to return",
        ge=1,
    )
    show_hierarchy: bool = Field(
        default=True,
        description="Show an indented hierarchy instead of a flat list",
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        try:
            root, target = _resolve_target(context, self.path)
        except (PathOutsideRepositoryError, FileNotFoundError) as e:
            return tool_error(str(e))

        sections = []
        shown = 0
        truncated = False
        async for file, rel in _iter_text_files(root, target, context.cancellation, code_only=True):
            lines = read_text_lines(file)
            entries = []
            for symbol, depth in self._visible(extract_symbols(rel, "\n".join(lines)), 0):
                if shown >= self.max_symbols:
                    truncated = True
                    break
                indent = "  " * depth if self.show_hierarchy else ""
                entries.append(f"{indent}{symbol.start_line}: {symbol.name} ({symbol.kind})")
                if self.include_body:
                    entries.append(_render_body(lines, symbol))
                shown += 1
            if entries:
                sections.append(f"<FILE>\n<PATH>{rel}</PATH>\n" + "\n".join(entries) + "\n</FILE>")
            if truncated:
                break

        if not sections:
            return tool_success(f"No symbols found in '{self.path}'.", metadata={"count": 0})

        output = "\n".join(sections)
        if truncated:
            output += (
                f"\n\nNote: output limited to {self.max_symbols} symbols. "
                "Request a narrower path or filter by kind for the rest."
            )
        return tool_success(output, metadata={"count": shown})

    def _visible(self, symbols: list[Symbol], depth: int):
        for symbol in symbols:
            if _kind_allowed(symbol.kind, self.include_kinds, self.exclude_kinds):
                yield symbol, depth
            if self.max_depth == -1 or depth < self.max_depth:
                yield from self._visible(symbol.children, depth + 1)
