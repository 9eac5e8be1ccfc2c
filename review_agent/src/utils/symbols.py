# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Lightweight symbol extraction for the symbol lookup tools.

Python sources are parsed with ``ast``; other languages use line-oriented
definition patterns with brace matching to find where a definition ends.
"""

import re
import ast
import logging

from typing import Optional
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SYMBOL_KINDS = (
    "class",
    "interface",
    "enum",
    "function",
    "method",
    "variable",
    "constant",
)

CODE_EXTENSIONS = frozenset(
    {
        ".py", ".pyi", ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".java",
        ".kt", ".go", ".rs", ".c", ".h", ".cc", ".cpp", ".hpp", ".cs",
        ".swift", ".scala", ".php", ".rb",
    }
)


@dataclass
class Symbol:
    name: str
    kind: str
    file_path: str
    start_line: int  # 1-based, inclusive
    end_line: int
    parent: Optional["Symbol"] = field(default=None, repr=False, compare=False)
    children: list["Symbol"] = field(default_factory=list)

    @property
    def name_path(self) -> str:
        parts = [self.name]
        node = self.parent
        while node is not None:
            parts.append(node.name)
            node = node.parent
        return "/".join(reversed(parts))

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


def is_code_file(path: str) -> bool:
    dot = path.rfind(".")
    return dot != -1 and path[dot:].lower() in CODE_EXTENSIONS


def extract_symbols(file_path: str, text: str) -> list[Symbol]:
    """Top-level symbols of a file, with nested definitions as children."""
    if file_path.endswith((".py", ".pyi")):
        try:
            return _extract_python(file_path, text)
        except SyntaxError as e:
            logger.debug(f"Falling back to pattern extraction for {file_path}: {e}")
    return _extract_by_pattern(file_path, text)


def iter_symbols(symbols: list[Symbol]):
    for symbol in symbols:
        yield from symbol.walk()


def _extract_python(file_path: str, text: str) -> list[Symbol]:
    tree = ast.parse(text)

    def visit(body, parent: Optional[Symbol]) -> list[Symbol]:
        found = []
        for node in body:
            if isinstance(node, ast.ClassDef):
                sym = Symbol(node.name, "class", file_path, _start_line(node), node.end_lineno, parent)
                sym.children = visit(node.body, sym)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                kind = "method" if parent is not None and parent.kind == "class" else "function"
                sym = Symbol(node.name, kind, file_path, _start_line(node), node.end_lineno, parent)
                sym.children = visit(node.body, sym)
            elif isinstance(node, (ast.Assign, ast.AnnAssign)) and (
                parent is None or parent.kind == "class"
            ):
                targets = node.targets if isinstance(node, ast.Assign) else [node.target]
                for target in targets:
                    if isinstance(target, ast.Name):
                        kind = "constant" if target.id.isupper() else "variable"
                        found.append(
                            Symbol(target.id, kind, file_path, node.lineno, node.end_lineno, parent)
                        )
                continue
            else:
                continue
            found.append(sym)
        return found

    return visit(tree.body, None)


def _start_line(node) -> int:
    # Include decorators in the definition range
    decorators = getattr(node, "decorator_list", None)
    if decorators:
        return min(d.lineno for d in decorators)
    return node.lineno


_IDENT = r"[A-Za-z_$][\w$]*"
_DEFINITION_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("interface", re.compile(rf"^\s*(?:export\s+)?(?:public\s+)?(?:pub\s+)?(?:interface|trait|protocol)\s+({_IDENT})")),
    ("enum", re.compile(rf"^\s*(?:export\s+)?(?:public\s+)?(?:pub\s+)?(?:const\s+)?enum\s+({_IDENT})")),
    ("class", re.compile(
        rf"^\s*(?:export\s+)?(?:default\s+)?(?:public\s+|private\s+|protected\s+|internal\s+)?"
        rf"(?:abstract\s+|final\s+|static\s+|sealed\s+|data\s+)*(?:class|struct|object)\s+({_IDENT})"
    )),
    ("class", re.compile(rf"^\s*(?:pub\s+)?struct\s+({_IDENT})")),
    ("class", re.compile(rf"^type\s+({_IDENT})\s+(?:struct|interface)\b")),
    ("function", re.compile(rf"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*({_IDENT})")),
    ("function", re.compile(rf"^func\s+(?:\([^)]*\)\s*)?({_IDENT})")),
    ("function", re.compile(rf"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?(?:unsafe\s+)?fn\s+({_IDENT})")),
    ("function", re.compile(
        rf"^\s*(?:export\s+)?(?:const|let|var)\s+({_IDENT})\s*(?::[^=]+)?=\s*(?:async\s+)?"
        rf"(?:\([^)]*\)|{_IDENT})\s*(?::\s*[^=]+)?=>"
    )),
    ("method", re.compile(
        rf"^\s+(?:(?:public|private|protected|static|async|readonly|override|abstract|final|"
        rf"synchronized|virtual|def)\s+)*(?:[\w<>\[\],.?]+\s+)?({_IDENT})\s*\([^;]*\)\s*"
        rf"(?::\s*[^{{=]+)?(?:throws\s+[\w.,\s]+)?\{{\s*$"
    )),
    ("constant", re.compile(rf"^(?:export\s+)?const\s+([A-Z][A-Z0-9_]*)\s*[:=]")),
]

_NOT_METHODS = frozenset({"if", "for", "while", "switch", "catch", "return", "function", "else", "do", "try"})


def _extract_by_pattern(file_path: str, text: str) -> list[Symbol]:
    lines = text.splitlines()
    top_level: list[Symbol] = []
    open_scopes: list[Symbol] = []

    for idx, line in enumerate(lines):
        line_no = idx + 1
        while open_scopes and open_scopes[-1].end_line < line_no:
            open_scopes.pop()

        match_kind, name = None, None
        for kind, pattern in _DEFINITION_PATTERNS:
            m = pattern.match(line)
            if m:
                match_kind, name = kind, m.group(1)
                break
        if match_kind is None or name in _NOT_METHODS:
            continue

        parent = open_scopes[-1] if open_scopes else None
        if match_kind == "method" and (parent is None or parent.kind not in ("class", "interface", "enum")):
            continue
        if match_kind == "function" and parent is not None and parent.kind == "class":
            match_kind = "method"

        end_line = _find_block_end(lines, idx)
        sym = Symbol(name, match_kind, file_path, line_no, end_line, parent)
        if parent is None:
            top_level.append(sym)
        else:
            parent.children.append(sym)
        if end_line > line_no and match_kind in ("class", "interface", "enum", "function", "method"):
            open_scopes.append(sym)

    return top_level


def _find_block_end(lines: list[str], start_idx: int, lookahead: int = 3) -> int:
    """1-based line on which the brace block opened at (or just after) ``start_idx`` closes."""
    depth = 0
    opened = False
    for idx in range(start_idx, len(lines)):
        stripped = _strip_strings(lines[idx])
        for ch in stripped:
            if ch == "{":
                depth += 1
                opened = True
            elif ch == "}":
                depth -= 1
                if opened and depth <= 0:
                    return idx + 1
        if not opened and (idx - start_idx >= lookahead or stripped.rstrip().endswith(";")):
            return start_idx + 1
    return len(lines) if opened else start_idx + 1


_STRING_RE = re.compile(r"\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*'|`(?:\\.|[^`\\])*`|//.*$")


def _strip_strings(line: str) -> str:
    return _STRING_RE.sub("", line)
