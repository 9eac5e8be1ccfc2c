# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Repository crawling and glob matching for the inspection tools.

Supported glob syntax:
- ``*`` matches any number of characters except ``/``
- ``?`` matches exactly one character except ``/``
- ``**`` matches any number of directories recursively
- ``[abc]`` matches any character in the brackets
- ``{a,b,c}`` matches any of the comma separated alternatives
"""

import re
import asyncio
import logging

from pathlib import Path
from typing import AsyncIterator, Optional

from .cancellation import CancellationToken

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_IGNORED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "__pycache__",
        ".venv",
        "venv",
        ".mypy_cache",
        ".pytest_cache",
        ".tox",
        "dist",
        "build",
        ".next",
        "target",
    }
)

# How many directory entries to visit between cancellation checks
_YIELD_EVERY = 200


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a glob pattern into a regex matched against posix relative paths."""
    i, n = 0, len(pattern)
    out = []
    brace_depth = 0
    while i < n:
        c = pattern[i]
        if c == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                # '**/' matches zero or more directories, trailing '**' anything
                if i + 2 < n and pattern[i + 2] == "/":
                    out.append("(?:.*/)?")
                    i += 3
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j
        elif c == "{":
            brace_depth += 1
            out.append("(?:")
        elif c == "}" and brace_depth > 0:
            brace_depth -= 1
            out.append(")")
        elif c == "," and brace_depth > 0:
            out.append("|")
        else:
            out.append(re.escape(c))
        i += 1
    if brace_depth:
        raise ValueError(f"Unbalanced braces in glob pattern '{pattern}'")
    return re.compile("^" + "".join(out) + "$")


class GlobMatcher:
    """
    Matches relative paths against a glob. Patterns without a slash also
    match on the file name alone, so ``*.py`` finds files at any depth.
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = glob_to_regex(pattern)
        self._match_basename = "/" not in pattern

    def matches(self, relative_path: str) -> bool:
        if self._regex.match(relative_path):
            return True
        if self._match_basename and "/" in relative_path:
            return bool(self._regex.match(relative_path.rsplit("/", 1)[-1]))
        return False


async def walk_files(
    root: Path,
    cancellation: Optional[CancellationToken] = None,
    ignored_dirs: frozenset[str] = DEFAULT_IGNORED_DIRS,
    recursive: bool = True,
) -> AsyncIterator[Path]:
    """
    Yield files under ``root`` in sorted, depth-first order.

    Cooperatively checks the cancellation token (and yields control to the
    event loop) every few hundred entries so long crawls stay interruptible.
    """
    stack = [root]
    visited = 0
    while stack:
        directory = stack.pop()
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except (PermissionError, FileNotFoundError) as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            continue

        subdirs = []
        for entry in entries:
            visited += 1
            if visited % _YIELD_EVERY == 0:
                if cancellation is not None:
                    cancellation.raise_if_cancelled()
                await asyncio.sleep(0)

            if entry.is_symlink():
                continue
            if entry.is_dir():
                if recursive and entry.name not in ignored_dirs:
                    subdirs.append(entry)
            elif entry.is_file():
                yield entry
        stack.extend(reversed(subdirs))

    if cancellation is not None:
        cancellation.raise_if_cancelled()


async def find_files(
    root: Path,
    search_dir: Path,
    pattern: Optional[str] = None,
    cancellation: Optional[CancellationToken] = None,
) -> list[str]:
    """Sorted repository-relative paths of files under ``search_dir`` matching ``pattern``."""
    matcher = GlobMatcher(pattern) if pattern else None
    results = []
    async for path in walk_files(search_dir, cancellation):
        rel_to_search = path.relative_to(search_dir).as_posix()
        if matcher is not None and not matcher.matches(rel_to_search):
            continue
        results.append(path.relative_to(root).as_posix())
    return sorted(results)


def is_probably_binary(path: Path, sample_size: int = 8192) -> bool:
    try:
        with open(path, "rb") as f:
            chunk = f.read(sample_size)
    except OSError:
        return True
    return b"\x00" in chunk


def read_text_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8", errors="replace").splitlines()
