# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Unified diff parsing."""

import re

from dataclasses import dataclass, field

FILE_HEADER_RE = re.compile(r"^diff --git a/(.+) b/(.+)$")
HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class DiffHunk:
    file_path: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[str] = field(default_factory=list)

    @property
    def hunk_id(self) -> str:
        return f"{self.file_path}:{self.new_start}"

    @property
    def added_lines(self) -> list[str]:
        return [l[1:] for l in self.lines if l.startswith("+") and not l.startswith("+++")]

    @property
    def removed_lines(self) -> list[str]:
        return [l[1:] for l in self.lines if l.startswith("-") and not l.startswith("---")]


@dataclass
class DiffFile:
    file_path: str
    old_path: str
    hunks: list[DiffHunk] = field(default_factory=list)

    @property
    def is_new_file(self) -> bool:
        return bool(self.hunks) and all(h.old_start == 0 and h.old_lines == 0 for h in self.hunks)

    @property
    def is_deleted_file(self) -> bool:
        return bool(self.hunks) and all(h.new_start == 0 and h.new_lines == 0 for h in self.hunks)


def parse_diff(diff_text: str) -> list[DiffFile]:
    """
    Parse ``git diff`` output into files and hunks.

    Lines before the first ``diff --git`` header, and hunk lines that are not
    additions, removals or context, are ignored.
    """
    files: list[DiffFile] = []
    current_file: DiffFile | None = None
    current_hunk: DiffHunk | None = None

    for line in diff_text.split("\n"):
        file_match = FILE_HEADER_RE.match(line)
        if file_match:
            current_file = DiffFile(file_path=file_match.group(2), old_path=file_match.group(1))
            files.append(current_file)
            current_hunk = None
            continue

        if current_file is None:
            continue

        hunk_match = HUNK_HEADER_RE.match(line)
        if hunk_match:
            old_start, old_lines, new_start, new_lines = hunk_match.groups()
            current_hunk = DiffHunk(
                file_path=current_file.file_path,
                old_start=int(old_start),
                old_lines=int(old_lines) if old_lines is not None else 1,
                new_start=int(new_start),
                new_lines=int(new_lines) if new_lines is not None else 1,
            )
            current_file.hunks.append(current_hunk)
        elif current_hunk is not None and line[:1] in ("+", "-", " "):
            current_hunk.lines.append(line)

    return files
