# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import Optional
from pydantic import Field

from .base_tool import BaseTool
from ..utils.paths import PathOutsideRepositoryError, resolve_in_repo, to_repo_relative
from ..utils.file_discovery import is_probably_binary, read_text_lines
from ..types.tool_types import ToolResult, tool_error, tool_success
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_READ_LINES = 500


def format_file_view(path: str, lines: list[str], start_line: int, total_lines: int) -> str:
    """Render lines in the file viewer style with a line-number gutter."""
    end_line = start_line + len(lines) - 1
    width = len(str(max(end_line, 1)))
    parts = [
        "<FILE>",
        f"<PATH>{path}</PATH>",
        f"<LINES>{total_lines}</LINES>",
    ]
    if start_line != 1 or end_line != total_lines:
        parts.append(f"<RANGE>{start_line}-{end_line}</RANGE>")
    parts.append("<CONTENT>")
    parts.extend(f"{start_line + i:>{width}} | {line}" for i, line in enumerate(lines))
    parts.append("</CONTENT>")
    parts.append("</FILE>")
    return "\n".join(parts)


class ReadFile(BaseTool):
    TOOL_NAME = "read_file"
    TOOL_DESCRIPTION = """Read the content of a file in the repository, optionally restricted to a line range.

Paths are relative to the repository root. Output uses the file viewer format with <FILE>, <PATH>, <LINES> and <CONTENT> sections and line numbers in the left gutter.

For large files, read a specific range with start_line and line_count rather than the whole file: oversized responses are rejected.
"""

    file_path: str = Field(
        ...,
        description='Relative path to the file to read (e.g. "src/components/button.py")',
        min_length=1,
    )
    start_line: Optional[int] = Field(
        default=None,
        description="Optional starting line number (1-based) for partial reading",
        ge=1,
    )
    line_count: Optional[int] = Field(
        default=None,
        description=f"Optional number of lines to read (max {MAX_READ_LINES}). Reads to the end of the file when omitted.",
        ge=1,
        le=MAX_READ_LINES,
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        root = context.resolve_root()
        try:
            path = resolve_in_repo(root, self.file_path)
        except PathOutsideRepositoryError as e:
            return tool_error(str(e))

        if not path.exists():
            return tool_error(f"File not found: {self.file_path}")
        if not path.is_file():
            return tool_error(f"Path is not a file: {self.file_path}")
        if is_probably_binary(path):
            return tool_error(f"File appears to be binary and cannot be displayed: {self.file_path}")

        lines = read_text_lines(path)
        total = len(lines)
        rel = to_repo_relative(root, path)

        if self.start_line is None and self.line_count is None:
            return tool_success(
                format_file_view(rel, lines, 1, total),
                metadata={"path": rel, "lines": total},
            )

        start = self.start_line or 1
        if start > max(total, 1):
            return tool_error(f"Start line {start} exceeds file length ({total} lines)")

        count = self.line_count or MAX_READ_LINES
        selected = lines[start - 1 : start - 1 + count]
        return tool_success(
            format_file_view(rel, selected, start, total),
            metadata={"path": rel, "lines": total, "start_line": start, "line_count": len(selected)},
        )
