# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..utils.paths import PathOutsideRepositoryError, resolve_in_repo, to_repo_relative
from ..utils.file_discovery import DEFAULT_IGNORED_DIRS, find_files, walk_files
from ..types.tool_types import ToolResult, tool_error, tool_success
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_LISTED_ENTRIES = 1000
MAX_FOUND_FILES = 1000


class ListDirectory(BaseTool):
    """Tool to list the contents of a repository directory."""

    TOOL_NAME = "list_directory"
    TOOL_DESCRIPTION = """List the files and subdirectories of a directory in the repository.

Directories are shown with a trailing '/'. With recursive=true, every file below the directory is listed as a path relative to it (version control and dependency directories such as .git and node_modules are skipped).
"""

    relative_path: str = Field(
        ...,
        description='The relative path to the directory to list (e.g. "src", "src/components", "." for the root)',
        min_length=1,
    )
    recursive: bool = Field(
        default=False,
        description="Whether to scan subdirectories recursively",
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        root = context.resolve_root()
        try:
            path = resolve_in_repo(root, self.relative_path)
        except PathOutsideRepositoryError as e:
            return tool_error(str(e))

        if not path.exists():
            return tool_error(f"Directory does not exist: {self.relative_path}")
        if not path.is_dir():
            return tool_error(f"Path is not a directory: {self.relative_path}")

        entries: list[str] = []
        if self.recursive:
            async for file in walk_files(path, context.cancellation):
                entries.append(file.relative_to(path).as_posix())
        else:
            for entry in sorted(path.iterdir(), key=lambda p: (not p.is_dir(), p.name)):
                if entry.is_dir():
                    if entry.name in DEFAULT_IGNORED_DIRS:
                        continue
                    entries.append(f"{entry.name}/")
                else:
                    entries.append(entry.name)

        rel = to_repo_relative(root, path)
        if not entries:
            return tool_success(f"Directory {rel} is empty.", metadata={"count": 0})

        header = f"Contents of {rel} ({len(entries)} entries):"
        shown = entries[:MAX_LISTED_ENTRIES]
        output = [header, *shown]
        if len(entries) > MAX_LISTED_ENTRIES:
            output.append(
                f"... and {len(entries) - MAX_LISTED_ENTRIES} more entries. "
                "List a more specific subdirectory to see them."
            )
        return tool_success("\n".join(output), metadata={"count": len(entries)})


class FindFilesByPattern(BaseTool):
    TOOL_NAME = "find_files_by_pattern"
    TOOL_DESCRIPTION = """Find files matching a glob pattern within a directory. Returns paths relative to the repository root.

Supported syntax:
- * matches any characters except '/'; a pattern without '/' also matches file names at any depth
- ? matches exactly one character
- ** matches any number of directories
- [abc] matches one of the bracketed characters
- {a,b} matches any of the alternatives

Examples: "*.py", "**/test_*.py", "src/**/*.{js,ts}", "README*"
"""

    pattern: str = Field(
        ...,
        description="Glob pattern to match files against",
        min_length=1,
    )
    search_directory: str = Field(
        default=".",
        description='Directory to search within, relative to the repository root (default: ".")',
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        root = context.resolve_root()
        try:
            search_dir = resolve_in_repo(root, self.search_directory)
        except PathOutsideRepositoryError as e:
            return tool_error(str(e))
        if not search_dir.is_dir():
            return tool_error(f"Search directory does not exist: {self.search_directory}")

        try:
            files = await find_files(root, search_dir, self.pattern, context.cancellation)
        except ValueError as e:
            return tool_error(f"Invalid glob pattern '{self.pattern}': {e}")

        if not files:
            return tool_success(
                f"No files found matching pattern '{self.pattern}' in directory '{self.search_directory}'",
                metadata={"count": 0},
            )

        output = files[:MAX_FOUND_FILES]
        if len(files) > MAX_FOUND_FILES:
            output = [f"Found {len(files)} files (showing first {MAX_FOUND_FILES}):", *output]
            output.append(
                f"... and {len(files) - MAX_FOUND_FILES} more files. Consider using a more specific pattern."
            )
        return tool_success("\n".join(output), metadata={"count": len(files)})
