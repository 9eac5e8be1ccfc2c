# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The tools available to the review agent
"""

from .base_tool import BaseTool
from .registry import ToolRegistry
from .executor import ToolExecutor
from .file_tools import ReadFile
from .directory_tools import FindFilesByPattern, ListDirectory
from .search_tools import FindSymbol, FindUsages, GetSymbolsOverview, SearchForPattern
from .reasoning_tools import (
    ThinkAboutCompletion,
    ThinkAboutContext,
    ThinkAboutInvestigation,
    ThinkAboutTask,
)
from .plan_tools import UpdatePlan
from .answer_submission import SubmitReview
from .subagent_tool import RunSubagent

DELEGATION_TOOL_NAME = RunSubagent.TOOL_NAME
COMPLETION_TOOL_NAME = SubmitReview.TOOL_NAME

# Tools only the top-level analysis may use: subagents cannot delegate,
# cannot alter the shared review plan, and answer in plain text
MAIN_ONLY_TOOL_NAMES = (
    RunSubagent.TOOL_NAME,
    UpdatePlan.TOOL_NAME,
    SubmitReview.TOOL_NAME,
    ThinkAboutCompletion.TOOL_NAME,
)

toolkits: dict[str, list[type[BaseTool]]] = dict(
    inspection=[
        ReadFile,
        ListDirectory,
        FindFilesByPattern,
        SearchForPattern,
        FindSymbol,
        FindUsages,
        GetSymbolsOverview,
    ],
    reflection=[
        ThinkAboutTask,
        ThinkAboutContext,
        ThinkAboutInvestigation,
        ThinkAboutCompletion,
    ],
    review=[
        UpdatePlan,
        RunSubagent,
        SubmitReview,
    ],
)


def default_tools() -> list[type[BaseTool]]:
    """The static tool set of the main analysis, in prompt order."""
    return [*toolkits["inspection"], *toolkits["reflection"], *toolkits["review"]]


def build_default_registry() -> ToolRegistry:
    return ToolRegistry(default_tools())


__all__ = [
    "BaseTool",
    "ToolRegistry",
    "ToolExecutor",
    "ReadFile",
    "ListDirectory",
    "FindFilesByPattern",
    "SearchForPattern",
    "FindSymbol",
    "FindUsages",
    "GetSymbolsOverview",
    "ThinkAboutTask",
    "ThinkAboutContext",
    "ThinkAboutInvestigation",
    "ThinkAboutCompletion",
    "UpdatePlan",
    "SubmitReview",
    "RunSubagent",
    "DELEGATION_TOOL_NAME",
    "COMPLETION_TOOL_NAME",
    "MAIN_ONLY_TOOL_NAMES",
    "toolkits",
    "default_tools",
    "build_default_registry",
]
