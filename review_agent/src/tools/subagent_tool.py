# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import Optional
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, tool_error, tool_success
from ..types.agent_types import SubagentResult, SubagentStatus, SubagentTask
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MIN_TASK_LENGTH = 30


def format_subagent_result(result: SubagentResult) -> str:
    """The text the parent model sees for a subagent that ran."""
    header = f"## Subagent #{result.subagent_id} Investigation Complete"
    if result.status == SubagentStatus.INCOMPLETE:
        header = f"## Subagent #{result.subagent_id} Investigation Incomplete"
    return f"{header}\n\n**Tool calls made:** {result.tool_calls_made}\n\n---\n\n{result.findings}"


class RunSubagent(BaseTool):
    """Delegates a focused investigation to an isolated child agent."""

    TOOL_NAME = "run_subagent"
    TOOL_DESCRIPTION = """Spawn a focused investigation agent for complex analysis. The subagent has its own conversation and the read-only inspection tools, and returns its findings to you.

Use this template for the task:
"Task about [module/file]:
Questions:
1. How does [function] work?
2. Does [function] handle [concern]?
Examine: [function names]"

Rules:
- One module per subagent; spawn several subagents for several modules
- Ask about the CURRENT code only; the subagent does not see the diff
- The subagent cannot run tests or execute code
- The number of subagents per analysis is limited

Use it for changes touching many files, security-sensitive code, or dependency chains spanning several files.
"""

    task: str = Field(
        ...,
        description=(
            "Detailed investigation task. Include 1) WHAT to investigate, "
            "2) WHERE to look (files, directories, symbols), 3) WHAT to return."
        ),
        min_length=MIN_TASK_LENGTH,
    )
    context: Optional[str] = Field(
        default=None,
        description="Relevant context from your current analysis: code snippets, file paths, findings or symbol names",
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        if context.spawn_subagent is None:
            return tool_error("Subagents are not available in this context.")

        result = await context.spawn_subagent(SubagentTask(task=self.task, context=self.context))

        if not result.success:
            return tool_error(result.findings)

        return tool_success(
            format_subagent_result(result),
            metadata={
                "subagent_id": result.subagent_id,
                "status": result.status.value,
                "nested_tool_calls": result.tool_calls,
            },
        )
