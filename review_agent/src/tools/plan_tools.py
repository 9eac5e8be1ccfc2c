# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, tool_error, tool_success
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class UpdatePlan(BaseTool):
    """Create or revise the session's review plan."""

    TOOL_NAME = "update_plan"
    TOOL_DESCRIPTION = """Create or update your review plan. Use it to structure the analysis, track progress and make sure every changed file is covered.

Call it early to create a plan, then again as you complete items. Use "- [ ]" for pending and "- [x]" for completed checklist items.
"""

    plan: str = Field(
        ...,
        description="Markdown-formatted review plan with checklist items",
        min_length=10,
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        if context.plan_manager is None:
            return tool_error(
                "No active analysis session. The update_plan tool is only available during the main analysis."
            )

        is_update = context.plan_manager.get_plan() is not None
        revision = context.plan_manager.update_plan(self.plan)
        status = "Plan updated." if is_update else "Review plan created."

        pending = sum(1 for line in self.plan.splitlines() if line.strip().startswith("- [ ]"))
        done = sum(1 for line in self.plan.splitlines() if line.strip().lower().startswith("- [x]"))

        return tool_success(
            f"""{status} ({done} done, {pending} pending)

## Current Plan

{self.plan}

---

Next steps:
- Continue with the pending items
- Gather evidence for each item with the inspection tools
- Update the plan as you complete investigations
- Call think_about_completion before submitting your review""",
            metadata={"revision": revision, "pending": pending, "done": done},
        )
