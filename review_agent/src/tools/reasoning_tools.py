# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Self-reflection tools.

These have no effect on the repository or the session; they return a
structured prompt the model can use to check its own progress.
"""

import logging

from typing import Literal
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, tool_success
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class ThinkAboutTask(BaseTool):
    TOOL_NAME = "think_about_task"
    TOOL_DESCRIPTION = """Pause to verify you are on track with the review task. Call this before drawing conclusions to check that your analysis is about the change under review and covers every changed file."""

    async def run(self, context: ExecutionContext) -> ToolResult:
        return tool_success(
            """## Task Alignment Check

### Scope
- Am I analysing what CHANGED, rather than the whole codebase?
- Have I stayed out of rabbit-holes in unchanged code?

### Coverage
Have I looked for:
- Bugs and logic errors, including edge cases
- Security issues
- Performance impact
- Readability and maintainability
- Error handling
- Missing or affected tests

### Finding Quality
For each finding:
- Is there a file:line reference and a code snippet as evidence?
- Is the severity justified and the recommendation actionable?

### Decision
- Off-track: refocus on the diff
- Gaps in coverage: continue with the uncovered areas
- Ready: proceed to the final review"""
        )


class ThinkAboutContext(BaseTool):
    TOOL_NAME = "think_about_context"
    TOOL_DESCRIPTION = """Pause to reflect on the information you have gathered. Call this after collecting context to check that it is sufficient and relevant before you continue the analysis."""

    async def run(self, context: ExecutionContext) -> ToolResult:
        return tool_success(
            """## Context Evaluation

### Diff Coverage
- Have I investigated the key change in each modified file?
- Did I look up (find_symbol) the functions I don't fully understand?
- Did I check callers (find_usages) of functions whose signature or behaviour changed?

### Understanding
- Can I explain what the change is trying to accomplish?
- Do I understand the behaviour before and after it?

### Gaps
- What specific unknowns remain?
- Would a focused subagent investigation answer one of them?

### Decision
- Need more context: use specific tools to fill the gaps
- Need a deep investigation: delegate with run_subagent, giving a clear task and the relevant code
- Context sufficient: proceed to synthesis"""
        )


class ThinkAboutInvestigation(BaseTool):
    TOOL_NAME = "think_about_investigation"
    TOOL_DESCRIPTION = """Evaluate the progress of your investigation. Call this midway through to check that you are still on task and using your tool budget well."""

    async def run(self, context: ExecutionContext) -> ToolResult:
        return tool_success(
            """## Investigation Progress Check

### Focus
- What was the assigned task, and am I still investigating it?

### Evidence
- What concrete evidence have I found?
- Is every finding backed by a location and a code snippet?

### Budget
- What is the most important thing left to check?
- Should I wrap up now with partial findings?

### Decision
- Key gaps remain: spend the remaining calls on the highest-priority one
- Running low on budget: start wrapping up
- Investigation complete: write the findings and recommendations"""
        )


class ThinkAboutCompletion(BaseTool):
    TOOL_NAME = "think_about_completion"
    TOOL_DESCRIPTION = """Articulate how complete your review is before submitting it. Draft a summary, count the issues you found and confirm which files you analysed."""

    summary_draft: str = Field(
        ...,
        description="Draft 2-3 sentence summary of what the change does and your overall assessment",
        min_length=20,
    )
    critical_issues_count: int = Field(
        ..., description="Number of critical/blocking issues found", ge=0
    )
    high_issues_count: int = Field(
        ..., description="Number of high-severity issues found", ge=0
    )
    files_analyzed: list[str] = Field(
        ..., description="The files from the diff you analysed", min_length=1
    )
    files_in_diff: int = Field(
        ..., description="Total number of files in the diff", ge=1
    )
    recommendation: Literal["approve", "approve_with_suggestions", "request_changes", "block_merge"] = Field(
        ..., description="Your recommendation for the change"
    )
    decision: Literal["needs_work", "ready_to_submit"] = Field(
        ..., description="needs_work (address gaps first) or ready_to_submit"
    )

    async def run(self, context: ExecutionContext) -> ToolResult:
        analysed = len(set(self.files_analyzed))
        coverage = min(100, round(analysed / self.files_in_diff * 100))

        parts = ["## Completion Reflection", ""]
        parts.append(f"### Summary Draft\n> {self.summary_draft}\n")
        parts.append("### Issue Count")
        parts.append(f"- Critical: {self.critical_issues_count}")
        parts.append(f"- High: {self.high_issues_count}\n")
        parts.append("### Coverage")
        parts.append(f"- Files analysed: {analysed}/{self.files_in_diff} ({coverage}%)")
        if coverage < 100:
            parts.append("- Not all files have been analysed")
        parts.append("")

        parts.append(f"### Recommendation: {self.recommendation.replace('_', ' ').upper()}")
        if self.critical_issues_count > 0 and self.recommendation in ("approve", "approve_with_suggestions"):
            parts.append("Critical issues were found: consider `block_merge` or `request_changes`.")
        elif self.high_issues_count > 0 and self.recommendation == "approve":
            parts.append("High-severity issues were found: consider `request_changes`.")
        parts.append("")

        parts.append(f"### Decision: {self.decision.replace('_', ' ').upper()}\n")
        if self.decision == "needs_work":
            parts.append("**Action**: address the gaps before submitting.")
            if coverage < 100:
                parts.append(f"- Analyse the remaining {self.files_in_diff - analysed} file(s)")
            parts.append("- Complete the outstanding plan items")
            parts.append("- Make sure every finding has evidence")
        else:
            parts.append("**Action**: submit your final review with submit_review.")
            parts.append("- Open with the summary draft")
            parts.append("- Organise findings by severity")
            parts.append("- Include positive observations")

        return tool_success(
            "\n".join(parts),
            metadata={"coverage_percent": coverage, "decision": self.decision},
        )
