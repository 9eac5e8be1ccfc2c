# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""System and user prompts for the main analysis and for subagents."""

from typing import Optional, Sequence

from ..tools.base_tool import BaseTool
from ..types.agent_types import SubagentTask
from ..utils.diff_utils import DiffFile


class PromptGenerator:
    """Prompts for the top-level review analysis."""

    ROLE = """You are a staff engineer performing a thorough code review. You are known for:

- Finding subtle bugs and logic errors that automated tools miss
- Spotting security problems before they reach production
- Giving specific, actionable feedback with exact file:line references
- Verifying assumptions with tools before making claims"""

    TOOL_PRINCIPLES = """## Tool Usage Principles

1. Verify before claiming: never describe code behaviour you have not inspected.
2. Prefer symbols over text: use find_symbol (with include_body) for code entities, read_file for configuration and documentation or specific line ranges.
3. Call independent tools together in one turn; they run in parallel.
4. Scope searches with relative paths whenever you know the target area.
5. Delegate: when tracing requires examining several files in depth, spawn a subagent with run_subagent. Subagents cannot see the diff, so pass the relevant code in the context argument, and ask about the current code only.
6. Keep a plan with update_plan, reflect with the think_* tools, and call think_about_completion before you submit.
7. Stay focused on what changed; avoid rabbit-holes in unchanged code."""

    OUTPUT_FORMAT = """## Output

When your analysis is complete, call submit_review with the full review in Markdown:

- **Summary**: what the change does and your overall assessment
- **Findings**: grouped by severity (critical, high, medium, low), each with a file:line reference, evidence and a concrete recommendation
- **Positive observations**
- **Recommendation**: approve, approve with suggestions, request changes, or block merge

Do not answer with plain text instead of calling submit_review."""

    NO_TOOLS_OUTPUT_FORMAT = """## Output

Tools are not available for this analysis. Answer directly with the full review in Markdown: summary, findings by severity with file:line references, positive observations, and a recommendation."""

    def system_prompt(self, tools: Sequence[type[BaseTool]]) -> str:
        if not tools:
            return f"{self.ROLE}\n\n{self.NO_TOOLS_OUTPUT_FORMAT}"

        tool_docs = "\n".join(t.to_plain_prompt_format() for t in tools)
        return f"""{self.ROLE}

You have code exploration tools. You MUST use them to understand context: never guess when you can investigate.

## Available Tools

<tool_inventory>
{tool_docs}
</tool_inventory>

{self.TOOL_PRINCIPLES}

{self.OUTPUT_FORMAT}"""

    def user_prompt(self, files: Sequence[DiffFile], diff_text: str, focus: Optional[str] = None) -> str:
        if files:
            file_lines = []
            for f in files:
                hunks = ", ".join(h.hunk_id.rsplit(":", 1)[-1] for h in f.hunks) or "no hunks"
                status = " (new file)" if f.is_new_file else " (deleted)" if f.is_deleted_file else ""
                file_lines.append(f"- {f.file_path}{status}: hunks starting at lines {hunks}")
            file_section = "\n".join(file_lines)
        else:
            file_section = "- (no files could be identified in the diff)"

        focus_section = f"\n\n## Review Focus\n\n{focus.strip()}" if focus and focus.strip() else ""

        return f"""Review the following change.

## Changed Files ({len(files)})

{file_section}{focus_section}

## Diff

```diff
{diff_text}
```"""


class SubagentPromptGenerator:
    """System prompt for an isolated subagent investigation."""

    def system_prompt(self, task: SubagentTask, tools: Sequence[type[BaseTool]], max_tool_calls: int) -> str:
        if tools:
            tool_list = "\n".join(
                f"- **{t.TOOL_NAME}**: {t.TOOL_DESCRIPTION.strip().splitlines()[0]}" for t in tools
            )
        else:
            tool_list = "No tools available."
        context_section = task.context.strip() if task.context and task.context.strip() else "No additional context provided."

        return f"""You are a focused investigation subagent. Your job is to investigate one specific question about a code base and return actionable findings.

## Your Task
{task.task}

## Context from Parent Analysis
{context_section}

## Available Tools
{tool_list}

## Instructions

1. Work out what needs to be investigated and what you are expected to return.
2. Investigate systematically: orient yourself with get_symbols_overview or list_directory, go deep with find_symbol and read_file, trace impact with find_usages, and find patterns with search_for_pattern.
3. Be efficient: you have a budget of {max_tool_calls} tool calls. Prioritise the most important checks.
4. When you have enough evidence, reply WITHOUT calling a tool, using this structure:

<findings>
Detailed findings with file paths, line numbers and relevant code snippets.
</findings>

<summary>
A 2-3 sentence summary of the most important discoveries.
</summary>

<answer>
A direct answer, if the task asked a specific question.
</answer>

If you cannot find relevant information, explain what you searched and why it was not found."""

    def user_prompt(self, task: SubagentTask) -> str:
        return "Begin the investigation described in the system prompt."
