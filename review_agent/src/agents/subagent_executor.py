# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Runs delegated sub-investigations in isolated child conversations.

A subagent gets its own conversation, its own tool executor with a fresh
call counter, and a registry stripped of every tool that could delegate
again, touch the parent's plan or submit the final review. Whatever happens
inside it (timeouts, model failures, exhausted budgets) is turned into a
SubagentResult; only cancellation of the whole analysis propagates.
"""

import asyncio
import logging

from pathlib import Path
from typing import Optional

from .conversation import ConversationManager
from .conversation_runner import ConversationRunner
from .subagent_session import SubagentSessionManager
from ..config import SettingsReader
from ..llm.base import ModelClient
from ..exceptions import AnalysisCancelledError
from ..prompts import SubagentPromptGenerator
from ..tools import DELEGATION_TOOL_NAME, MAIN_ONLY_TOOL_NAMES
from ..tools.registry import ToolRegistry
from ..tools.executor import ToolExecutor
from ..utils.cancellation import CancellationToken
from ..types.agent_types import AnalysisStatus, SubagentResult, SubagentStatus, SubagentTask
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class SubagentExecutor:
    def __init__(
        self,
        model_client: ModelClient,
        settings: SettingsReader,
        registry: ToolRegistry,
        session: SubagentSessionManager,
        repo_root: Optional[Path] = None,
        cancellation: Optional[CancellationToken] = None,
        prompt_generator: Optional[SubagentPromptGenerator] = None,
    ):
        self._model = model_client
        self._settings = settings
        self._registry = registry.without(*MAIN_ONLY_TOOL_NAMES)
        if DELEGATION_TOOL_NAME in self._registry:
            raise ValueError("Subagent registry must not expose the delegation tool")
        self._session = session
        self._repo_root = repo_root
        self._cancellation = cancellation
        self._prompts = prompt_generator or SubagentPromptGenerator()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def run(self, task: SubagentTask) -> SubagentResult:
        subagent_id = self._session.try_spawn()
        if subagent_id is None:
            return SubagentResult(
                status=SubagentStatus.DENIED,
                findings=(
                    f"Maximum subagents ({self._session.max_subagents}) reached for this session. "
                    "Use direct tools for remaining investigations."
                ),
                error="subagent limit reached",
            )

        label = f"Subagent #{subagent_id}"
        max_iterations = task.max_tool_calls or self._settings.get_max_iterations()
        max_tool_calls = task.max_tool_calls or self._settings.get_max_tool_calls()
        timeout = self._settings.get_subagent_timeout_seconds()

        conversation = ConversationManager()
        conversation.append_system(
            self._prompts.system_prompt(task, self._registry.list(), max_tool_calls)
        )
        conversation.append_user(self._prompts.user_prompt(task))

        # No plan manager, no subagent session and no spawn hook
        context = ExecutionContext(repo_root=self._repo_root, cancellation=self._cancellation)
        executor = ToolExecutor(
            self._registry,
            context,
            max_tool_calls=max_tool_calls,
            max_response_chars=self._settings.get_max_tool_response_chars(),
            label=label,
        )
        runner = ConversationRunner(
            self._model,
            executor,
            conversation,
            max_iterations=max_iterations,
            cancellation=self._cancellation,
            label=label,
        )

        logger.info(f"[{label}] Starting investigation: {task.task[:120]}")
        try:
            async with asyncio.timeout(timeout):
                outcome = await runner.run()
        except AnalysisCancelledError:
            raise
        except TimeoutError:
            if self._cancellation is not None and self._cancellation.is_cancelled:
                self._cancellation.raise_if_cancelled()
            logger.warning(f"[{label}] Timed out after {timeout}s")
            return SubagentResult(
                subagent_id=subagent_id,
                status=SubagentStatus.TIMED_OUT,
                findings=f"Subagent timed out after {timeout:g}s. Break into smaller, more focused tasks.",
                tool_calls_made=executor.tool_call_count,
                tool_calls=list(runner.records),
                error="timeout",
            )
        except Exception as e:
            logger.error(f"[{label}] Failed: {e}")
            return SubagentResult(
                subagent_id=subagent_id,
                status=SubagentStatus.FAILED,
                findings=f"Subagent failed: {e}",
                tool_calls_made=executor.tool_call_count,
                tool_calls=list(runner.records),
                error=str(e),
            )

        if outcome.status == AnalysisStatus.EXHAUSTED:
            logger.info(f"[{label}] Reached its limit of {max_iterations} iterations")
            partial = outcome.text or "No findings were produced before the limit was reached."
            findings = (
                f"{partial}\n\n[Note: the subagent reached its limit of {max_iterations} iterations; "
                "these findings may be partial.]"
            )
            status = SubagentStatus.INCOMPLETE
        else:
            logger.info(f"[{label}] Completed with {executor.tool_call_count} tool calls")
            findings = outcome.text or "The subagent finished without reporting any findings."
            status = SubagentStatus.COMPLETED

        return SubagentResult(
            subagent_id=subagent_id,
            status=status,
            findings=findings,
            tool_calls_made=executor.tool_call_count,
            tool_calls=list(runner.records),
        )
