# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Top-level orchestration of one code review analysis.

Every call to ``analyze`` builds a brand new AnalysisSession (conversation,
tool executor, plan, subagent budget), so concurrent analyses in the same
process never share mutable state. Only the immutable tool registry and the
injected collaborators are reused across calls.
"""

import logging

from pathlib import Path
from datetime import datetime
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .conversation import ConversationManager
from .conversation_runner import ConversationRunner
from .plan_session import PlanSessionManager
from .subagent_executor import SubagentExecutor
from .subagent_session import SubagentSessionManager
from ..config import SettingsReader
from ..llm.base import ModelClient
from ..exceptions import AnalysisCancelledError, ModelClientError
from ..prompts import PromptGenerator, SubagentPromptGenerator
from ..tools import COMPLETION_TOOL_NAME, default_tools
from ..tools.base_tool import BaseTool
from ..tools.registry import ToolRegistry
from ..tools.executor import ToolExecutor
from ..utils.cancellation import CancellationToken
from ..utils.diff_utils import DiffFile, parse_diff
from ..types.agent_types import AnalysisResult, AnalysisStatus, ToolCallsSummary
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MIN_TOOL_SPACE_RATIO = 0.3
TRUNCATION_TARGET_RATIO = 0.8
CHARS_PER_TOKEN = 4
DIFF_TRUNCATED_MARKER = "\n\n[... diff truncated due to size ...]"
TOOLS_DISABLED_NOTICE = (
    "Note: this diff is too large to leave room for tool calls, so tools are "
    "disabled and the diff below has been truncated. Base your review on the "
    "visible changes only.\n\n"
)
NO_CONTENT_MESSAGE = "Analysis completed but no content returned."


@dataclass
class AnalysisSession:
    """All mutable state of one analysis. Never reused."""

    conversation: ConversationManager
    executor: ToolExecutor
    plan_manager: PlanSessionManager
    subagent_session: SubagentSessionManager
    subagent_executor: SubagentExecutor
    cancellation: CancellationToken


class ToolCallingAnalysisProvider:
    """
    Drives the model through a bounded tool-calling loop until it submits a
    review, answers in plain text, runs out of iterations, fails or is
    cancelled.

    Cancellation is raised out of ``analyze`` as AnalysisCancelledError.
    Every other terminal state is returned as an AnalysisResult whose
    ``analysis`` text is never empty.
    """

    def __init__(
        self,
        model_client: ModelClient,
        settings: SettingsReader,
        repo_root: Optional[Path] = None,
        tools: Optional[Sequence[type[BaseTool]]] = None,
        prompt_generator: Optional[PromptGenerator] = None,
        subagent_prompt_generator: Optional[SubagentPromptGenerator] = None,
        diff_parser: Callable[[str], list[DiffFile]] = parse_diff,
        log: Optional[logging.Logger] = None,
    ):
        self._model = model_client
        self._settings = settings
        self._repo_root = Path(repo_root).resolve() if repo_root else Path.cwd().resolve()
        self._registry = ToolRegistry(default_tools() if tools is None else tools)
        self._prompts = prompt_generator or PromptGenerator()
        self._subagent_prompts = subagent_prompt_generator or SubagentPromptGenerator()
        self._diff_parser = diff_parser
        self._log = log or logger

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def _new_session(self, registry: ToolRegistry, cancellation: CancellationToken) -> AnalysisSession:
        plan_manager = PlanSessionManager()
        subagent_session = SubagentSessionManager(self._settings.get_max_subagents_per_session())
        subagent_executor = SubagentExecutor(
            self._model,
            self._settings,
            registry,
            subagent_session,
            repo_root=self._repo_root,
            cancellation=cancellation,
            prompt_generator=self._subagent_prompts,
        )
        context = ExecutionContext(
            repo_root=self._repo_root,
            cancellation=cancellation,
            plan_manager=plan_manager,
            subagent_session=subagent_session,
            spawn_subagent=subagent_executor.run,
        )
        executor = ToolExecutor(
            registry,
            context,
            max_tool_calls=self._settings.get_max_tool_calls(),
            max_response_chars=self._settings.get_max_tool_response_chars(),
            label="Main Analysis",
        )
        return AnalysisSession(
            conversation=ConversationManager(),
            executor=executor,
            plan_manager=plan_manager,
            subagent_session=subagent_session,
            subagent_executor=subagent_executor,
            cancellation=cancellation,
        )

    async def _process_diff_size(
        self, diff_text: str, files: list[DiffFile], focus: Optional[str]
    ) -> tuple[str, bool]:
        """
        Decide whether the prompts leave enough of the context window for tool
        traffic. Returns the (possibly truncated) diff and whether tools stay
        enabled.
        """
        try:
            max_tokens = self._model.max_input_tokens
            system_tokens = await self._model.count_tokens(self._prompts.system_prompt(self._registry.list()))
            user_tokens = await self._model.count_tokens(self._prompts.user_prompt(files, diff_text, focus))
        except Exception as e:
            self._log.error(f"[Main Analysis] Error processing diff size: {e}")
            return diff_text, True

        available = max_tokens - system_tokens - user_tokens
        if available >= max_tokens * MIN_TOOL_SPACE_RATIO:
            return diff_text, True

        target_tokens = int(max_tokens * TRUNCATION_TARGET_RATIO) - system_tokens
        target_chars = max(0, target_tokens * CHARS_PER_TOKEN)
        truncated = diff_text[:target_chars]
        last_newline = truncated.rfind("\n")
        if last_newline > target_chars * TRUNCATION_TARGET_RATIO:
            truncated = truncated[:last_newline]

        self._log.warning(
            f"[Main Analysis] Diff too large ({system_tokens + user_tokens}/{max_tokens} prompt tokens); "
            f"truncated from {len(diff_text)} to {len(truncated)} characters and disabled tools"
        )
        return truncated + DIFF_TRUNCATED_MARKER, False

    async def analyze(
        self,
        diff_text: str,
        cancellation: Optional[CancellationToken] = None,
        focus: Optional[str] = None,
    ) -> AnalysisResult:
        start_time = datetime.now()
        token = cancellation or CancellationToken()
        token.raise_if_cancelled()

        max_iterations = self._settings.get_max_iterations()
        runner: Optional[ConversationRunner] = None
        try:
            files = self._diff_parser(diff_text)
            self._log.info(f"[Main Analysis] Starting review of {len(files)} changed files")

            diff_text, tools_enabled = await self._process_diff_size(diff_text, files, focus)
            registry = self._registry if tools_enabled else ToolRegistry()
            session = self._new_session(registry, token)

            user_prompt = self._prompts.user_prompt(files, diff_text, focus)
            if not tools_enabled:
                user_prompt = TOOLS_DISABLED_NOTICE + user_prompt
            session.conversation.append_system(self._prompts.system_prompt(registry.list()))
            session.conversation.append_user(user_prompt)

            runner = ConversationRunner(
                self._model,
                session.executor,
                session.conversation,
                max_iterations=max_iterations,
                cancellation=token,
                completion_tool_name=COMPLETION_TOOL_NAME if COMPLETION_TOOL_NAME in registry else None,
                label="Main Analysis",
                log=self._log,
            )
            outcome = await runner.run()
        except AnalysisCancelledError:
            raise
        except Exception as e:
            if isinstance(e, ModelClientError):
                self._log.error(f"[Main Analysis] Model client failure: {e}")
            else:
                self._log.exception(f"[Main Analysis] Unexpected failure: {e}")
            cause = str(e) or type(e).__name__
            records = runner.records if runner is not None else []
            return AnalysisResult(
                analysis=f"Error during analysis: {cause}",
                status=AnalysisStatus.ERROR,
                tool_calls=ToolCallsSummary.from_records(records, completed=False, error=cause),
                iterations=runner.iterations if runner is not None else 0,
                start_time=start_time,
                end_time=datetime.now(),
            )

        if outcome.status == AnalysisStatus.EXHAUSTED:
            text = outcome.text or (
                f"Analysis incomplete: reached the maximum of {max_iterations} iterations "
                "without a final review."
            )
            error = f"Maximum iterations ({max_iterations}) reached"
            completed = False
        else:
            text = outcome.text or NO_CONTENT_MESSAGE
            error = None
            completed = True

        self._log.info(
            f"[Main Analysis] Finished with status {outcome.status.value} after {outcome.iterations} iterations, "
            f"{session.executor.tool_call_count} tool calls and {session.subagent_session.spawned} subagents"
        )
        return AnalysisResult(
            analysis=text,
            status=outcome.status,
            tool_calls=ToolCallsSummary.from_records(runner.records, completed=completed, error=error),
            iterations=outcome.iterations,
            start_time=start_time,
            end_time=datetime.now(),
        )
