# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""The bounded conversation loop shared by the main analysis and subagents."""

import json
import logging

from typing import Optional

from .conversation import ConversationManager
from ..llm.base import ModelClient
from ..tools.executor import ToolExecutor, parse_tool_arguments
from ..exceptions import AnalysisCancelledError, ModelClientError
from ..utils.cancellation import CancellationToken
from ..types.tool_types import ToolCallRecord, ToolExecutionResult
from ..types.agent_types import AnalysisStatus, LoopOutcome
from ..types.conversation_types import AssistantResponse, ToolCallRequest

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

CONTEXT_FULL_RATIO = 0.95
CONTEXT_WARNING_RATIO = 0.8
CONTEXT_NOTICE_RATIO = 0.5

CONTEXT_FULL_MESSAGE = (
    "Context window is full. Please provide your final analysis based on the "
    "information you have gathered so far."
)


def summarize_arguments(raw_arguments) -> str:
    """Short, single-line rendering of tool arguments for logs."""
    arguments, _ = parse_tool_arguments(raw_arguments)
    text = json.dumps(arguments, ensure_ascii=False)
    return text if len(text) <= 200 else text[:197] + "..."


class ConversationRunner:
    """
    Runs one bounded tool-calling loop over a conversation that has already
    been seeded with its system and user turns.

    Each iteration sends the conversation to the model, appends the assistant
    turn, and either terminates (no tool calls, or a successful call to the
    completion tool when one is configured) or dispatches the tool calls as a
    concurrent batch and appends their results in call order.

    Cancellation is checked before every model call, after every model
    response and after every tool batch; once observed it is raised as
    AnalysisCancelledError, never returned as text. Model client failures are
    raised as ModelClientError.
    """

    def __init__(
        self,
        model_client: ModelClient,
        executor: ToolExecutor,
        conversation: ConversationManager,
        max_iterations: int,
        cancellation: Optional[CancellationToken] = None,
        completion_tool_name: Optional[str] = None,
        label: str = "Analysis",
        report_context_status: bool = True,
        log: Optional[logging.Logger] = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._model = model_client
        self._executor = executor
        self._conversation = conversation
        self._max_iterations = max_iterations
        self._cancellation = cancellation
        self._completion_tool_name = completion_tool_name
        self._log_prefix = f"[{label}]"
        self._report_context_status = report_context_status
        self._log = log or logger
        self._context_full_nudged = False
        self.records: list[ToolCallRecord] = []
        self.iterations = 0

    def _check_cancelled(self) -> None:
        if self._cancellation is not None:
            self._cancellation.raise_if_cancelled()

    async def run(self) -> LoopOutcome:
        tools = self._executor.get_available_tools()
        last_content: Optional[str] = None

        for iteration in range(1, self._max_iterations + 1):
            self.iterations = iteration
            self._check_cancelled()
            await self._nudge_if_context_full()

            self._log.info(
                f"{self._log_prefix} Iteration {iteration}/{self._max_iterations}: "
                f"awaiting model response ({len(self._conversation)} turns)..."
            )
            response = await self._send(tools)
            self._check_cancelled()

            self._conversation.append_assistant(response.content, response.tool_calls)
            if response.content and response.content.strip():
                last_content = response.content

            if not response.has_tool_calls:
                self._log.info(f"{self._log_prefix} Completed successfully after {iteration} iterations")
                return LoopOutcome(
                    status=AnalysisStatus.SUCCESS,
                    text=(response.content or "").strip(),
                    iterations=iteration,
                )

            self._log.info(
                f"{self._log_prefix} Dispatching {len(response.tool_calls)} tool calls: "
                f"{', '.join(c.tool_name for c in response.tool_calls)}"
            )
            for c in response.tool_calls:
                self._log.debug(f"{self._log_prefix}   {c.tool_name}({summarize_arguments(c.raw_arguments)})")
            results = await self._dispatch(response.tool_calls)

            completion = self._find_completion(response.tool_calls, results)
            if completion is not None:
                self._log.info(f"{self._log_prefix} Review submitted after {iteration} iterations")
                return LoopOutcome(
                    status=AnalysisStatus.SUCCESS,
                    text=completion,
                    iterations=iteration,
                )

        self._log.warning(
            f"{self._log_prefix} Reached the maximum of {self._max_iterations} iterations without a final answer"
        )
        return LoopOutcome(
            status=AnalysisStatus.EXHAUSTED,
            text=(last_content or "").strip(),
            iterations=self._max_iterations,
        )

    async def _send(self, tools) -> AssistantResponse:
        snapshot = self._conversation.snapshot()
        try:
            request = self._model.send_conversation(snapshot, tools)
            if self._cancellation is not None:
                response = await self._cancellation.run(request)
            else:
                response = await request
        except (AnalysisCancelledError, ModelClientError):
            raise
        except Exception as e:
            self._log.error(f"{self._log_prefix} Model request failed: {e}")
            raise ModelClientError(e) from e

        if not isinstance(response, AssistantResponse):
            self._check_cancelled()
            self._log.error(f"{self._log_prefix} Model client returned {type(response).__name__}")
            raise ModelClientError(
                f"Model client returned {type(response).__name__} instead of an AssistantResponse"
            )
        return response

    async def _dispatch(self, tool_calls: list[ToolCallRequest]) -> list[ToolExecutionResult]:
        results = await self._executor.execute_batch(tool_calls)
        # A batch that finished while cancellation was requested is discarded
        self._check_cancelled()

        suffix = await self._context_status_suffix(results) if self._report_context_status else ""
        for request, result in zip(tool_calls, results):
            content = result.to_message_content()
            self._conversation.append_tool_result(request.id, request.tool_name, content + suffix)
            self.records.append(self._record(request, result, content))
            if not result.success:
                self._log.info(f"{self._log_prefix} {request.tool_name} failed: {result.error_message}")
        return results

    def _find_completion(
        self, tool_calls: list[ToolCallRequest], results: list[ToolExecutionResult]
    ) -> Optional[str]:
        if self._completion_tool_name is None:
            return None
        for request, result in zip(tool_calls, results):
            if request.tool_name == self._completion_tool_name and result.success and result.result_text:
                return result.result_text
        return None

    @staticmethod
    def _record(request: ToolCallRequest, result: ToolExecutionResult, content: str) -> ToolCallRecord:
        arguments, _ = parse_tool_arguments(request.raw_arguments)
        nested = result.metadata.get("nested_tool_calls") if result.metadata else None
        return ToolCallRecord(
            id=request.id,
            tool_name=request.tool_name,
            arguments=arguments,
            result=content,
            success=result.success,
            error=result.error_message,
            duration_ms=int(result.duration * 1000),
            nested_calls=list(nested) if nested else None,
        )

    async def _usage(self, extra_text: str = "") -> tuple[int, int]:
        total = await self._model.count_conversation_tokens(self._conversation.snapshot())
        if extra_text:
            total += await self._model.count_tokens(extra_text)
        return total, self._model.max_input_tokens

    async def _context_status_suffix(self, results: list[ToolExecutionResult]) -> str:
        """A note on context usage, appended to tool results sent to the model."""
        try:
            used, max_tokens = await self._usage("\n".join(r.to_message_content() for r in results))
        except (AnalysisCancelledError, ModelClientError):
            raise
        except Exception as e:
            self._log.error(f"{self._log_prefix} Error calculating context status: {e}")
            return ""
        if max_tokens <= 0:
            return ""

        usage_percent = round(used / max_tokens * 100)
        remaining = max(0, max_tokens - used)
        if used >= max_tokens * CONTEXT_WARNING_RATIO:
            return (
                f"\n\n[Context: {usage_percent}% used ({used}/{max_tokens} tokens). "
                f"{remaining} remaining - consider wrapping up soon]"
            )
        if used >= max_tokens * CONTEXT_NOTICE_RATIO:
            return f"\n\n[Context: {usage_percent}% used. {remaining} tokens remaining]"
        return ""

    async def _nudge_if_context_full(self) -> None:
        # History is never truncated; at most one request for a final answer is added
        if self._context_full_nudged or not self._report_context_status:
            return
        try:
            used, max_tokens = await self._usage()
        except (AnalysisCancelledError, ModelClientError):
            raise
        except Exception as e:
            self._log.error(f"{self._log_prefix} Error counting conversation tokens: {e}")
            return
        if max_tokens > 0 and used >= max_tokens * CONTEXT_FULL_RATIO:
            self._log.warning(
                f"{self._log_prefix} Context nearly full ({used}/{max_tokens} tokens), requesting final answer"
            )
            self._conversation.append_user(CONTEXT_FULL_MESSAGE)
            self._context_full_nudged = True
