# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""The single choke point through which every tool call passes."""

import json
import time
import asyncio
import logging

from typing import Any
from pydantic import ValidationError

from .base_tool import BaseTool
from .registry import ToolRegistry
from ..exceptions import AnalysisCancelledError
from ..types.tool_types import ToolErrorKind, ToolExecutionResult, ToolResult
from ..types.conversation_types import ToolCallRequest
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def parse_tool_arguments(raw_arguments: str | dict[str, Any] | None) -> tuple[dict[str, Any], str | None]:
    """
    Decode the model's raw argument text.

    Malformed JSON (or JSON that is not an object) resolves to an empty
    argument object plus a warning, so validation can name the missing fields
    and the model can retry with corrected arguments.
    """
    if raw_arguments is None:
        return {}, None
    if isinstance(raw_arguments, dict):
        return dict(raw_arguments), None
    if raw_arguments.strip() == "":
        return {}, None
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        return {}, f"Arguments were not valid JSON ({e.msg}) and were treated as an empty object."
    if not isinstance(parsed, dict):
        return {}, f"Arguments must be a JSON object, got {type(parsed).__name__}; treated as an empty object."
    return parsed, None


def format_validation_errors(tool_name: str, error: ValidationError) -> str:
    lines = [f"Invalid arguments for tool '{tool_name}':"]
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "<arguments>"
        lines.append(f"- {loc}: {err.get('msg', 'invalid value')}")
    return "\n".join(lines)


class ToolExecutor:
    """
    Validates, rate-limits, executes and size-bounds tool invocations.

    One executor belongs to exactly one session (or one subagent run): its
    attempt counter is never shared. The counter is incremented before any
    other check, so malformed and rejected calls count towards the ceiling.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        context: ExecutionContext,
        max_tool_calls: int,
        max_response_chars: int,
        label: str | None = None,
    ):
        self._registry = registry
        self._context = context
        self._max_tool_calls = max_tool_calls
        self._max_response_chars = max_response_chars
        self._tool_call_count = 0
        self._log_prefix = f"[{label}]" if label else "[Tools]"

    @property
    def tool_call_count(self) -> int:
        return self._tool_call_count

    @property
    def max_tool_calls(self) -> int:
        return self._max_tool_calls

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def context(self) -> ExecutionContext:
        return self._context

    def get_available_tools(self) -> list[type[BaseTool]]:
        return self._registry.list()

    def is_tool_available(self, name: str) -> bool:
        return self._registry.has(name)

    async def execute_one(
        self, tool_name: str, raw_arguments: str | dict[str, Any] | None
    ) -> ToolExecutionResult:
        """
        Execute a single tool call.

        Every failure is returned as a ToolExecutionResult; the only
        exception that leaves this method is AnalysisCancelledError.
        """
        self._tool_call_count += 1
        attempt = self._tool_call_count

        if attempt > self._max_tool_calls:
            logger.warning(
                f"{self._log_prefix} Rate limit exceeded for {tool_name}: "
                f"attempt {attempt} of {self._max_tool_calls}"
            )
            return ToolExecutionResult.failure(
                tool_name,
                ToolErrorKind.RATE_LIMIT_EXCEEDED,
                f"Rate limit exceeded: {attempt} tool calls made, maximum "
                f"{self._max_tool_calls} per analysis session. Please refine "
                f"your analysis approach and work with the evidence you have.",
            )

        self._context.check_cancelled()

        tool_cls = self._registry.get(tool_name)
        if tool_cls is None:
            available = ", ".join(self._registry.names()) or "none"
            return ToolExecutionResult.failure(
                tool_name,
                ToolErrorKind.TOOL_NOT_FOUND,
                f"Tool '{tool_name}' not found. Available tools: {available}",
            )

        args, parse_warning = parse_tool_arguments(raw_arguments)
        if parse_warning:
            logger.error(f"{self._log_prefix} Failed to parse args for {tool_name}: {raw_arguments!r}")

        try:
            validated_tool = tool_cls.model_validate(args)
        except ValidationError as e:
            message = format_validation_errors(tool_name, e)
            if parse_warning:
                message += f"\nNote: {parse_warning}"
            return ToolExecutionResult.failure(tool_name, ToolErrorKind.VALIDATION_FAILED, message)

        start_time = time.time()
        try:
            tool_result = await validated_tool.run(self._context)
        except AnalysisCancelledError:
            raise
        except Exception as e:
            logger.error(f"{self._log_prefix} Error during {tool_name} execution: {e}")
            result = ToolExecutionResult.failure(
                tool_name,
                ToolErrorKind.TOOL_RUNTIME_ERROR,
                f"Tool runtime error: {e}" if str(e) else f"Tool runtime error: {type(e).__name__}",
            )
            result.duration = time.time() - start_time
            return result
        duration = time.time() - start_time

        if not isinstance(tool_result, ToolResult):
            return ToolExecutionResult(
                tool_name=tool_name,
                success=False,
                error_message=f"Tool runtime error: {tool_name} returned {type(tool_result).__name__}, not a ToolResult",
                error_kind=ToolErrorKind.TOOL_RUNTIME_ERROR,
                duration=duration,
            )

        if not tool_result.success:
            return ToolExecutionResult(
                tool_name=tool_name,
                success=False,
                error_message=tool_result.error or "Tool reported failure without a message",
                error_kind=ToolErrorKind.TOOL_RUNTIME_ERROR,
                metadata=tool_result.metadata,
                duration=duration,
            )

        data = tool_result.data
        # The final review is returned whole, however long
        is_completion = bool(tool_result.metadata.get("is_completion"))
        if data and len(data) > self._max_response_chars and not is_completion:
            logger.warning(
                f"{self._log_prefix} {tool_name} response of {len(data)} chars exceeds "
                f"the {self._max_response_chars} char limit"
            )
            return ToolExecutionResult(
                tool_name=tool_name,
                success=False,
                error_message=(
                    f"Response too large: {len(data)} characters exceeds the maximum of "
                    f"{self._max_response_chars}. Narrow your request (a smaller line "
                    f"range, a more specific path, pattern or symbol) and try again."
                ),
                error_kind=ToolErrorKind.RESPONSE_TOO_LARGE,
                duration=duration,
            )

        return ToolExecutionResult(
            tool_name=tool_name,
            success=True,
            result_text=data,
            metadata=tool_result.metadata,
            duration=duration,
        )

    async def execute_batch(self, requests: list[ToolCallRequest]) -> list[ToolExecutionResult]:
        """
        Dispatch every request concurrently and return results in input order.

        A failing call never affects its siblings. A fault (cancellation)
        raised by any call fails the whole batch and cancels the calls that
        are still running.
        """
        if not requests:
            return []

        tasks = [
            asyncio.ensure_future(self.execute_one(r.tool_name, r.raw_arguments))
            for r in requests
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
