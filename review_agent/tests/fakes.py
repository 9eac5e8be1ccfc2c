# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Deterministic stand-ins for the language model used across the test suite."""

import json
import asyncio
import itertools

from typing import Any, Awaitable, Callable, Sequence, Union

from pydantic import Field

from review_agent.src.llm.base import ModelClient
from review_agent.src.tools.base_tool import BaseTool
from review_agent.src.types.tool_types import ToolResult, tool_success
from review_agent.src.types.execution_context import ExecutionContext
from review_agent.src.types.conversation_types import (
    AssistantResponse,
    ConversationTurn,
    SystemTurn,
    ToolCallRequest,
)

_ids = itertools.count(1)

Step = Union[
    AssistantResponse,
    BaseException,
    Callable[[list[ConversationTurn]], Awaitable[AssistantResponse]],
]


def call(tool_name: str, arguments: dict[str, Any] | str | None = None, call_id: str | None = None) -> ToolCallRequest:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
    return ToolCallRequest(id=call_id or f"call_{next(_ids)}", tool_name=tool_name, raw_arguments=raw)


def reply(*calls: ToolCallRequest, content: str | None = None) -> AssistantResponse:
    return AssistantResponse(content=content, tool_calls=list(calls))


class ScriptedModelClient(ModelClient):
    """
    Replays a fixed script of responses. A step may be a response, an
    exception to raise, or an async callable receiving the conversation.
    The last step is repeated when ``repeat_last`` is set.
    """

    def __init__(
        self,
        script: Sequence[Step],
        max_input_tokens: int = 1_000_000,
        chars_per_token: int = 4,
        repeat_last: bool = False,
    ):
        self._script = list(script)
        self._max_input_tokens = max_input_tokens
        self._chars_per_token = chars_per_token
        self._repeat_last = repeat_last
        self.requests: list[list[ConversationTurn]] = []
        self.tool_names: list[list[str]] = []

    @property
    def max_input_tokens(self) -> int:
        return self._max_input_tokens

    async def count_tokens(self, text: str) -> int:
        return len(text) // self._chars_per_token

    async def send_conversation(self, turns, tools=()) -> AssistantResponse:
        self.requests.append(list(turns))
        self.tool_names.append([t.TOOL_NAME for t in tools])
        await asyncio.sleep(0)
        if not self._script:
            raise AssertionError("Model script exhausted")
        step = self._script[0] if self._repeat_last and len(self._script) == 1 else self._script.pop(0)
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step(list(turns))
        return step

    @property
    def call_count(self) -> int:
        return len(self.requests)


class RoutingModelClient(ModelClient):
    """
    Dispatches each request to the main script or to subagent behaviour
    depending on the system prompt, for tests where subagents run
    concurrently with (and interleave with) the main conversation.
    """

    def __init__(
        self,
        main: ScriptedModelClient,
        subagent: Callable[[list[ConversationTurn]], Awaitable[AssistantResponse]],
        max_input_tokens: int = 1_000_000,
    ):
        self.main = main
        self._subagent = subagent
        self._max_input_tokens = max_input_tokens
        self.subagent_requests = 0

    @property
    def max_input_tokens(self) -> int:
        return self._max_input_tokens

    async def count_tokens(self, text: str) -> int:
        return len(text) // 4

    async def send_conversation(self, turns, tools=()) -> AssistantResponse:
        first = turns[0] if turns else None
        if isinstance(first, SystemTurn) and first.content.startswith("You are a focused investigation subagent"):
            self.subagent_requests += 1
            return await self._subagent(list(turns))
        return await self.main.send_conversation(turns, tools)


class EchoTool(BaseTool):
    TOOL_NAME = "echo"
    TOOL_DESCRIPTION = "Echo the given text back, optionally after a delay."

    text: str = Field(..., description="Text to echo", min_length=1)
    delay: float = Field(default=0.0, description="Seconds to wait before answering", ge=0)

    async def run(self, context: ExecutionContext) -> ToolResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        return tool_success(self.text)


class ExplodingTool(BaseTool):
    TOOL_NAME = "explode"
    TOOL_DESCRIPTION = "Always raises."

    async def run(self, context: ExecutionContext) -> ToolResult:
        raise RuntimeError("kaboom")


class BlockingTool(BaseTool):
    """Waits until the session is cancelled, then lets the executor observe it."""

    TOOL_NAME = "block"
    TOOL_DESCRIPTION = "Blocks until cancelled."

    async def run(self, context: ExecutionContext) -> ToolResult:
        if context.cancellation is not None:
            await context.cancellation.wait()
            context.cancellation.raise_if_cancelled()
        await asyncio.sleep(3600)
        return tool_success("unreachable")
