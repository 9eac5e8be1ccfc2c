# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""OpenAI-compatible chat completions client with native tool calling."""

import json
import logging
import tiktoken

from typing import Any, Optional, Sequence
from openai import AsyncOpenAI

from .base import ModelClient
from ..tools.base_tool import BaseTool
from ..types.conversation_types import (
    AssistantResponse,
    AssistantTurn,
    ConversationTurn,
    ToolCallRequest,
    ToolTurn,
)

logger = logging.getLogger(__name__)


class OpenAIModelClient(ModelClient):
    """Provider implementation for OpenAI's (and OpenAI-compatible) models."""

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.2,
        max_input_tokens: int = 128_000,
        request_timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self._max_input_tokens = max_input_tokens
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=request_timeout,
        )
        try:
            self.tokenizer = tiktoken.encoding_for_model(model)
        except KeyError:
            logger.debug(f"No tiktoken encoding registered for {model}, using cl100k_base")
            self.tokenizer = tiktoken.get_encoding("cl100k_base")

    @classmethod
    def from_settings(cls, settings) -> "OpenAIModelClient":
        return cls(
            model=settings.MODEL,
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            temperature=settings.TEMPERATURE,
            max_input_tokens=settings.MAX_INPUT_TOKENS,
            request_timeout=settings.REQUEST_TIMEOUT_SECONDS,
        )

    @property
    def max_input_tokens(self) -> int:
        return self._max_input_tokens

    async def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return len(self.tokenizer.encode(text, disallowed_special=()))

    def _prepare_messages(self, turns: Sequence[ConversationTurn]) -> list[dict[str, Any]]:
        # Convert our turns to OpenAI message dicts
        messages = []
        for turn in turns:
            if isinstance(turn, AssistantTurn):
                message: dict[str, Any] = {"role": "assistant", "content": turn.content or ""}
                if turn.tool_calls:
                    message["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.tool_name,
                                "arguments": (
                                    call.raw_arguments
                                    if isinstance(call.raw_arguments, str)
                                    else json.dumps(call.raw_arguments)
                                ),
                            },
                        }
                        for call in turn.tool_calls
                    ]
                messages.append(message)
            elif isinstance(turn, ToolTurn):
                messages.append(
                    {"role": "tool", "tool_call_id": turn.tool_call_id, "content": turn.content}
                )
            else:
                messages.append({"role": turn.role, "content": turn.content})
        return messages

    async def send_conversation(
        self,
        turns: Sequence[ConversationTurn],
        tools: Sequence[type[BaseTool]] = (),
    ) -> AssistantResponse:
        args: dict[str, Any] = {
            "model": self.model,
            "messages": self._prepare_messages(turns),
            "temperature": self.temperature,
        }
        if tools:
            args["tools"] = [t.to_native_tool() for t in tools]

        response = await self.client.chat.completions.create(**args)
        if not response.choices:
            raise RuntimeError("Model returned no choices")

        message = response.choices[0].message
        tool_calls = []
        for tc in message.tool_calls or []:
            # Arguments are passed through raw; the executor validates them
            tool_calls.append(
                ToolCallRequest(
                    id=tc.id,
                    tool_name=tc.function.name,
                    raw_arguments=tc.function.arguments or "{}",
                )
            )

        logger.debug(
            f"{self.model} responded with {len(tool_calls)} tool calls "
            f"(finish_reason={response.choices[0].finish_reason})"
        )
        return AssistantResponse(content=message.content, tool_calls=tool_calls)
