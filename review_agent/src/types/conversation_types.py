# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, Field


class ToolCallRequest(BaseModel):
    """A model-requested tool invocation, consumed exactly once by the executor."""

    id: str
    tool_name: str
    # Raw JSON text as produced by the model; may be malformed. A dict is
    # accepted for clients that decode arguments themselves.
    raw_arguments: str | dict[str, Any] = "{}"

    def __str__(self) -> str:
        return f"Tool call {self.tool_name} (id: {self.id}): {self.raw_arguments}"


class SystemTurn(BaseModel):
    role: Literal["system"] = "system"
    content: str


class UserTurn(BaseModel):
    role: Literal["user"] = "user"
    content: str


class AssistantTurn(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)


class ToolTurn(BaseModel):
    role: Literal["tool"] = "tool"
    tool_call_id: str
    name: str
    content: str


ConversationTurn = Annotated[
    Union[SystemTurn, UserTurn, AssistantTurn, ToolTurn],
    Field(discriminator="role"),
]


class AssistantResponse(BaseModel):
    """One assistant turn as returned by a model client."""

    content: Optional[str] = None
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


def turn_text(turn: SystemTurn | UserTurn | AssistantTurn | ToolTurn) -> str:
    """Flatten a turn to text, e.g. for token counting."""
    if isinstance(turn, AssistantTurn):
        parts = [turn.content or ""]
        for call in turn.tool_calls:
            parts.append(str(call))
        return "\n".join(p for p in parts if p)
    return turn.content
