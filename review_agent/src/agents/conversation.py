# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Ordered message history for one analysis session."""

import logging

from typing import Optional

from ..types.conversation_types import (
    AssistantTurn,
    SystemTurn,
    ToolCallRequest,
    ToolTurn,
    UserTurn,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

Turn = SystemTurn | UserTurn | AssistantTurn | ToolTurn


class ConversationManager:
    """
    Append-only sequence of conversation turns.

    Tool turns may only answer the tool calls of the most recent assistant
    turn, each exactly once, so a snapshot never pairs an assistant tool-call
    turn with missing or foreign results once every call has been answered.
    """

    def __init__(self):
        self._turns: list[Turn] = []
        self._pending_tool_call_ids: list[str] = []

    def append_system(self, content: str) -> None:
        self._turns.append(SystemTurn(content=content))

    def append_user(self, content: str) -> None:
        self._check_no_pending("user")
        self._turns.append(UserTurn(content=content))

    def append_assistant(
        self, content: Optional[str], tool_calls: list[ToolCallRequest] | None = None
    ) -> AssistantTurn:
        self._check_no_pending("assistant")
        turn = AssistantTurn(content=content, tool_calls=list(tool_calls or []))
        self._turns.append(turn)
        self._pending_tool_call_ids = [call.id for call in turn.tool_calls]
        return turn

    def append_tool_result(self, tool_call_id: str, name: str, text: str) -> None:
        if tool_call_id not in self._pending_tool_call_ids:
            raise ValueError(
                f"Tool result for '{tool_call_id}' does not answer a pending tool call "
                f"of the preceding assistant turn"
            )
        self._pending_tool_call_ids.remove(tool_call_id)
        self._turns.append(ToolTurn(tool_call_id=tool_call_id, name=name, content=text))

    def _check_no_pending(self, role: str) -> None:
        if self._pending_tool_call_ids:
            raise ValueError(
                f"Cannot append a {role} turn while tool calls are unanswered: "
                f"{', '.join(self._pending_tool_call_ids)}"
            )

    @property
    def has_pending_tool_calls(self) -> bool:
        return bool(self._pending_tool_call_ids)

    def snapshot(self) -> list[Turn]:
        """Copies of the turns in order, safe to hand to a model client."""
        return [turn.model_copy(deep=True) for turn in self._turns]

    def clear(self) -> None:
        """Only used before the first message of a session is appended."""
        self._turns.clear()
        self._pending_tool_call_ids = []

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def last_assistant_content(self) -> Optional[str]:
        """The most recent non-empty assistant text, if any."""
        for turn in reversed(self._turns):
            if isinstance(turn, AssistantTurn) and turn.content and turn.content.strip():
                return turn.content
        return None

    def turns_by_role(self, role: str) -> list[Turn]:
        return [t for t in self._turns if t.role == role]

    def __len__(self) -> int:
        return len(self._turns)
