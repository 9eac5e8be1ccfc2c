# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""The interface the orchestration core needs from a language model."""

from abc import ABC, abstractmethod
from typing import Sequence

from ..tools.base_tool import BaseTool
from ..types.conversation_types import AssistantResponse, ConversationTurn, turn_text


class ModelClient(ABC):
    """Send a conversation, get one assistant turn back."""

    @abstractmethod
    async def send_conversation(
        self,
        turns: Sequence[ConversationTurn],
        tools: Sequence[type[BaseTool]] = (),
    ) -> AssistantResponse:
        pass

    @abstractmethod
    async def count_tokens(self, text: str) -> int:
        pass

    @property
    @abstractmethod
    def max_input_tokens(self) -> int:
        pass

    async def count_conversation_tokens(self, turns: Sequence[ConversationTurn]) -> int:
        total = 0
        for turn in turns:
            total += await self.count_tokens(turn_text(turn))
        return total
