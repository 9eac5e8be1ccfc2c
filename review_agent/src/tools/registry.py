# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from __future__ import annotations

from typing import Iterable

from .base_tool import BaseTool


class ToolRegistry:
    """
    Lookup table from tool name to tool class, built once per session.

    Iteration order is registration order, so prompts generated from the
    registry are deterministic. The registry is only mutated while it is being
    built; concurrent tool dispatches only read it.
    """

    def __init__(self, tools: Iterable[type[BaseTool]] = ()):
        self._tools: dict[str, type[BaseTool]] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: type[BaseTool]) -> None:
        name = tool.TOOL_NAME
        if name in self._tools:
            raise ValueError(f'Tool with name "{name}" is already registered')
        self._tools[name] = tool

    def get(self, name: str) -> type[BaseTool] | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list(self) -> list[type[BaseTool]]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def without(self, *names: str) -> "ToolRegistry":
        """A new registry holding every tool except those named."""
        excluded = set(names)
        return ToolRegistry(t for t in self._tools.values() if t.TOOL_NAME not in excluded)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
