# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from abc import ABC, abstractmethod
from typing import Any, ClassVar
from pydantic import BaseModel, ConfigDict

from ..types.tool_types import ToolResult
from ..types.execution_context import ExecutionContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class BaseTool(BaseModel, ABC):
    """
    Abstract base class for all tools.

    A tool is a pydantic model: its fields are the argument schema, so
    validating the model's raw arguments is constructing an instance.
    ``run`` receives the session's ExecutionContext and must be free of side
    effects on the repository.
    """

    # Class variables for tool metadata
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    model_config = ConfigDict(extra="forbid")

    @abstractmethod
    async def run(self, context: ExecutionContext) -> ToolResult:
        """Execute the tool's functionality"""
        pass

    @classmethod
    def argument_schema(cls) -> dict[str, Any]:
        return cls.model_json_schema()

    @classmethod
    def to_native_tool(cls) -> dict[str, Any]:
        """The OpenAI-style function declaration for native tool calling."""
        return {
            "type": "function",
            "function": {
                "name": cls.TOOL_NAME,
                "description": cls.TOOL_DESCRIPTION,
                "parameters": cls.argument_schema(),
            },
        }

    @classmethod
    def to_plain_prompt_format(cls) -> str:
        """Convert the tool definition to a short documentation block for prompts"""
        fields = []
        for name, field in cls.model_fields.items():
            required = "required" if field.is_required() else "optional"
            description = field.description or ""
            fields.append(f"- `{name}` ({required}): {description}".rstrip())
        args_str = "\n".join(fields) if fields else "This tool takes no arguments."

        return f"""## `{cls.TOOL_NAME}`

{cls.TOOL_DESCRIPTION.strip()}

Arguments:
{args_str}
"""
