# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import time

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class ToolResult(BaseModel):
    """What a tool's ``run`` returns: the only contract a tool author needs to satisfy."""

    success: bool
    data: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def tool_success(data: str, metadata: dict[str, Any] | None = None) -> ToolResult:
    return ToolResult(success=True, data=data, metadata=metadata or {})


def tool_error(error: str) -> ToolResult:
    return ToolResult(success=False, error=error)


class ToolErrorKind(str, Enum):
    """Recoverable tool failures, reported back to the model as data."""

    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    TOOL_NOT_FOUND = "tool_not_found"
    VALIDATION_FAILED = "validation_failed"
    RESPONSE_TOO_LARGE = "response_too_large"
    TOOL_RUNTIME_ERROR = "tool_runtime_error"


class ToolExecutionResult(BaseModel):
    """The outcome of one call through the ToolExecutor."""

    tool_name: str
    success: bool
    result_text: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[ToolErrorKind] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    duration: float = 0.0  # on early failure paths, duration is 0

    @classmethod
    def failure(
        cls, tool_name: str, kind: ToolErrorKind, message: str
    ) -> "ToolExecutionResult":
        return cls(
            tool_name=tool_name,
            success=False,
            error_message=message,
            error_kind=kind,
        )

    def to_message_content(self) -> str:
        """The text the model sees in the tool-result turn."""
        if self.success and self.result_text:
            return self.result_text
        if self.success:
            return "Tool completed successfully with no output."
        return f"Error: {self.error_message or 'Unknown error'}"

    def __str__(self):
        status = "SUCCESS" if self.success else "FAILURE"
        return f"{self.tool_name} [{status}] ({self.duration:.3f}s): {self.to_message_content()}"


class ToolCallRecord(BaseModel):
    """A record of one executed tool call, kept for reporting."""

    id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: str = ""
    success: bool
    error: Optional[str] = None
    duration_ms: int = 0
    timestamp: float = Field(default_factory=time.time)
    nested_calls: list["ToolCallRecord"] | None = None
