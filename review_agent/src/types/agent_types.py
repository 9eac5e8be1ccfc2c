# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from .tool_types import ToolCallRecord


class AnalysisStatus(str, Enum):
    """Terminal states of a bounded conversation loop."""

    SUCCESS = "success"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"  # iteration ceiling reached without a final answer
    ERROR = "error"


class SubagentTask(BaseModel):
    """A delegated sub-investigation, consumed once by the SubagentExecutor."""

    task: str = Field(description="What to investigate, where to look and what to return")
    context: Optional[str] = Field(
        default=None, description="Context handed down from the parent analysis"
    )
    max_tool_calls: Optional[int] = Field(default=None, ge=1)


class SubagentStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"  # ceiling reached, partial findings
    DENIED = "denied"  # session subagent budget exhausted
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class SubagentResult(BaseModel):
    subagent_id: Optional[int] = None
    status: SubagentStatus
    findings: str
    tool_calls_made: int = 0
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in (SubagentStatus.COMPLETED, SubagentStatus.INCOMPLETE)


class LoopOutcome(BaseModel):
    """What a single run of the bounded conversation loop produced."""

    status: AnalysisStatus
    text: str
    iterations: int = 0


class ToolCallsSummary(BaseModel):
    calls: list[ToolCallRecord] = Field(default_factory=list)
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    analysis_completed: bool = False
    analysis_error: Optional[str] = None

    @classmethod
    def from_records(
        cls,
        records: list[ToolCallRecord],
        completed: bool,
        error: str | None = None,
    ) -> "ToolCallsSummary":
        successful = sum(1 for r in records if r.success)
        return cls(
            calls=list(records),
            total_calls=len(records),
            successful_calls=successful,
            failed_calls=len(records) - successful,
            analysis_completed=completed,
            analysis_error=error,
        )


class AnalysisResult(BaseModel):
    """
    Represents the result of a top-level analysis.

    ``analysis`` is always non-empty: either the review text or a clearly
    labelled terminal-state message.
    """

    analysis: str
    status: AnalysisStatus
    tool_calls: ToolCallsSummary
    iterations: int = 0
    start_time: datetime
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    def __str__(self) -> str:
        parts = [
            "<ANALYSIS_RESULT>",
            f"<STATUS>{self.status.value}</STATUS>",
            f"<ANALYSIS>\n{self.analysis}\n</ANALYSIS>",
            f"<TOOL_CALLS>{self.tool_calls.total_calls} calls "
            f"({self.tool_calls.successful_calls} succeeded, "
            f"{self.tool_calls.failed_calls} failed)</TOOL_CALLS>",
        ]
        if self.tool_calls.analysis_error:
            parts.append(f"<ERRORS>{self.tool_calls.analysis_error}</ERRORS>")
        if self.duration_seconds is not None:
            parts.append(
                f"<METRICS>Completed in {self.duration_seconds:.2f}s "
                f"over {self.iterations} iterations</METRICS>"
            )
        parts.append("</ANALYSIS_RESULT>")
        return "\n".join(parts)
