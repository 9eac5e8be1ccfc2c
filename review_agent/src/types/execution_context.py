# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from __future__ import annotations

from pathlib import Path
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from .agent_types import SubagentResult, SubagentTask
    from ..agents.plan_session import PlanSessionManager
    from ..agents.subagent_session import SubagentSessionManager
    from ..utils.cancellation import CancellationToken


SpawnSubagent = Callable[["SubagentTask"], Awaitable["SubagentResult"]]


@dataclass(frozen=True)
class ExecutionContext:
    """
    Session-scoped collaborators handed to every tool invocation.

    Every field is optional so a tool can run in degraded contexts: a
    subagent gets the repository root and the cancellation token, but no plan
    manager and no spawn hook.
    """

    repo_root: Optional[Path] = None
    cancellation: Optional["CancellationToken"] = None
    plan_manager: Optional["PlanSessionManager"] = None
    subagent_session: Optional["SubagentSessionManager"] = None
    spawn_subagent: Optional[SpawnSubagent] = None

    def resolve_root(self) -> Path:
        return (self.repo_root or Path.cwd()).resolve()

    def check_cancelled(self) -> None:
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()
