# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import time
import logging

from typing import Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@dataclass
class PlanRevision:
    plan: str
    timestamp: float


class PlanSessionManager:
    """The review plan of one analysis session. Subagents never see it."""

    def __init__(self):
        self._revisions: list[PlanRevision] = []

    def update_plan(self, plan: str) -> int:
        """Store a new plan revision and return its 1-based revision number."""
        self._revisions.append(PlanRevision(plan=plan, timestamp=time.time()))
        logger.info(f"Review plan updated (revision {len(self._revisions)})")
        return len(self._revisions)

    def get_plan(self) -> Optional[str]:
        return self._revisions[-1].plan if self._revisions else None

    @property
    def revision_count(self) -> int:
        return len(self._revisions)

    def history(self) -> list[PlanRevision]:
        return list(self._revisions)
