# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging
import threading

from typing import Optional

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class SubagentSessionManager:
    """
    Session-wide subagent budget, shared by reference with every sibling
    tool call of one analysis.

    Subagents cannot spawn subagents, so a single flat counter bounds the
    whole delegation fan-out. The compare-and-increment happens under a lock
    so racing spawn attempts never over-grant, whichever thread or task they
    come from.
    """

    def __init__(self, max_subagents: int):
        if max_subagents < 0:
            raise ValueError("max_subagents must be non-negative")
        self._max_subagents = max_subagents
        self._spawned = 0
        self._lock = threading.Lock()

    def try_spawn(self) -> Optional[int]:
        """Acquire a spawn permit: the new subagent's 1-based id, or None if denied."""
        with self._lock:
            if self._spawned >= self._max_subagents:
                logger.info(
                    f"Subagent spawn denied: {self._spawned}/{self._max_subagents} already spawned"
                )
                return None
            self._spawned += 1
            return self._spawned

    @property
    def spawned(self) -> int:
        return self._spawned

    @property
    def max_subagents(self) -> int:
        return self._max_subagents

    @property
    def remaining(self) -> int:
        return max(0, self._max_subagents - self._spawned)
