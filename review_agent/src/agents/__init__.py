# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The orchestration core: conversation state, the bounded loop, subagents and
the top-level analysis provider.
"""

from .conversation import ConversationManager
from .conversation_runner import ConversationRunner
from .plan_session import PlanSessionManager
from .subagent_session import SubagentSessionManager
from .subagent_executor import SubagentExecutor
from .analysis_provider import AnalysisSession, ToolCallingAnalysisProvider

__all__ = [
    "ConversationManager",
    "ConversationRunner",
    "PlanSessionManager",
    "SubagentSessionManager",
    "SubagentExecutor",
    "AnalysisSession",
    "ToolCallingAnalysisProvider",
]
