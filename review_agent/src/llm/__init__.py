# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Language model clients used by the analysis loop."""

import logging

from .base import ModelClient
from .openai_client import OpenAIModelClient

# Quieten LLM API call logs to make stdout more useful
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)

__all__ = [
    "ModelClient",
    "OpenAIModelClient",
]
