# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Runtime configuration, read from ``REVIEW_AGENT_*`` environment variables or a .env file."""

from typing import Literal, Optional, Protocol
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SettingsReader(Protocol):
    """The limits the orchestration core reads. Injected, never global."""

    def get_max_iterations(self) -> int: ...

    def get_max_tool_calls(self) -> int: ...

    def get_max_subagents_per_session(self) -> int: ...

    def get_max_tool_response_chars(self) -> int: ...

    def get_subagent_timeout_seconds(self) -> float: ...


class Settings(BaseSettings):
    # Model
    MODEL: str = "gpt-4o"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    TEMPERATURE: float = Field(default=0.2, ge=0.0, le=2.0)
    MAX_INPUT_TOKENS: int = Field(default=128_000, ge=1)
    REQUEST_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Analysis limits
    MAX_ITERATIONS: int = Field(default=10, ge=1)
    MAX_TOOL_CALLS: int = Field(default=50, ge=1)
    MAX_SUBAGENTS_PER_SESSION: int = Field(default=5, ge=0)
    MAX_TOOL_RESPONSE_CHARS: int = Field(default=60_000, ge=1)
    SUBAGENT_TIMEOUT_SECONDS: float = Field(default=120.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="REVIEW_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_max_iterations(self) -> int:
        return self.MAX_ITERATIONS

    def get_max_tool_calls(self) -> int:
        return self.MAX_TOOL_CALLS

    def get_max_subagents_per_session(self) -> int:
        return self.MAX_SUBAGENTS_PER_SESSION

    def get_max_tool_response_chars(self) -> int:
        return self.MAX_TOOL_RESPONSE_CHARS

    def get_subagent_timeout_seconds(self) -> float:
        return self.SUBAGENT_TIMEOUT_SECONDS


_settings: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings for the application entry point only."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
