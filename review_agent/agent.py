# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The main entrypoint to the system.
"""

import signal
import asyncio
import logging

from pathlib import Path
from typing import Optional
from datetime import datetime
from dotenv import load_dotenv

from .src.config import Settings, get_settings
from .src.llm import ModelClient, OpenAIModelClient
from .src.agents import ToolCallingAnalysisProvider
from .src.exceptions import AnalysisCancelledError
from .src.utils.cancellation import CancellationToken
from .src.types.agent_types import AnalysisResult, AnalysisStatus, ToolCallsSummary

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler()],
    )


class ReviewAgent:
    """
    Application root: wires settings, the model client and the analysis
    provider together, and turns SIGINT/SIGTERM into cancellation of the
    running review.
    """

    def __init__(
        self,
        repo_root: Optional[Path] = None,
        settings: Optional[Settings] = None,
        model_client: Optional[ModelClient] = None,
    ):
        self.repo_root = Path(repo_root or Path.cwd()).resolve()
        self.settings = settings or get_settings()
        self.model_client = model_client or OpenAIModelClient.from_settings(self.settings)
        self.provider = ToolCallingAnalysisProvider(
            self.model_client,
            self.settings,
            repo_root=self.repo_root,
        )
        self._cancellation: CancellationToken | None = None

    def _register_signal_handlers(self, token: CancellationToken) -> list[signal.Signals]:
        """Register signal handlers for graceful cancellation"""
        registered = []
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, lambda s=sig: self._signal_handler(s, token))
                registered.append(sig)
        except (NotImplementedError, RuntimeError) as e:
            logger.debug(f"Signal handlers unavailable: {e}")
        return registered

    def _signal_handler(self, sig: signal.Signals, token: CancellationToken) -> None:
        if token.is_cancelled:
            logger.warning("Forced shutdown requested")
            asyncio.get_running_loop().stop()
            return
        logger.info(f"Received signal {sig.name}, cancelling the review...")
        token.cancel(f"received {sig.name}")

    def cancel(self, reason: str | None = None) -> None:
        if self._cancellation is not None:
            self._cancellation.cancel(reason)

    async def review(
        self,
        diff_text: str,
        focus: Optional[str] = None,
        handle_signals: bool = True,
    ) -> AnalysisResult:
        """
        Run one review. Cancellation is reported as a CANCELLED result here,
        at the application boundary, rather than raised.
        """
        start_time = datetime.now()
        token = CancellationToken()
        self._cancellation = token
        registered = self._register_signal_handlers(token) if handle_signals else []

        try:
            return await self.provider.analyze(diff_text, cancellation=token, focus=focus)
        except AnalysisCancelledError as e:
            logger.warning(f"Review cancelled: {e}")
            return AnalysisResult(
                analysis=str(e),
                status=AnalysisStatus.CANCELLED,
                tool_calls=ToolCallsSummary(analysis_completed=False, analysis_error=str(e)),
                start_time=start_time,
                end_time=datetime.now(),
            )
        finally:
            self._cancellation = None
            if registered:
                loop = asyncio.get_running_loop()
                for sig in registered:
                    loop.remove_signal_handler(sig)


def build_agent(repo_root: Path, max_iterations: Optional[int] = None) -> ReviewAgent:
    load_dotenv()
    settings = get_settings()
    if max_iterations is not None:
        settings = settings.model_copy(update={"MAX_ITERATIONS": max_iterations})
    configure_logging(settings.LOG_LEVEL)
    return ReviewAgent(repo_root=repo_root, settings=settings)
