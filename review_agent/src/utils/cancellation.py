# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Session-scoped cooperative cancellation."""

import asyncio
import logging

from typing import Awaitable, TypeVar

from ..exceptions import AnalysisCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    A single cancellation signal shared by everything running inside one
    analysis session, including nested subagent loops.

    Checked before each model call, before each tool dispatch, and
    cooperatively inside long running tool bodies. ``run`` races an awaitable
    against the signal so a pending model request is abandoned as soon as
    cancellation is requested.
    """

    def __init__(self):
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self._reason: str | None = None

    def _get_event(self) -> asyncio.Event:
        # The event is created lazily so tokens can be constructed outside a
        # running loop (e.g. in a signal handler setup).
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()
        logger.info(f"Cancellation requested{f': {reason}' if reason else ''}")

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AnalysisCancelledError(
                f"Analysis cancelled: {self._reason}" if self._reason else "Analysis cancelled"
            )

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._get_event().wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless cancellation is requested first.

        Cancellation wins over a result that completes at the same time: if
        the token is set when the awaitable finishes, the result is discarded
        and AnalysisCancelledError is raised.
        """
        task = asyncio.ensure_future(awaitable)
        if self._cancelled:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            self.raise_if_cancelled()

        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if self._cancelled:
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            self.raise_if_cancelled()

        return task.result()
