# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Faults that abort an analysis loop.

Recoverable tool failures are never raised: they are returned as data in a
ToolExecutionResult so the model can read them and adapt.
"""


class AnalysisCancelledError(Exception):
    """Raised once the session cancellation token has been observed."""

    def __init__(self, message: str = "Analysis cancelled"):
        super().__init__(message)


class ModelClientError(Exception):
    """Wraps an unrecoverable failure of the language model transport."""

    def __init__(self, cause: BaseException | str):
        self.cause = cause
        message = str(cause) if not isinstance(cause, str) else cause
        if isinstance(cause, BaseException) and not message:
            message = type(cause).__name__
        super().__init__(message)
