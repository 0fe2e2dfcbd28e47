"""Error taxonomy for the generate/build/refine loop.

Only BuildFailure is recoverable: the orchestrator turns it into corrective
context for the next attempt. Everything else ends the run.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import BuildResult, QAStep


class CodegenAgentError(Exception):
    """Base class for every error raised by codegen_agent.

    Attributes:
        attempt_count: Attempts recorded when the error was raised
        last_diagnostics: Build diagnostics of the most recent attempt, if any
    """

    def __init__(self, message: str, *, attempt_count: int = 0, last_diagnostics: str = ""):
        super().__init__(message)
        self.attempt_count = attempt_count
        self.last_diagnostics = last_diagnostics


class BuildFailure(CodegenAgentError):
    def __init__(self, build: BuildResult, *, attempt_count: int = 0):
        super().__init__(
            f"Build failed with exit_code={build.exit_code}",
            attempt_count=attempt_count,
            last_diagnostics=build.diagnostics,
        )
        self.build = build


class AttemptBudgetExhausted(CodegenAgentError):
    pass


class GenerationUnavailable(CodegenAgentError):
    pass


class Cancelled(CodegenAgentError):
    pass


class QAFailure(CodegenAgentError):
    def __init__(self, message: str, *, steps: tuple[QAStep, ...] = ()):
        super().__init__(message)
        self.steps = steps
