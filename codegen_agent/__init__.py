"""Generate programs with an LLM until they build."""

from .agent import Orchestrator, generate_program
from .errors import (
    AttemptBudgetExhausted,
    BuildFailure,
    Cancelled,
    CodegenAgentError,
    GenerationUnavailable,
    QAFailure,
)
from .toolchain_registry import Toolchain, ToolchainRegistry
from .types import Assignment, Attempt, BuildResult, ProgramResult, QAReport, QAStep, RunResult
from .workspace import Workspace

__all__ = [
    "Orchestrator",
    "generate_program",
    "Workspace",
    "Toolchain",
    "ToolchainRegistry",
    "Assignment",
    "Attempt",
    "BuildResult",
    "QAReport",
    "QAStep",
    "RunResult",
    "ProgramResult",
    "CodegenAgentError",
    "BuildFailure",
    "AttemptBudgetExhausted",
    "GenerationUnavailable",
    "Cancelled",
    "QAFailure",
]
