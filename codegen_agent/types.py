from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import CodegenAgentError
    from .workspace import Workspace


class LoopState(str, Enum):
    """States of the generate/verify/refine loop."""
    INIT = "init"
    GENERATING = "generating"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    REFINING = "refining"
    FAILED = "failed"


@dataclass(frozen=True)
class Assignment:
    text: str

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValueError("Assignment text must be non-empty")


@dataclass(frozen=True)
class ExecResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        if self.stdout and self.stderr:
            sep = "" if self.stdout.endswith("\n") else "\n"
            return f"{self.stdout}{sep}{self.stderr}"
        return self.stdout or self.stderr


@dataclass(frozen=True)
class BuildResult:
    """Outcome of one build.

    Attributes:
        succeeded: True iff the build exited with status zero
        exit_code: Raw exit status of the build command
        stdout: Build standard output, verbatim
        stderr: Build standard error, verbatim
    """
    succeeded: bool
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def diagnostics(self) -> str:
        return ExecResult(stdout=self.stdout, stderr=self.stderr, exit_code=self.exit_code).output


@dataclass(frozen=True)
class Attempt:
    """Immutable record of one generate-then-build cycle."""
    index: int
    workspace: Workspace
    build: BuildResult

    @property
    def source(self) -> str:
        return self.workspace.source()

    @property
    def succeeded(self) -> bool:
        return self.build.succeeded


@dataclass(frozen=True)
class QAStep:
    command: str
    output: str
    exit_code: int


@dataclass(frozen=True)
class QAReport:
    steps: tuple[QAStep, ...] = ()
    findings: str = ""
    partial: bool = False

    def render(self) -> str:
        parts: list[str] = []
        for i, step in enumerate(self.steps, start=1):
            parts.append(f"$ {step.command}  # step {i}, exit={step.exit_code}")
            parts.append(step.output.rstrip() or "(no output)")
        parts.append("Findings:")
        parts.append(self.findings.strip() or "(none)")
        if self.partial:
            parts.append("(QA pass ended early; report is partial)")
        return "\n".join(parts)


@dataclass(frozen=True)
class RunResult:
    """Outcome of one Orchestrator run.

    Attributes:
        assignment: The assignment that was run
        attempts: Every recorded attempt, in order
        workspace: Final workspace when the run succeeded
        qa_report: Present only when QA was requested and the run succeeded
        error: Terminal error when the run failed
    """
    assignment: Assignment
    attempts: tuple[Attempt, ...] = ()
    workspace: Workspace | None = None
    qa_report: QAReport | None = None
    error: CodegenAgentError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.workspace is not None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def final_source(self) -> str:
        if self.workspace is not None:
            return self.workspace.source()
        if self.attempts:
            return self.attempts[-1].source
        return ""


@dataclass(frozen=True)
class ProgramResult:
    final_source: str
    succeeded: bool
    attempt_count: int
    qa_report: str | None = None
    error: str | None = None
    history: tuple[Attempt, ...] = field(default=(), repr=False)
