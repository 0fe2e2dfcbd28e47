"""Orchestrator - the generate/build/refine loop.

This module provides the Orchestrator class that drives code generation and
build verification until a candidate builds or the attempt budget runs out,
plus generate_program, the single entry point exposed to hosts.
"""
from __future__ import annotations

import asyncio
import logging

from .config import Settings
from .errors import AttemptBudgetExhausted, Cancelled, CodegenAgentError, GenerationUnavailable, QAFailure
from .openrouter_client import LLMClient, OpenRouterClient
from .sub_agents import BuildVerifier, CodeGenerator, QAAgent
from .toolchain_registry import Toolchain, ToolchainRegistry
from .types import Assignment, Attempt, LoopState, ProgramResult, QAReport, QAStep, RunResult
from .workspace import Workspace

logger = logging.getLogger(__name__)


class Orchestrator:
    """Drives the retry state machine for one assignment at a time.

    INIT -> GENERATING -> VERIFYING -> SUCCEEDED
                 ^             |
                 +- REFINING <-+-> FAILED (budget spent)

    Every attempt stages its candidate into the clean base workspace, so a
    failed attempt's tree is never reused. Runs share no mutable state and
    may execute concurrently.
    """

    def __init__(
        self,
        generator: CodeGenerator,
        toolchain: Toolchain,
        *,
        verifier: BuildVerifier | None = None,
        qa_agent: QAAgent | None = None,
        timeout_seconds: float | None = None,
    ):
        self.generator = generator
        self.toolchain = toolchain
        self.verifier = verifier or BuildVerifier()
        self.qa_agent = qa_agent
        self.timeout_seconds = timeout_seconds

    async def run(self, assignment: Assignment | str, qa_requested: bool, max_attempts: int) -> RunResult:
        """Run the loop to a terminal state.

        Args:
            assignment: What to build
            qa_requested: Run the QA pass after a successful build
            max_attempts: Attempt budget, at least 1 (1 means single-shot)

        Returns:
            RunResult; on failure its error is AttemptBudgetExhausted,
            GenerationUnavailable or Cancelled
        """
        if isinstance(assignment, str):
            assignment = Assignment(assignment)
        if int(max_attempts) < 1:
            raise ValueError("max_attempts must be >= 1")
        if qa_requested and self.qa_agent is None:
            raise ValueError("qa_requested needs an Orchestrator built with a qa_agent")
        max_attempts = int(max_attempts)

        # one deadline covers the loop and the QA pass
        deadline = None
        if self.timeout_seconds is not None:
            deadline = asyncio.get_running_loop().time() + self.timeout_seconds

        history: list[Attempt] = []
        try:
            async with asyncio.timeout_at(deadline):
                workspace = await self._loop(assignment, max_attempts, history)
        except (AttemptBudgetExhausted, GenerationUnavailable) as e:
            return self._failed(assignment, history, e)
        except TimeoutError:
            error = Cancelled(f"Run exceeded its deadline of {self.timeout_seconds}s", **_context(history))
            return self._failed(assignment, history, error)
        except asyncio.CancelledError:
            _uncancel()
            return self._failed(assignment, history, Cancelled("Run was cancelled", **_context(history)))

        qa_report = None
        if qa_requested:
            qa_report = await self._evaluate(assignment, workspace, deadline)

        return RunResult(assignment=assignment, attempts=tuple(history), workspace=workspace, qa_report=qa_report)

    async def _loop(self, assignment: Assignment, max_attempts: int, history: list[Attempt]) -> Workspace:
        base = Workspace.new(self.toolchain)
        self._transition(LoopState.INIT, LoopState.GENERATING, history, max_attempts)

        while True:
            source = await self.generator.generate(assignment, tuple(history))
            self._transition(LoopState.GENERATING, LoopState.VERIFYING, history, max_attempts)

            workspace = base.with_source(source)
            build = await self.verifier.verify(workspace)
            history.append(Attempt(index=len(history), workspace=workspace, build=build))

            if build.succeeded:
                self._transition(LoopState.VERIFYING, LoopState.SUCCEEDED, history, max_attempts)
                return workspace

            self._transition(LoopState.VERIFYING, LoopState.REFINING, history, max_attempts)
            if len(history) >= max_attempts:
                raise AttemptBudgetExhausted(
                    f"No candidate built within {max_attempts} attempt(s)",
                    **_context(history),
                )
            self._transition(LoopState.REFINING, LoopState.GENERATING, history, max_attempts)

    async def _evaluate(self, assignment: Assignment, workspace: Workspace, deadline: float | None) -> QAReport:
        steps: list[QAStep] = []
        try:
            async with asyncio.timeout_at(deadline):
                return await self.qa_agent.evaluate(assignment, workspace, steps=steps)
        except QAFailure as e:
            logger.warning("QA pass failed: %s", e)
            return QAReport(steps=e.steps, findings=str(e), partial=True)
        except TimeoutError:
            logger.warning("QA pass stopped at the run deadline after %d step(s)", len(steps))
            findings = f"QA pass stopped at the run deadline of {self.timeout_seconds}s"
            return QAReport(steps=tuple(steps), findings=findings, partial=True)
        except asyncio.CancelledError:
            _uncancel()
            logger.warning("QA pass cancelled after %d step(s)", len(steps))
            return QAReport(steps=tuple(steps), findings="QA pass was cancelled", partial=True)

    def _failed(self, assignment: Assignment, history: list[Attempt], error: CodegenAgentError) -> RunResult:
        logger.warning("Run failed after %d attempt(s): %s", len(history), error)
        return RunResult(assignment=assignment, attempts=tuple(history), error=error)

    def _transition(self, src: LoopState, dst: LoopState, history: list[Attempt], max_attempts: int) -> None:
        logger.info("%s -> %s (attempts %d/%d)", src.value, dst.value, len(history), max_attempts)


def _context(history: list[Attempt]) -> dict:
    return {
        "attempt_count": len(history),
        "last_diagnostics": history[-1].build.diagnostics if history else "",
    }


def _uncancel() -> None:
    task = asyncio.current_task()
    if task is not None:
        task.uncancel()


async def generate_program(
    assignment: str,
    qa: bool,
    *,
    llm: LLMClient | None = None,
    settings: Settings | None = None,
    toolchain: Toolchain | None = None,
    max_attempts: int | None = None,
) -> ProgramResult:
    """Generate a program that builds, optionally followed by a QA pass.

    Args:
        assignment: Non-empty description of the program
        qa: Whether to run the QA pass; must be a bool
        llm: Generation capability; defaults to an OpenRouterClient from settings
        settings: Defaults to Settings.from_env()
        toolchain: Defaults to the preset named by settings.toolchain
        max_attempts: Defaults to settings.max_attempts

    Returns:
        ProgramResult with the final source, success flag, attempt count and
        rendered QA report (None unless qa and the build succeeded)
    """
    if not isinstance(qa, bool):
        raise TypeError("qa must be a bool")
    task = Assignment(assignment)

    settings = settings or Settings.from_env()
    llm = llm or OpenRouterClient(api_key=settings.api_key, model=settings.model)
    toolchain = toolchain or ToolchainRegistry().get(settings.toolchain)

    orchestrator = Orchestrator(
        generator=CodeGenerator(llm, toolchain),
        toolchain=toolchain,
        qa_agent=QAAgent(llm, max_steps=settings.qa_max_steps) if qa else None,
        timeout_seconds=settings.timeout_seconds,
    )
    if max_attempts is None:
        max_attempts = settings.max_attempts
    result = await orchestrator.run(task, qa_requested=qa, max_attempts=max_attempts)

    return ProgramResult(
        final_source=result.final_source,
        succeeded=result.succeeded,
        attempt_count=result.attempt_count,
        qa_report=result.qa_report.render() if result.qa_report is not None else None,
        error=str(result.error) if result.error is not None else None,
        history=result.attempts,
    )
