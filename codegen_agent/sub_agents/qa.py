"""QAAgent component.

Runs an independent LLM session against a successfully built workspace:
the model picks shell commands one at a time, every command and its output
is recorded, and the session ends with free-text findings. Advisory only.
"""
from __future__ import annotations

import asyncio
import json
import logging
import shlex
from dataclasses import dataclass

from ..errors import QAFailure
from ..openrouter_client import LLMClient, LLMMessage
from ..prompts import PromptStore
from ..types import Assignment, QAReport, QAStep
from ..workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QADecision:
    command: str | None = None
    findings: str | None = None


class QAAgent:
    def __init__(
        self,
        llm: LLMClient,
        *,
        prompts: PromptStore | None = None,
        max_steps: int = 5,
        temperature: float = 0.1,
        max_output_chars: int = 4000,
    ):
        self.llm = llm
        self.prompts = prompts or PromptStore()
        self.max_steps = max(1, int(max_steps))
        self.temperature = temperature
        self.max_output_chars = max_output_chars

    async def evaluate(
        self,
        assignment: Assignment,
        workspace: Workspace,
        *,
        steps: list[QAStep] | None = None,
    ) -> QAReport:
        """Exercise the built program and report whether the assignment is met.

        The first step is always a plain run of the program when the toolchain
        defines a run command; the model chooses the rest, up to max_steps.

        Args:
            steps: Optional list that receives each step as it is recorded;
                a caller that cancels the pass keeps what was gathered

        Raises:
            QAFailure: carrying the steps recorded before the error
        """
        steps = [] if steps is None else steps
        try:
            run_command = workspace.toolchain.render(workspace.toolchain.run_command)
            if run_command:
                await self._run_step(workspace, shlex.join(run_command), steps)

            while len(steps) < self.max_steps:
                decision = await self._next_decision(assignment, workspace, steps)
                if decision.findings is not None:
                    return QAReport(steps=tuple(steps), findings=decision.findings.strip())
                await self._run_step(workspace, decision.command or "", steps)

            findings = await self._conclude(assignment, steps)
            return QAReport(steps=tuple(steps), findings=findings.strip())
        except Exception as e:
            raise QAFailure(f"QA evaluation failed: {e}", steps=tuple(steps)) from e

    async def _run_step(self, workspace: Workspace, command: str, steps: list[QAStep]) -> None:
        logger.debug("QA step %d: %s", len(steps) + 1, command)
        result = await workspace.exec(command)
        steps.append(QAStep(command=command, output=result.output, exit_code=result.exit_code))

    async def _next_decision(self, assignment: Assignment, workspace: Workspace, steps: list[QAStep]) -> QADecision:
        toolchain = workspace.toolchain
        prompt = self.prompts.load("qa_step.txt").format(
            assignment=assignment.text,
            entry_path=toolchain.entry_path,
            source=workspace.source(),
            run_command=shlex.join(toolchain.render(toolchain.run_command)) or "(not defined)",
            transcript=self._render_transcript(steps),
            remaining=self.max_steps - len(steps),
        )
        reply = await self._chat(prompt)
        return _parse_decision(reply)

    async def _conclude(self, assignment: Assignment, steps: list[QAStep]) -> str:
        prompt = self.prompts.load("qa_findings.txt").format(
            assignment=assignment.text,
            transcript=self._render_transcript(steps),
        )
        return await self._chat(prompt)

    async def _chat(self, prompt: str) -> str:
        messages = [LLMMessage(role="user", content=prompt)]
        return await asyncio.to_thread(self.llm.chat, messages, self.temperature)

    def _render_transcript(self, steps: list[QAStep]) -> str:
        if not steps:
            return "(none)"
        parts: list[str] = []
        for step in steps:
            output = step.output
            if len(output) > self.max_output_chars:
                output = "...(truncated)\n" + output[-self.max_output_chars :]
            parts.append(f"$ {step.command}\n[exit {step.exit_code}]\n{output.rstrip() or '(no output)'}")
        return "\n\n".join(parts)


def _parse_decision(text: str) -> QADecision:
    data = _loads_first_json_object(text)
    if not isinstance(data, dict):
        raise ValueError("QA reply must be a JSON object")

    findings = data.get("findings")
    if isinstance(findings, str) and findings.strip():
        return QADecision(findings=findings)

    command = data.get("command")
    if isinstance(command, str) and command.strip():
        return QADecision(command=command.strip())

    raise ValueError("QA reply has neither 'command' nor 'findings'")


def _loads_first_json_object(text: str):
    if not text or not str(text).strip():
        raise json.JSONDecodeError("empty response", text or "", 0)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        s = str(text).strip()
        start = s.find("{")
        end = s.rfind("}")
        if start == -1 or end == -1 or end <= start:
            raise
        return json.loads(s[start : end + 1])
