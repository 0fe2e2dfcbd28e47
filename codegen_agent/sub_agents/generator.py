"""CodeGenerator component.

Turns an assignment plus the attempt history into one candidate source file.
"""
from __future__ import annotations

import asyncio
import logging
import re
import shlex
from collections.abc import Sequence

from ..errors import GenerationUnavailable
from ..openrouter_client import LLMClient, LLMMessage
from ..prompts import PromptStore
from ..toolchain_registry import Toolchain
from ..types import Assignment, Attempt

logger = logging.getLogger(__name__)

_LANGUAGE_TAG = re.compile(r"^[A-Za-z0-9_+#.-]+$")


class CodeGenerator:
    """Produces exactly one candidate per call; looping belongs to the orchestrator."""

    def __init__(
        self,
        llm: LLMClient,
        toolchain: Toolchain,
        *,
        prompts: PromptStore | None = None,
        temperature: float = 0.2,
    ):
        self.llm = llm
        self.toolchain = toolchain
        self.prompts = prompts or PromptStore()
        self.temperature = temperature

    async def generate(self, assignment: Assignment, history: Sequence[Attempt]) -> str:
        prompt = self.render_prompt(assignment, history)
        messages = [LLMMessage(role="user", content=prompt)]
        try:
            reply = await asyncio.to_thread(self.llm.chat, messages, self.temperature)
        except Exception as e:
            raise GenerationUnavailable(
                f"Code generation failed: {e}",
                attempt_count=len(history),
                last_diagnostics=_last_diagnostics(history),
            ) from e

        code = _extract_code_block(reply or "")
        if not code.strip():
            raise GenerationUnavailable(
                "Code generation returned an empty candidate",
                attempt_count=len(history),
                last_diagnostics=_last_diagnostics(history),
            )
        logger.debug("Generated candidate %d (%d chars)", len(history), len(code))
        return code

    def render_prompt(self, assignment: Assignment, history: Sequence[Attempt]) -> str:
        return self.prompts.load("codegen.txt").format(
            assignment=assignment.text,
            toolchain=self.toolchain.name,
            entry_path=self.toolchain.entry_path,
            build_command=shlex.join(self.toolchain.render(self.toolchain.build_command)),
            attempt=len(history) + 1,
            feedback=render_feedback(history),
        )


def render_feedback(history: Sequence[Attempt]) -> str:
    """Corrective context: earlier failures in brief, the latest one verbatim."""
    failed = [a for a in history if not a.succeeded]
    if not failed:
        return ""

    lines: list[str] = ["", "Previous attempts failed to build."]
    for attempt in failed[:-1]:
        first_line = next((ln for ln in attempt.build.diagnostics.splitlines() if ln.strip()), "(no output)")
        lines.append(f"- attempt {attempt.index + 1}: exit_code={attempt.build.exit_code}: {first_line.strip()}")

    latest = failed[-1]
    lines.append("")
    lines.append(f"The most recent candidate (attempt {latest.index + 1}) was:")
    lines.append("```")
    lines.append(latest.source)
    lines.append("```")
    lines.append(f"Its build exited with status {latest.build.exit_code} and printed:")
    lines.append("```")
    lines.append(latest.build.diagnostics)
    lines.append("```")
    lines.append("Fix every error reported above.")
    lines.append("")
    return "\n".join(lines)


def _last_diagnostics(history: Sequence[Attempt]) -> str:
    return history[-1].build.diagnostics if history else ""


def _extract_code_block(text: str) -> str:
    """Extract code from markdown code fences."""
    t = text.strip()
    if "```" not in t:
        return t
    parts = t.split("```")
    if len(parts) < 3:
        return t
    code = parts[1]
    first, sep, rest = code.partition("\n")
    if sep and _LANGUAGE_TAG.match(first.strip()):
        code = rest
    return code.strip("\n")
