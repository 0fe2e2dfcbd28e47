import asyncio

import pytest
import requests

from codegen_agent.errors import GenerationUnavailable
from codegen_agent.openrouter_client import OpenRouterReplyError
from codegen_agent.sub_agents.generator import CodeGenerator, _extract_code_block, render_feedback
from codegen_agent.types import Assignment, Attempt, BuildResult
from codegen_agent.workspace import Workspace
from tests.utils.fakes import FakeLLM, python_toolchain


def _failed_attempt(index: int, source: str, stderr: str) -> Attempt:
    ws = Workspace.new(python_toolchain()).with_source(source)
    return Attempt(index=index, workspace=ws, build=BuildResult(succeeded=False, exit_code=1, stderr=stderr))


def test_first_attempt_prompt_has_no_feedback():
    llm = FakeLLM(codegen_replies=["```python\nprint(42)\n```"])
    gen = CodeGenerator(llm, python_toolchain())
    code = asyncio.run(gen.generate(Assignment("print the number 42 and exit 0"), ()))

    assert code == "print(42)"
    prompt = llm.prompts[0]
    assert "print the number 42 and exit 0" in prompt
    assert "main.py" in prompt
    assert "This is attempt 1." in prompt
    assert "Previous attempts failed" not in prompt


def test_latest_failure_is_fed_back_verbatim():
    diag = 'File "main.py", line 1\n    print(\n         ^\nSyntaxError: unexpected token'
    history = (
        _failed_attempt(0, "prnt(42", "NameError-ish first failure\nmore"),
        _failed_attempt(1, "print(", diag),
    )
    llm = FakeLLM(codegen_replies=["print(42)"])
    gen = CodeGenerator(llm, python_toolchain())
    asyncio.run(gen.generate(Assignment("print 42"), history))

    prompt = llm.prompts[0]
    assert diag in prompt
    assert "print(" in prompt
    assert "This is attempt 3." in prompt
    assert "- attempt 1: exit_code=1: NameError-ish first failure" in prompt
    assert "NameError-ish first failure\nmore" not in prompt


def test_render_feedback_empty_without_failures():
    assert render_feedback(()) == ""


def test_transport_error_is_generation_unavailable():
    llm = FakeLLM(codegen_replies=[requests.ConnectionError("unreachable")])
    gen = CodeGenerator(llm, python_toolchain())
    history = (_failed_attempt(0, "print(", "SyntaxError"),)
    with pytest.raises(GenerationUnavailable) as excinfo:
        asyncio.run(gen.generate(Assignment("x"), history))
    assert "unreachable" in str(excinfo.value)
    assert excinfo.value.attempt_count == 1
    assert excinfo.value.last_diagnostics == "SyntaxError"


def test_empty_candidate_is_generation_unavailable():
    llm = FakeLLM(codegen_replies=["```python\n\n```"])
    gen = CodeGenerator(llm, python_toolchain())
    with pytest.raises(GenerationUnavailable):
        asyncio.run(gen.generate(Assignment("x"), ()))


def test_extract_code_block_variants():
    assert _extract_code_block("print(1)") == "print(1)"
    assert _extract_code_block("Here:\n```python\nprint(1)\n```\nDone") == "print(1)"
    assert _extract_code_block("```go\npackage main\n\nfunc main() {}\n```") == "package main\n\nfunc main() {}"
    assert _extract_code_block("```\nprint(2)\n```") == "print(2)"
    assert _extract_code_block("```c++\nint main() { return 0; }\n```") == "int main() { return 0; }"
    assert _extract_code_block("```python\n    indented = 1\n```") == "    indented = 1"


def test_untagged_fence_keeps_single_word_first_line():
    assert _extract_code_block("```\npass\n```") == "pass"
    assert _extract_code_block("```\nmain\nmore()\n```") == "main\nmore()"


def test_malformed_reply_from_client_is_generation_unavailable():
    llm = FakeLLM(codegen_replies=[OpenRouterReplyError("some/model returned no choices")])
    gen = CodeGenerator(llm, python_toolchain())
    with pytest.raises(GenerationUnavailable, match="no choices"):
        asyncio.run(gen.generate(Assignment("x"), ()))
