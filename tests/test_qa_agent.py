import asyncio
import json

import pytest

from codegen_agent.errors import QAFailure
from codegen_agent.sub_agents.qa import QAAgent, QADecision, _parse_decision
from codegen_agent.toolchain_registry import Toolchain
from codegen_agent.types import Assignment, QAReport, QAStep
from codegen_agent.workspace import Workspace
from tests.utils.fakes import QA_FINDINGS_MARKER, FakeLLM, python_toolchain

SOURCE = "import sys\nprint(42)\nprint('args:', sys.argv[1:])\n"


def _workspace(toolchain=None):
    return Workspace.new(toolchain or python_toolchain()).with_source(SOURCE)


def test_runs_program_then_model_commands_then_findings():
    llm = FakeLLM(
        qa_replies=[
            json.dumps({"command": "ls"}),
            json.dumps({"findings": "Prints 42; exit status 0."}),
        ]
    )
    report = asyncio.run(QAAgent(llm, max_steps=5).evaluate(Assignment("print 42"), _workspace()))

    assert [s.exit_code for s in report.steps] == [0, 0]
    assert report.steps[0].output.startswith("42")
    assert report.steps[1].command == "ls"
    assert "main.py" in report.steps[1].output
    assert report.findings == "Prints 42; exit status 0."
    assert report.partial is False
    # the model saw the first run's output
    assert "42" in llm.prompts[0]
    assert SOURCE.splitlines()[1] in llm.prompts[0]


def test_step_budget_forces_conclusion():
    llm = FakeLLM(qa_replies=[json.dumps({"command": "echo again"})] * 10, findings="Looks fine.")
    report = asyncio.run(QAAgent(llm, max_steps=3).evaluate(Assignment("print 42"), _workspace()))

    assert len(report.steps) == 3
    assert [s.command for s in report.steps[1:]] == ["echo again", "echo again"]
    assert report.findings == "Looks fine."
    assert any(QA_FINDINGS_MARKER in p for p in llm.prompts)


def test_toolchain_without_run_command_lets_model_choose():
    tc = Toolchain(name="plain", entry_path="main.py", build_command=("{python}", "-m", "py_compile", "{entry}"))
    llm = FakeLLM(qa_replies=[json.dumps({"command": "cat main.py"}), json.dumps({"findings": "ok"})])
    report = asyncio.run(QAAgent(llm).evaluate(Assignment("print 42"), _workspace(tc)))

    assert [s.command for s in report.steps] == ["cat main.py"]
    assert report.steps[0].output == SOURCE
    assert "(not defined)" in llm.prompts[0]


def test_bad_reply_raises_qa_failure_with_partial_steps():
    llm = FakeLLM(qa_replies=[json.dumps({"verdict": "??"})])
    with pytest.raises(QAFailure) as excinfo:
        asyncio.run(QAAgent(llm).evaluate(Assignment("print 42"), _workspace()))
    assert len(excinfo.value.steps) == 1
    assert excinfo.value.steps[0].output.startswith("42")


def test_parse_decision():
    assert _parse_decision('{"command": "  ./app --help "}') == QADecision(command="./app --help")
    assert _parse_decision('Sure!\n{"findings": "done"}\n') == QADecision(findings="done")
    assert _parse_decision('{"command": "ls", "findings": "final"}') == QADecision(findings="final")
    with pytest.raises(ValueError):
        _parse_decision('{"command": ""}')
    with pytest.raises(ValueError):
        _parse_decision("")


def test_report_render_lists_commands_outputs_and_findings():
    report = QAReport(
        steps=(QAStep(command="./app", output="42\n", exit_code=0), QAStep(command="./app x", output="", exit_code=2)),
        findings="Meets the assignment.",
    )
    text = report.render()
    assert "$ ./app  # step 1, exit=0" in text
    assert "42" in text
    assert "(no output)" in text
    assert text.endswith("Findings:\nMeets the assignment.")
