import asyncio

from codegen_agent.sub_agents.verifier import BuildVerifier
from codegen_agent.toolchain_registry import Toolchain
from codegen_agent.workspace import Workspace
from tests.utils.fakes import python_toolchain


def test_zero_exit_is_success():
    ws = Workspace.new(python_toolchain()).with_source("print(42)\n")
    result = asyncio.run(BuildVerifier().verify(ws))
    assert result.succeeded is True
    assert result.exit_code == 0


def test_non_zero_exit_keeps_full_diagnostics():
    noisy = Toolchain(
        name="noisy",
        entry_path="main.py",
        build_command=(
            "{python}",
            "-c",
            "import sys; print('line one'); print('line two', file=sys.stderr); sys.exit(3)",
        ),
    )
    result = asyncio.run(BuildVerifier().verify(Workspace.new(noisy).with_source("")))
    assert result.succeeded is False
    assert result.exit_code == 3
    assert result.stdout == "line one\n"
    assert result.stderr == "line two\n"
    assert result.diagnostics == "line one\nline two\n"
