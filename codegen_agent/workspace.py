from __future__ import annotations

import asyncio
import os
import subprocess
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType

from .errors import BuildFailure
from .toolchain_registry import Toolchain
from .types import BuildResult, ExecResult

TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


@dataclass(frozen=True)
class Workspace:
    """Immutable source tree bound to a toolchain.

    Every change yields a new Workspace; builds run against a private
    temporary directory, so no state survives between builds.
    """
    toolchain: Toolchain
    files: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    @classmethod
    def new(cls, toolchain: Toolchain) -> Workspace:
        return cls(toolchain=toolchain)

    def with_source(self, text: str) -> Workspace:
        return replace(self, files={**self.files, self.toolchain.entry_path: text})

    def source(self) -> str:
        return self.files.get(self.toolchain.entry_path, "")

    async def build(self) -> BuildResult:
        with tempfile.TemporaryDirectory(prefix="codegen-ws-") as tmpdir:
            root = Path(tmpdir)
            self._materialize(root)
            result = await self._run(self.toolchain.render(self.toolchain.build_command), root)
        return BuildResult(
            succeeded=result.exit_code == 0,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    async def exec(self, command: str) -> ExecResult:
        """Build, then run a shell command in the same scratch tree.

        Raises:
            BuildFailure: if the tree does not build
        """
        with tempfile.TemporaryDirectory(prefix="codegen-ws-") as tmpdir:
            root = Path(tmpdir)
            self._materialize(root)
            built = await self._run(self.toolchain.render(self.toolchain.build_command), root)
            if built.exit_code != 0:
                raise BuildFailure(BuildResult(succeeded=False, exit_code=built.exit_code, stdout=built.stdout, stderr=built.stderr))
            return await self._run(["sh", "-c", command], root)

    def _materialize(self, root: Path) -> None:
        resolved_root = root.resolve()
        for rel_path, content in self.files.items():
            target = (resolved_root / rel_path).resolve()
            if resolved_root not in target.parents:
                raise ValueError(f"Workspace path escapes the tree root: {rel_path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            # lone surrogates reach the compiler as invalid UTF-8 instead of failing here
            target.write_text(content, encoding="utf-8", errors="surrogatepass")

    def _command_for(self, argv: list[str], root: Path) -> list[str]:
        if not self.toolchain.image:
            return argv
        return [
            "docker",
            "run",
            "--rm",
            "--network",
            "none",
            "-v",
            f"{root}:/workspace",
            "-w",
            "/workspace",
            self.toolchain.image,
            *argv,
        ]

    async def _run(self, argv: list[str], root: Path) -> ExecResult:
        env = dict(os.environ)
        env["PYTHONUNBUFFERED"] = "1"
        command = self._command_for(argv, root)
        timeout_seconds = self.toolchain.timeout_seconds

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(root),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError:
            return ExecResult(stdout="", stderr=f"Command not found: {command[0]}", exit_code=NOT_FOUND_EXIT_CODE)

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            _kill(proc)
            await proc.wait()
            return ExecResult(
                stdout="",
                stderr=f"Execution timed out after {timeout_seconds}s",
                exit_code=TIMEOUT_EXIT_CODE,
            )
        except asyncio.CancelledError:
            # TODO: also `docker rm -f` the container; killing the client leaves it running.
            _kill(proc)
            await asyncio.shield(proc.wait())
            raise

        return ExecResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=int(proc.returncode),
        )


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
