from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_TOOLCHAINS_PATH = Path(__file__).resolve().parent / "toolchains.yaml"


@dataclass(frozen=True)
class Toolchain:
    """A fixed build recipe a Workspace is bound to.

    Attributes:
        name: Preset name (e.g. 'python')
        entry_path: Path of the generated source file, relative to the tree root
        build_command: Compile step; '{entry}' and '{python}' are substituted
        run_command: How to run the built program, used by the QA pass
        image: Container image to run commands in; None runs on the host
        timeout_seconds: Per-command wall clock limit
    """
    name: str
    entry_path: str
    build_command: tuple[str, ...]
    run_command: tuple[str, ...] = ()
    image: str | None = None
    timeout_seconds: int = 60

    def render(self, command: tuple[str, ...]) -> list[str]:
        python = "python" if self.image else sys.executable
        return [part.format(entry=self.entry_path, python=python) for part in command]


class ToolchainRegistry:
    def __init__(self, path: Path = DEFAULT_TOOLCHAINS_PATH):
        self.path = path

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Toolchain file must contain a mapping: {self.path}")
        return data

    def list_names(self) -> list[str]:
        return sorted(self._load())

    def get(self, name: str) -> Toolchain:
        data = self._load()
        entry = data.get(name)
        if not isinstance(entry, dict):
            known = ", ".join(sorted(data)) or "(none)"
            raise ValueError(f"Unknown toolchain: {name} (known: {known})")
        return _parse_toolchain(name, entry)


def _parse_toolchain(name: str, entry: dict[str, Any]) -> Toolchain:
    entry_path = str(entry.get("entry_path") or "").strip()
    if not entry_path:
        raise ValueError(f"Toolchain {name} is missing entry_path")
    build_command = tuple(str(p) for p in (entry.get("build_command") or []))
    if not build_command:
        raise ValueError(f"Toolchain {name} is missing build_command")
    image = entry.get("image")
    return Toolchain(
        name=name,
        entry_path=entry_path,
        build_command=build_command,
        run_command=tuple(str(p) for p in (entry.get("run_command") or [])),
        image=str(image) if image else None,
        timeout_seconds=int(entry.get("timeout_seconds") or 60),
    )
