from __future__ import annotations

from pathlib import Path

DEFAULT_PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"


class PromptStore:
    def __init__(self, prompts_dir: Path = DEFAULT_PROMPTS_DIR):
        self.prompts_dir = prompts_dir

    def load(self, name: str) -> str:
        path = self.prompts_dir / name
        return path.read_text(encoding="utf-8")
