from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_bool(name: str, *, default: bool = False) -> bool:
    """Parse environment variable as boolean."""
    value = os.getenv(name)
    if value is None:
        return default
    cleaned = value.strip().lower()
    if not cleaned:
        return default
    if cleaned in {"1", "true", "yes", "y", "on"}:
        return True
    if cleaned in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, *, default: int) -> int:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str) -> float | None:
    value = (os.getenv(name) or "").strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def load_env(env_path: Path | None = None) -> None:
    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment.

    Attributes:
        api_key: OpenRouter API key (open_router_api_key)
        model: OpenRouter model id (open_router_model_name)
        toolchain: Toolchain preset name (codegen_toolchain)
        max_attempts: Attempt budget per assignment (codegen_max_attempts)
        qa_max_steps: Command budget of the QA pass (codegen_qa_max_steps)
        timeout_seconds: Deadline for one run, None for no deadline (codegen_timeout_seconds)
        enable_qa: Default for the CLI --qa flag (codegen_enable_qa)
        log_level: Root logging level (codegen_log_level)
    """
    api_key: str | None = None
    model: str | None = None
    toolchain: str = "python"
    max_attempts: int = 3
    qa_max_steps: int = 5
    timeout_seconds: float | None = None
    enable_qa: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            api_key=os.getenv("open_router_api_key"),
            model=os.getenv("open_router_model_name"),
            toolchain=(os.getenv("codegen_toolchain") or "python").strip(),
            max_attempts=_env_int("codegen_max_attempts", default=3),
            qa_max_steps=_env_int("codegen_qa_max_steps", default=5),
            timeout_seconds=_env_float("codegen_timeout_seconds"),
            enable_qa=_env_bool("codegen_enable_qa", default=False),
            log_level=(os.getenv("codegen_log_level") or "INFO").strip().upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
