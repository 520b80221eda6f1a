"""Load em-assist configuration from pyproject.toml and optional .emassist.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class EmAssistConfig:
    """Runtime configuration for em-assist."""

    # LLM provider to use: "anthropic" (default), "moonshot", "openai", "deepseek",
    # or "lmstudio"
    provider: str = "anthropic"
    # LLM model used for suggestion requests
    model: str = "claude-sonnet-4-6"
    # Optional base URL override for OpenAI-compatible providers.
    base_url: Optional[str] = None
    # HTTP timeout in seconds for each LLM API call.
    api_timeout: float = 60.0
    max_tokens: int = 1024
    temperature: float = 0.0

    # Wall-clock deadline for the suggestion service, per request.  The
    # service call is abandoned (its result discarded) once this expires.
    suggestion_timeout: float = 120.0

    # Worker pool size for orchestration.
    max_workers: int = 8
    # When True at most one request per file path is in flight; later
    # requests for the same path wait for the earlier one to finish.
    serialize_per_path: bool = False

    # Transport: "stdio" (JSON-RPC lines) or "http" (one-shot POST).
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8001

    # Directory treated as the active workspace; None means the cwd.
    workspace_root: Optional[str] = None

    log_level: str = "INFO"


def _read_toml(path: Path) -> dict:
    """Read a TOML file; return empty dict if missing or unparseable."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError):
        return {}


def _apply(cfg: EmAssistConfig, d: dict) -> None:
    """Overlay dict values onto cfg, ignoring unknown keys."""
    valid = set(cfg.__dataclass_fields__)
    for key, val in d.items():
        if key in valid:
            setattr(cfg, key, val)


def load_config(project_root: Optional[Path] = None) -> EmAssistConfig:
    """Load config from pyproject.toml [tool.emassist], then .emassist.toml."""
    if project_root is None:
        project_root = Path.cwd()
    cfg = EmAssistConfig()
    pyproject = _read_toml(project_root / "pyproject.toml")
    _apply(cfg, pyproject.get("tool", {}).get("emassist", {}))
    local = _read_toml(project_root / ".emassist.toml")
    _apply(cfg, local)
    return cfg
