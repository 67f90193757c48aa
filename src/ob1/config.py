"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_loaded = False


def ensure_env_loaded() -> None:
    """Load `.env` from the current directory once. Existing variables win."""
    global _env_loaded
    if _env_loaded:
        return
    load_dotenv(Path.cwd() / ".env", override=False)
    _env_loaded = True


@dataclass
class Config:
    runs_dir: Path = field(default_factory=lambda: Path.cwd() / "runs")
    work_root: Path = field(default_factory=lambda: Path.cwd() / "work")
    agent_timeout: float = 600.0
    qa_timeout: float = 900.0
    claude_bin: str = "claude"
    codex_bin: str = "codex"
    cursor_bin: str = "cursor-agent"
    claude_model: str = "sonnet"
    max_turns: int = 40
    mcp_config_path: str | None = None

    @classmethod
    def from_env(cls) -> "Config":
        ensure_env_loaded()
        config = cls()

        if runs := os.environ.get("OB1_RUNS_DIR"):
            config.runs_dir = Path(runs).resolve()

        if work := os.environ.get("OB1_WORK_ROOT"):
            config.work_root = Path(work).resolve()

        if timeout := os.environ.get("OB1_AGENT_TIMEOUT"):
            config.agent_timeout = float(timeout)

        if qa_timeout := os.environ.get("OB1_QA_TIMEOUT"):
            config.qa_timeout = float(qa_timeout)

        if claude_bin := os.environ.get("OB1_CLAUDE_BIN"):
            config.claude_bin = claude_bin

        if codex_bin := os.environ.get("OB1_CODEX_BIN"):
            config.codex_bin = codex_bin

        if cursor_bin := os.environ.get("OB1_CURSOR_BIN"):
            config.cursor_bin = cursor_bin

        if model := os.environ.get("OB1_CLAUDE_MODEL"):
            config.claude_model = model

        if turns := os.environ.get("OB1_MAX_TURNS"):
            config.max_turns = int(turns)

        config.mcp_config_path = os.environ.get("MCP_CONFIG_PATH")

        return config


def get_config() -> Config:
    return Config.from_env()
