"""Markdown scratchpad, TODO ledger, and fallback artifact writers."""

from pathlib import Path

TRACKING_DIRNAME = ".ob1"
SCRATCHPAD_FILENAME = "scratchpad.md"
TODO_FILENAME = "todo.md"


def append_line(path: Path, line: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(line if line.endswith("\n") else line + "\n")


def append_scratchpad_entry(path: Path, entry: str) -> None:
    append_line(path, f"* {entry}")


def append_todo(path: Path, item: str, done: bool = False) -> None:
    mark = "x" if done else " "
    append_line(path, f"- [{mark}] {item}")


def fallback_filename(agent: str) -> str:
    return f"ob1_result_{agent}.md"


def write_fallback_file(workspace: Path, agent: str, message: str) -> Path:
    """Write the no-change artifact for `agent` into the workspace root."""
    path = workspace / fallback_filename(agent)
    path.write_text(f"# ob1 fallback result\n\n{message}\n", encoding="utf-8")
    return path


def is_tracking_path(relative_path: str) -> bool:
    """True for files the orchestrator itself writes inside a workspace."""
    return relative_path.replace("\\", "/").startswith(f"{TRACKING_DIRNAME}/")
