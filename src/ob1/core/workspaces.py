"""Per-agent git worktree lifecycle: provision, inspect, commit, push, tear down."""

import logging
import shutil
from pathlib import Path

from ob1.core.errors import PublishError, WorkspaceError
from ob1.core.notes import (
    SCRATCHPAD_FILENAME,
    TODO_FILENAME,
    TRACKING_DIRNAME,
    append_scratchpad_entry,
    append_todo,
    is_tracking_path,
)
from ob1.integrations.git import (
    GitError,
    commit_all,
    get_status_entries,
    push_branch,
    worktree_add,
    worktree_prune,
    worktree_remove,
)

logger = logging.getLogger(__name__)


def branch_name(agent: str, run_id: str) -> str:
    return f"agent/{agent}/{run_id}"


def workspace_path(work_root: str | Path, agent: str, run_id: str) -> Path:
    return Path(work_root).resolve() / agent / run_id


def provision(
    repo_root: str | Path,
    path: str | Path,
    branch: str,
    base_ref: str = "main",
) -> Path:
    """Create a fresh worktree at `path` on `branch`, reset to `base_ref`.

    Anything left at `path` by an earlier run is removed first.
    """
    repo = Path(repo_root)
    wt_path = Path(path)

    try:
        _discard_stale(repo, wt_path)
        wt_path.parent.mkdir(parents=True, exist_ok=True)
        worktree_add(repo, wt_path, branch, base_ref)
    except (GitError, OSError) as e:
        raise WorkspaceError(f"Failed to create workspace at {wt_path}: {e}") from e

    logger.debug("Provisioned %s on %s from %s", wt_path, branch, base_ref)
    return wt_path


def teardown(repo_root: str | Path, path: str | Path) -> bool:
    """Remove a worktree. Never raises; returns whether the directory is gone."""
    repo = Path(repo_root)
    wt_path = Path(path)
    _discard_stale(repo, wt_path)
    return not wt_path.exists()


def _discard_stale(repo: Path, wt_path: Path) -> None:
    try:
        worktree_remove(repo, wt_path, force=True)
    except GitError:
        pass  # Not a registered worktree

    if wt_path.exists():
        shutil.rmtree(wt_path, ignore_errors=True)

    try:
        worktree_prune(repo)
    except GitError as e:
        logger.debug("git worktree prune failed in %s: %s", repo, e)


def init_tracking_files(workspace: Path, prompt: str) -> tuple[Path, Path]:
    """Seed the scratchpad and TODO ledger. Returns (scratchpad_path, todo_path)."""
    tracking_dir = workspace / TRACKING_DIRNAME
    tracking_dir.mkdir(parents=True, exist_ok=True)
    scratchpad = tracking_dir / SCRATCHPAD_FILENAME
    todo = tracking_dir / TODO_FILENAME
    append_scratchpad_entry(scratchpad, f"Task: {prompt}")
    append_todo(todo, "Initialise ob1 run", done=True)
    return scratchpad, todo


def changed_paths(workspace: Path) -> list[str]:
    try:
        return [entry.path for entry in get_status_entries(workspace)]
    except GitError as e:
        raise WorkspaceError(f"Failed to read status of {workspace}: {e}") from e


def meaningful_changes(paths: list[str]) -> list[str]:
    """Changed paths excluding the orchestrator's own tracking files."""
    return [p for p in paths if not is_tracking_path(p)]


def commit(workspace: Path, message: str) -> str | None:
    try:
        return commit_all(workspace, message)
    except GitError as e:
        raise WorkspaceError(f"Failed to commit in {workspace}: {e}") from e


def push(workspace: Path, branch: str) -> None:
    try:
        push_branch(workspace, branch)
    except GitError as e:
        raise PublishError(f"Failed to push {branch}: {e}") from e
