"""Git subprocess wrappers for worktree, commit, and remote operations."""

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse


class GitError(Exception):
    """Raised when a git command fails."""


@dataclass
class StatusEntry:
    code: str
    path: str


@dataclass
class RemoteInfo:
    owner: str
    name: str
    url: str


def run_git(args: list[str], cwd: str | Path | None = None, strip: bool = True) -> str:
    """Run a git command and return stdout. Raises GitError on failure."""
    cmd = ["git"] + args
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip() if strip else result.stdout
    except subprocess.CalledProcessError as e:
        raise GitError(f"git {' '.join(args)} failed: {e.stderr.strip()}") from e
    except FileNotFoundError as e:
        raise GitError(f"git {' '.join(args)} failed: {e}") from e


def worktree_add(
    repo_path: str | Path,
    worktree_path: str | Path,
    branch: str,
    base_ref: str = "main",
) -> str:
    """Create a worktree on `branch`, creating or resetting it to `base_ref`."""
    return run_git(
        ["worktree", "add", "-B", branch, str(worktree_path), base_ref],
        cwd=repo_path,
    )


def worktree_remove(repo_path: str | Path, worktree_path: str | Path, force: bool = False) -> str:
    """Remove a git worktree."""
    args = ["worktree", "remove", str(worktree_path)]
    if force:
        args.append("--force")
    return run_git(args, cwd=repo_path)


def worktree_prune(repo_path: str | Path) -> str:
    """Drop administrative entries for worktrees whose directories are gone."""
    return run_git(["worktree", "prune"], cwd=repo_path)


def get_status_entries(cwd: str | Path) -> list[StatusEntry]:
    """Porcelain status, one entry per file (untracked directories expanded)."""
    output = run_git(["status", "--porcelain", "--untracked-files=all"], cwd=cwd, strip=False)
    entries = []
    for line in output.splitlines():
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        # Renames are reported as "old -> new"
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        entries.append(StatusEntry(code=code, path=path.strip('"')))
    return entries


def is_clean(cwd: str | Path) -> bool:
    return not get_status_entries(cwd)


def commit_all(cwd: str | Path, message: str) -> str | None:
    """Stage everything and commit. Returns the new HEAD sha, or None if nothing to commit."""
    run_git(["add", "-A"], cwd=cwd)
    if not run_git(["status", "--porcelain"], cwd=cwd):
        return None
    run_git(["commit", "-m", message], cwd=cwd)
    return run_git(["rev-parse", "HEAD"], cwd=cwd)


def push_branch(cwd: str | Path, branch: str, remote: str = "origin") -> str:
    """Push a branch and set its upstream."""
    return run_git(["push", "--set-upstream", remote, branch], cwd=cwd)


def get_repo_root(cwd: str | Path | None = None) -> str:
    """Top-level directory of the repository containing `cwd`."""
    return run_git(["rev-parse", "--show-toplevel"], cwd=cwd)


def get_remote_url(repo_path: str | Path, remote: str = "origin") -> str | None:
    """Fetch URL of `remote`, falling back to the first configured remote."""
    remotes = run_git(["remote"], cwd=repo_path).split()
    if not remotes:
        return None
    name = remote if remote in remotes else remotes[0]
    return run_git(["remote", "get-url", name], cwd=repo_path)


def set_remote_url(repo_path: str | Path, url: str, remote: str = "origin") -> str:
    return run_git(["remote", "set-url", remote, url], cwd=repo_path)


def clone(url: str, target: str | Path) -> str:
    return run_git(["clone", url, str(target)])


_WINDOWS_PATH = re.compile(r"^[a-zA-Z]:\\")


def parse_remote_url(remote_url: str) -> RemoteInfo:
    """Extract owner and repository name from an ssh, https, or local-path remote."""
    if remote_url.startswith("git@"):
        _, _, path_part = remote_url.partition(":")
        owner, _, name = re.sub(r"\.git$", "", path_part).partition("/")
        if not owner or not name:
            raise GitError(f"Unable to parse remote URL: {remote_url}")
        return RemoteInfo(owner=owner, name=name, url=remote_url)

    is_file_path = remote_url.startswith(("/", "./", "../"))
    if is_file_path or _WINDOWS_PATH.match(remote_url):
        normalized = re.sub(r"\.git$", "", remote_url.replace("\\", "/"))
        segments = [s for s in normalized.split("/") if s]
        if not segments:
            raise GitError(f"Unable to parse remote URL: {remote_url}")
        name = segments.pop()
        owner = segments.pop() if segments else "local"
        return RemoteInfo(owner=owner, name=name, url=remote_url)

    parsed = urlparse(remote_url)
    segments = [s for s in re.sub(r"\.git$", "", parsed.path).split("/") if s]
    if not parsed.scheme or len(segments) < 2:
        raise GitError(f"Unable to parse remote URL: {remote_url}")
    return RemoteInfo(owner=segments[-2], name=segments[-1], url=remote_url)
