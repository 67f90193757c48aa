"""GitHub operations through the `gh` CLI."""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path


class GitHubError(Exception):
    """Raised when a GitHub operation fails."""


@dataclass
class PullRequestInput:
    owner: str
    repo: str
    base: str
    head: str
    title: str
    body: str


def _gh_env(token: str | None) -> dict[str, str]:
    env = dict(os.environ)
    if token:
        env["GH_TOKEN"] = token
    return env


def run_gh(args: list[str], token: str | None = None, cwd: str | Path | None = None) -> str:
    """Run a gh command and return stdout. Raises GitHubError on failure."""
    cmd = ["gh"] + args
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            env=_gh_env(token),
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        detail = e.stderr.strip() or e.stdout.strip()
        raise GitHubError(f"gh {args[0]} {args[1] if len(args) > 1 else ''} failed: {detail}") from e
    except FileNotFoundError as e:
        raise GitHubError("gh executable not found; install the GitHub CLI") from e


def create_pull_request(token: str | None, pr: PullRequestInput) -> str:
    """Open a pull request and return its URL."""
    output = run_gh(
        [
            "pr", "create",
            "--repo", f"{pr.owner}/{pr.repo}",
            "--base", pr.base,
            "--head", pr.head,
            "--title", pr.title,
            "--body", pr.body,
        ],
        token=token,
    )
    # gh prints progress lines before the URL
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise GitHubError("gh pr create returned no URL")
    return lines[-1].strip()


def repo_exists(token: str | None, owner: str, name: str) -> bool:
    try:
        run_gh(["repo", "view", f"{owner}/{name}", "--json", "name"], token=token)
        return True
    except GitHubError as e:
        if "Could not resolve to a Repository" in str(e):
            return False
        raise


def create_repo(token: str | None, owner: str, name: str) -> str:
    """Create a public repository initialised with a README."""
    return run_gh(
        [
            "repo", "create", f"{owner}/{name}",
            "--public",
            "--add-readme",
            "--description", "Created automatically by ob1 orchestrator",
        ],
        token=token,
    )


def build_pr_body(agent: str, branch: str, message: str, changed_files: int) -> str:
    """Standard pull request body for an agent branch."""
    return (
        "## Agent\n"
        f"- Name: {agent}\n"
        f"- Branch: {branch}\n"
        f'- Task: "{message}"\n'
        "\n"
        "## Summary\n"
        f"- Changed files: {changed_files}\n"
        "- Notes: See .ob1/scratchpad.md\n"
        "\n"
        "## Checklist\n"
        "- [ ] Smoke-tested build\n"
        "- [ ] TODOs triaged (see .ob1/todo.md)\n"
    )


def build_pr_title(agent: str, message: str) -> str:
    return f"[ob1] Agent: {agent} — {message}"
