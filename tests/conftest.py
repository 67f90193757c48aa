"""Shared fixtures: throwaway git repositories and in-test agent backends."""

import asyncio
import subprocess
import tempfile
from pathlib import Path

import pytest

from ob1.config import Config
from ob1.models import AgentOutcome


def git(cwd, *args) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


@pytest.fixture
def tmp_root():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp).resolve()


@pytest.fixture
def git_repo(tmp_root):
    """A repository on `main` with one commit."""
    repo = tmp_root / "repo"
    repo.mkdir()
    git(repo, "init")
    git(repo, "checkout", "-b", "main")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("# Test\n")
    git(repo, "add", ".")
    git(repo, "commit", "-m", "init")
    return repo


@pytest.fixture
def remote_repo(git_repo, tmp_root):
    """Bare repository wired up as `origin` of git_repo."""
    bare = tmp_root / "remote.git"
    subprocess.run(["git", "init", "--bare", str(bare)], capture_output=True, check=True)
    git(git_repo, "remote", "add", "origin", str(bare))
    git(git_repo, "push", "origin", "main")
    return bare


@pytest.fixture
def config(tmp_root):
    return Config(runs_dir=tmp_root / "runs", work_root=tmp_root / "work")


class FakeBackend:
    """Agent backend whose behaviour is scripted by the test."""

    def __init__(
        self,
        name,
        action=None,
        opens_pull_request=True,
        ready_error=None,
        delay=0.0,
    ):
        self.name = name
        self.opens_pull_request = opens_pull_request
        self.action = action
        self.ready_error = ready_error
        self.delay = delay
        self.contexts = []

    def check_readiness(self):
        if self.ready_error:
            raise self.ready_error

    async def execute(self, context):
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.action:
            self.action(context)
        return AgentOutcome(agent=self.name, summary="done", notes=[f"{self.name} finished"])


def write_file(name, content="changed\n"):
    """Backend action that writes one file into the workspace."""
    def action(context):
        (context.dir / name).write_text(content)
    return action


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def writes():
    return write_file
