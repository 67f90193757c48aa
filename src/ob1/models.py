"""Data models for ob1 runs."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class AgentState(str, Enum):
    PENDING = "pending"
    READY_CHECKED = "ready-checked"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class RunOptions:
    """Caller-supplied options for one orchestrator invocation."""

    message: str
    k: int
    base_branch: str = "main"
    repo: str | None = None
    dry_run: bool = False
    agents: tuple[str, ...] | None = None
    allow_dirty: bool = False
    timeout: float | None = None
    work_root: Path | None = None
    runs_dir: Path | None = None


@dataclass(frozen=True)
class RunTask:
    run_id: str
    message: str
    base_branch: str
    k: int
    dry_run: bool
    agents: tuple[str, ...]
    allow_dirty: bool
    repo_dir: Path
    run_root: Path


@dataclass(frozen=True)
class AgentContext:
    name: str
    dir: Path
    branch: str
    prompt: str
    scratchpad_path: Path
    todo_path: Path
    run_id: str
    run_root: Path
    timeout: float


@dataclass
class AgentOutcome:
    agent: str
    summary: str
    notes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AgentExecutionSummary:
    agent: str
    branch: str
    worktree_path: Path
    commit_sha: str | None = None
    pr_url: str | None = None
    fallback_file: str | None = None
    changed_files: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.commit_sha is not None

    def to_dict(self) -> dict:
        data = {
            "agent": self.agent,
            "branch": self.branch,
            "worktreePath": str(self.worktree_path),
            "commitId": self.commit_sha,
            "prUrl": self.pr_url,
            "fallbackFile": self.fallback_file,
            "changedFiles": self.changed_files,
            "error": self.error,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "AgentExecutionSummary":
        return cls(
            agent=data["agent"],
            branch=data["branch"],
            worktree_path=Path(data["worktreePath"]),
            commit_sha=data.get("commitId"),
            pr_url=data.get("prUrl"),
            fallback_file=data.get("fallbackFile"),
            changed_files=data.get("changedFiles", 0),
            error=data.get("error"),
        )


@dataclass
class RunSummary:
    run_id: str
    message: str
    base_branch: str
    repo_dir: Path
    dry_run: bool
    run_root: Path
    agents: list[AgentExecutionSummary] = field(default_factory=list)

    @property
    def failed(self) -> list[AgentExecutionSummary]:
        return [a for a in self.agents if a.error is not None]

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "message": self.message,
            "baseBranch": self.base_branch,
            "repoDir": str(self.repo_dir),
            "dryRun": self.dry_run,
            "runRoot": str(self.run_root),
            "agents": [a.to_dict() for a in self.agents],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RunSummary":
        return cls(
            run_id=data["runId"],
            message=data.get("message", ""),
            base_branch=data.get("baseBranch", "main"),
            repo_dir=Path(data.get("repoDir", "")),
            dry_run=bool(data.get("dryRun", False)),
            run_root=Path(data.get("runRoot", "")),
            agents=[AgentExecutionSummary.from_dict(a) for a in data.get("agents", [])],
        )
