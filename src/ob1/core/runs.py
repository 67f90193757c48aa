"""Read-side access to run artifacts under the runs directory."""

import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ob1.core.ledger import EVENT_LOG_FILENAME, SUMMARY_FILENAME
from ob1.core.workspaces import teardown
from ob1.models import RunSummary

logger = logging.getLogger(__name__)


@dataclass
class RunRecord:
    """One directory under the runs root, complete or not."""

    run_id: str
    run_root: Path
    started_at: str | None = None
    finished: bool = False
    with_error: bool = False
    agents: list[str] | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "runRoot": str(self.run_root),
            "startedAt": self.started_at,
            "finished": self.finished,
            "withError": self.with_error,
            "agents": self.agents or [],
            "message": self.message,
        }


def load_events(run_root: Path) -> list[dict]:
    """Events from run.jsonl in file order. Unparseable lines are skipped."""
    path = Path(run_root) / EVENT_LOG_FILENAME
    if not path.exists():
        return []

    events = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError:
            logger.warning("Skipping malformed event line in %s", path)
    return events


def load_summary(run_root: Path) -> RunSummary | None:
    """The run's summary.json, or None when the run never got that far."""
    path = Path(run_root) / SUMMARY_FILENAME
    if not path.exists():
        return None
    try:
        return RunSummary.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, KeyError) as e:
        logger.warning("Unreadable summary %s: %s", path, e)
        return None


def _record_from_events(run_root: Path, events: list[dict]) -> RunRecord:
    record = RunRecord(run_id=run_root.name, run_root=run_root)
    for event in events:
        kind = event.get("event")
        if kind == "start":
            record.started_at = event.get("timestamp")
            record.agents = event.get("agents")
            record.message = event.get("message")
        elif kind in ("finish", "finish:with-error"):
            record.finished = True
            record.with_error = kind == "finish:with-error"
    return record


def _is_run_id(run_id: str) -> bool:
    return bool(run_id) and not run_id.startswith(".") and "/" not in run_id and "\\" not in run_id


def get_run(runs_dir: Path, run_id: str) -> RunRecord | None:
    run_root = Path(runs_dir) / run_id
    if not _is_run_id(run_id) or not run_root.is_dir():
        return None
    return _record_from_events(run_root, load_events(run_root))


def list_runs(runs_dir: Path, limit: int | None = None) -> list[RunRecord]:
    """Runs newest first. Run ids start with a UTC timestamp, so name order is time order."""
    runs_dir = Path(runs_dir)
    if not runs_dir.is_dir():
        return []

    roots = sorted((p for p in runs_dir.iterdir() if p.is_dir()), key=lambda p: p.name, reverse=True)
    if limit is not None:
        roots = roots[:limit]
    return [_record_from_events(root, load_events(root)) for root in roots]


def clean_run(runs_dir: Path, run_id: str, remove_artifacts: bool = False) -> list[Path]:
    """Remove the worktrees a run left behind. Returns the paths removed.

    Branches are kept; they may already back an open pull request.
    """
    if not _is_run_id(run_id):
        raise ValueError(f"Invalid run id: {run_id}")
    run_root = Path(runs_dir) / run_id
    summary = load_summary(run_root)
    if summary is None:
        raise FileNotFoundError(f"No summary found for run {run_id}")

    removed = []
    for agent in summary.agents:
        if teardown(summary.repo_dir, agent.worktree_path):
            removed.append(agent.worktree_path)

    if remove_artifacts:
        shutil.rmtree(run_root, ignore_errors=True)

    logger.info(
        "Cleaned run %s at %s (%d worktree(s) removed)",
        run_id, datetime.now(timezone.utc).isoformat(), len(removed),
    )
    return removed
