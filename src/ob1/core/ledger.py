"""Run ledger: append-only JSONL event log plus a single summary snapshot."""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import ClassVar

from ob1.models import RunSummary

logger = logging.getLogger(__name__)

EVENT_LOG_FILENAME = "run.jsonl"
SUMMARY_FILENAME = "summary.json"


# ── Events ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RunStarted:
    kind: ClassVar[str] = "start"
    run_id: str
    agents: tuple[str, ...]
    message: str

    def payload(self) -> dict:
        return {"runId": self.run_id, "agents": list(self.agents), "message": self.message}


@dataclass(frozen=True)
class AgentStarted:
    kind: ClassVar[str] = "agent:start"
    agent: str
    branch: str

    def payload(self) -> dict:
        return {"agent": self.agent, "branch": self.branch}


@dataclass(frozen=True)
class AgentSucceeded:
    kind: ClassVar[str] = "agent:success"
    agent: str
    branch: str
    commit_id: str
    pr_url: str | None = None

    def payload(self) -> dict:
        data = {"agent": self.agent, "branch": self.branch, "commitId": self.commit_id}
        if self.pr_url:
            data["prUrl"] = self.pr_url
        return data


@dataclass(frozen=True)
class AgentFailed:
    kind: ClassVar[str] = "agent:error"
    agent: str
    branch: str
    error: str

    def payload(self) -> dict:
        return {"agent": self.agent, "branch": self.branch, "error": self.error}


@dataclass(frozen=True)
class RunFinished:
    run_id: str
    agents: tuple[str, ...]
    with_error: bool = False

    @property
    def kind(self) -> str:
        return "finish:with-error" if self.with_error else "finish"

    def payload(self) -> dict:
        return {"runId": self.run_id, "agents": list(self.agents)}


RunEvent = RunStarted | AgentStarted | AgentSucceeded | AgentFailed | RunFinished

EVENT_KINDS = (
    "start",
    "agent:start",
    "agent:success",
    "agent:error",
    "finish",
    "finish:with-error",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Ledger ───────────────────────────────────────────────────────────────────


class RunLedger:
    """Writes the event log and summary for one run under `run_root`.

    Write failures are logged and swallowed.
    """

    def __init__(self, run_root: Path):
        self.run_root = Path(run_root)
        self.events_path = self.run_root / EVENT_LOG_FILENAME
        self.summary_path = self.run_root / SUMMARY_FILENAME
        self._lock = threading.Lock()
        self._summary_written = False

    def log_event(self, event: RunEvent) -> None:
        record = {"event": event.kind, **event.payload(), "timestamp": _now_iso()}
        line = json.dumps(record) + "\n"
        with self._lock:
            try:
                self.events_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.events_path, "a", encoding="utf-8") as f:
                    f.write(line)
            except OSError:
                logger.exception("Failed to append %s event to %s", event.kind, self.events_path)

    def write_summary(self, summary: RunSummary) -> None:
        with self._lock:
            if self._summary_written:
                raise RuntimeError(f"Summary for run {summary.run_id} already written")
            self._summary_written = True
            try:
                self.summary_path.parent.mkdir(parents=True, exist_ok=True)
                self.summary_path.write_text(
                    json.dumps(summary.to_dict(), indent=2) + "\n", encoding="utf-8"
                )
            except OSError:
                logger.exception("Failed to write run summary to %s", self.summary_path)
