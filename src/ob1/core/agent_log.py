"""Detailed per-agent execution trace under runs/<id>/agents/<agent>/."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AgentLog:
    """Captures every thought, tool call and result an agent backend reports.

    Writes three files:
      execution.jsonl  one event per line
      metadata.json    status, turns, duration and cost
      summary.md       human-readable timeline, written on completion
    """

    def __init__(self, agent: str, run_id: str, run_root: Path):
        self.agent = agent
        self.run_id = run_id
        self.log_dir = Path(run_root) / "agents" / agent
        self.execution_path = self.log_dir / "execution.jsonl"
        self.metadata_path = self.log_dir / "metadata.json"
        self.summary_path = self.log_dir / "summary.md"
        self.events: list[dict] = []

    def init(self) -> None:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._write_metadata({
            "agent": self.agent,
            "runId": self.run_id,
            "startTime": _now_iso(),
            "status": "running",
        })

    def log(self, event_type: str, **fields) -> None:
        event = {"type": event_type, "timestamp": _now_iso(), **fields}
        self.events.append(event)
        try:
            with open(self.execution_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, default=str) + "\n")
        except OSError:
            logger.warning("Could not append to %s", self.execution_path)

    def log_start(self, prompt: str) -> None:
        self.log("start", prompt=prompt)

    def log_thought(self, turn: int, content: str) -> None:
        self.log("thought", turn=turn, content=content)

    def log_tool_call(self, turn: int, tool: str, args: dict | None = None) -> None:
        self.log("tool", turn=turn, tool=tool, args=args or {})

    def log_tool_result(self, turn: int, tool: str, success: bool, error: str | None = None) -> None:
        self.log("result", turn=turn, tool=tool, success=success, error=error)

    def log_error(self, error: str, **details) -> None:
        self.log("error", error=error, **details)

    def log_complete(
        self,
        turns: int,
        duration_ms: int,
        success: bool,
        summary: str,
        cost_usd: float | None = None,
    ) -> None:
        self.log(
            "complete",
            turns=turns,
            duration_ms=duration_ms,
            cost_usd=cost_usd,
            success=success,
            summary=summary,
        )
        self._write_metadata({
            "agent": self.agent,
            "runId": self.run_id,
            "endTime": _now_iso(),
            "status": "success" if success else "error",
            "turns": turns,
            "duration_ms": duration_ms,
            "cost_usd": cost_usd,
        })
        self._write_summary(turns, duration_ms, success, summary, cost_usd)

    def _write_metadata(self, data: dict) -> None:
        try:
            self.metadata_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError:
            logger.warning("Could not write %s", self.metadata_path)

    def _write_summary(
        self,
        turns: int,
        duration_ms: int,
        success: bool,
        result: str,
        cost_usd: float | None,
    ) -> None:
        counts = {"thought": 0, "tool": 0, "error": 0}
        for event in self.events:
            if event["type"] in counts:
                counts[event["type"]] += 1

        cost = f"${cost_usd:.4f}" if cost_usd else "N/A"
        lines = [
            f"# {self.agent} Execution Summary",
            "",
            f"**Run ID**: {self.run_id}",
            f"**Status**: {'Success' if success else 'Failed'}",
            f"**Turns**: {turns}",
            f"**Duration**: {duration_ms / 1000:.1f}s",
            f"**Cost**: {cost}",
            "",
            "## Activity",
            "",
            f"- **Thoughts**: {counts['thought']}",
            f"- **Tool Calls**: {counts['tool']}",
            f"- **Errors**: {counts['error']}",
            "",
            "## Result",
            "",
            result,
            "",
            "## Timeline",
            "",
        ]
        for event in self.events:
            lines.extend(_timeline_lines(event))
        lines += ["", "---", "", "For the detailed execution trace, see `execution.jsonl`", ""]

        try:
            self.summary_path.write_text("\n".join(lines), encoding="utf-8")
        except OSError:
            logger.warning("Could not write %s", self.summary_path)


def _timeline_lines(event: dict) -> list[str]:
    time = event["timestamp"][11:19]
    kind = event["type"]
    if kind == "start":
        return [f"- **{time}** - Started execution", f"  - Prompt: {event.get('prompt', '')}"]
    if kind == "thought":
        return [f"- **{time}** - Turn {event.get('turn')}: {event.get('content', '')}"]
    if kind == "tool":
        return [f"- **{time}** - Turn {event.get('turn')}: Called `{event.get('tool')}`"]
    if kind == "result":
        outcome = "Success" if event.get("success") else event.get("error")
        return [f"  - Result: {outcome}"]
    if kind == "error":
        return [f"- **{time}** - Error: {event.get('error')}"]
    if kind == "complete":
        return [f"- **{time}** - Completed"]
    return []
