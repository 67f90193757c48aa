"""MCP server exposing read-only views of ob1 runs."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from mcp.server.fastmcp import Context, FastMCP

from ob1.config import Config, get_config
from ob1.core import doctor as doctor_mod
from ob1.core import runs as runs_mod


@dataclass
class AppContext:
    config: Config


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    yield AppContext(config=get_config())


mcp = FastMCP("ob1", lifespan=app_lifespan)


def _cfg(ctx: Context) -> Config:
    return ctx.request_context.lifespan_context.config


# ── Run Tools ─────────────────────────────────────────────────────────────────


@mcp.tool()
def list_runs(ctx: Context, limit: int = 20) -> list[dict]:
    """List recent ob1 runs, newest first."""
    return [r.to_dict() for r in runs_mod.list_runs(_cfg(ctx).runs_dir, limit=limit)]


@mcp.tool()
def get_run(ctx: Context, run_id: str) -> dict:
    """Get a run's status and per-agent summary (branch, commit, PR URL, error)."""
    runs_dir = _cfg(ctx).runs_dir
    record = runs_mod.get_run(runs_dir, run_id)
    if not record:
        return {"error": f"Run not found: {run_id}"}
    data = record.to_dict()
    summary = runs_mod.load_summary(record.run_root)
    data["summary"] = summary.to_dict() if summary else None
    return data


@mcp.tool()
def get_run_events(ctx: Context, run_id: str) -> dict:
    """Read the lifecycle event log of a run in the order it was written."""
    record = runs_mod.get_run(_cfg(ctx).runs_dir, run_id)
    if not record:
        return {"error": f"Run not found: {run_id}"}
    return {"runId": run_id, "events": runs_mod.load_events(record.run_root)}


# ── Environment Tools ────────────────────────────────────────────────────────


@mcp.tool()
def check_credentials(agents: list[str] | None = None) -> list[dict]:
    """Report which agent and GitHub credentials are set. Values are never returned."""
    return [
        {
            "keys": list(c.keys),
            "present": c.present,
            "required": c.required,
            "agents": c.agents,
        }
        for c in doctor_mod.check_credentials(agents)
    ]
