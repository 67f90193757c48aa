"""CLI entry point for ob1."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from ob1.agents.registry import ALL_AGENTS
from ob1.config import get_config
from ob1.core import doctor as doctor_mod
from ob1.core import runs as runs_mod
from ob1.core.errors import Ob1Error
from ob1.core.orchestrator import RunOrchestrator
from ob1.models import RunOptions, RunSummary


def _split_agents(value):
    if not value:
        return None
    return tuple(a.strip() for a in value.split(",") if a.strip()) or None


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """ob1 - run several coding agents on one task, in parallel"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Run Command ──────────────────────────────────────────────────────────────


@main.command("run")
@click.option("--message", "-m", required=True, help="Task prompt given to every agent")
@click.option("-k", "k", required=True, type=click.IntRange(min=1), help="Maximum agents to run in parallel")
@click.option("--repo", default=None, help="GitHub URL or local path (default: current repository)")
@click.option("--base", "base_branch", default="main", help="Base branch for agent branches and PRs")
@click.option("--agents", default=None, help=f"Comma-separated agents ({', '.join(ALL_AGENTS)})")
@click.option("--dry", is_flag=True, help="Commit locally; skip push and PR creation")
@click.option("--allow-dirty", is_flag=True, help="Run even if the repository has uncommitted changes")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Per-agent time budget in seconds")
@click.option("--work-root", type=click.Path(file_okay=False, path_type=Path), default=None, help="Where agent worktrees are created")
def run_command(message, k, repo, base_branch, agents, dry, allow_dirty, timeout, work_root):
    """Run a task across agents and open one PR per agent."""
    options = RunOptions(
        message=message,
        k=k,
        base_branch=base_branch,
        repo=repo,
        dry_run=dry,
        agents=_split_agents(agents),
        allow_dirty=allow_dirty,
        timeout=timeout,
        work_root=work_root,
    )
    orchestrator = RunOrchestrator(options)

    error = None
    try:
        asyncio.run(orchestrator.run())
    except Ob1Error as e:
        error = e
    except Exception as e:
        if orchestrator.summary is None:
            raise
        error = e

    if orchestrator.summary is not None:
        _print_summary(orchestrator.summary)

    if error is not None:
        click.echo(f"Error: {error}", err=True)
        sys.exit(1)


def _print_summary(summary: RunSummary):
    click.echo(f"Run {summary.run_id}")
    click.echo(f"  Artifacts: {summary.run_root}")
    for agent in summary.agents:
        if agent.error:
            click.echo(f"  {click.style('✗', fg='red')} {agent.agent}: {click.style(agent.error, fg='red')}")
        elif agent.pr_url:
            click.echo(f"  {click.style('✓', fg='green')} {agent.agent}: {agent.pr_url}")
        elif summary.dry_run:
            click.echo(f"  {click.style('✓', fg='green')} {agent.agent}: dry run ({agent.branch})")
        else:
            click.echo(f"  {click.style('✓', fg='green')} {agent.agent}: committed {agent.commit_sha[:12]} on {agent.branch}")


# ── Doctor Command ───────────────────────────────────────────────────────────


@main.command("doctor")
@click.option("--agents", default=None, help="Only require credentials for these agents")
def doctor_command(agents):
    """Check that agent and GitHub credentials are configured."""
    checks = doctor_mod.check_credentials(_split_agents(agents))
    for check in checks:
        if check.present:
            icon = click.style("✓", fg="green")
        elif check.required:
            icon = click.style("✗", fg="red")
        else:
            icon = click.style("-", fg="yellow")
        note = "" if check.present else (" (missing, required)" if check.required else " (missing)")
        click.echo(f"  {icon} {check.label} [{', '.join(check.agents)}]{note}")

    missing = doctor_mod.missing_required(checks)
    if missing:
        click.echo(f"Missing required credential(s): {', '.join(c.label for c in missing)}", err=True)
        sys.exit(1)
    click.echo("All required credentials are set.")


# ── Run Inspection Commands ──────────────────────────────────────────────────


@main.group("runs")
def runs_group():
    """Inspect past runs."""
    pass


@runs_group.command("list")
@click.option("--limit", default=20, type=int, help="Show at most this many runs")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def runs_list(limit, json_output):
    """List runs, newest first."""
    records = runs_mod.list_runs(get_config().runs_dir, limit=limit)

    if json_output:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if not records:
        click.echo("No runs found.")
        return

    for r in records:
        if not r.finished:
            status = "running"
        elif r.with_error:
            status = "failed"
        else:
            status = "ok"
        agents = ", ".join(r.agents or [])
        click.echo(f"  {r.run_id} [{status}] {agents}: {r.message or ''}")


@runs_group.command("show")
@click.argument("run_id")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def runs_show(run_id, json_output):
    """Show one run's per-agent results."""
    record = runs_mod.get_run(get_config().runs_dir, run_id)
    if not record:
        click.echo(f"Run not found: {run_id}", err=True)
        sys.exit(1)

    summary = runs_mod.load_summary(record.run_root)
    if json_output:
        data = record.to_dict()
        data["summary"] = summary.to_dict() if summary else None
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"Run: {record.run_id}")
    if record.message:
        click.echo(f"  Message: {record.message}")
    if record.started_at:
        click.echo(f"  Started: {record.started_at}")
    if summary is None:
        click.echo("  No summary written (run incomplete).")
        return
    click.echo(f"  Repo: {summary.repo_dir}")
    click.echo(f"  Base: {summary.base_branch}{' (dry run)' if summary.dry_run else ''}")
    for agent in summary.agents:
        click.echo(f"  {agent.agent}:")
        click.echo(f"    Branch: {agent.branch}")
        click.echo(f"    Worktree: {agent.worktree_path}")
        if agent.commit_sha:
            click.echo(f"    Commit: {agent.commit_sha}")
        if agent.pr_url:
            click.echo(f"    PR: {agent.pr_url}")
        if agent.fallback_file:
            click.echo(f"    Fallback: {agent.fallback_file}")
        if agent.error:
            click.echo(f"    Error: {agent.error}")


@main.command("clean")
@click.argument("run_id")
@click.option("--artifacts", is_flag=True, help="Also delete the run's artifact directory")
def clean_command(run_id, artifacts):
    """Remove the worktrees left behind by a run."""
    try:
        removed = runs_mod.clean_run(get_config().runs_dir, run_id, remove_artifacts=artifacts)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not removed:
        click.echo("No worktrees to clean up.")
    for path in removed:
        click.echo(f"  Removed: {path}")


# ── Dashboard Command ────────────────────────────────────────────────────────


@main.command("ui")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8787, type=int, help="Port to listen on")
@click.option("--open/--no-open", default=True, help="Open browser automatically")
def ui_command(host, port, open):
    """Launch the runs dashboard."""
    import webbrowser

    from ob1.web.app import run_server

    url = f"http://{host}:{port}"
    click.echo(f"Starting dashboard at {url}")
    if open:
        webbrowser.open(url)
    run_server(host=host, port=port)


# ── MCP Server Command ───────────────────────────────────────────────────────


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Start the MCP server (stdio transport)."""
    from ob1.mcp.server import mcp

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
