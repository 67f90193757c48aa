"""Tests for the web dashboard API and the MCP run tools."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from ob1.config import Config
from ob1.core.ledger import AgentStarted, RunFinished, RunLedger, RunStarted
from ob1.mcp import server as mcp_server
from ob1.models import AgentExecutionSummary, RunSummary
from ob1.web.app import create_app

RUN_ID = "20260101000000-abcd"
PARTIAL_RUN_ID = "20260102000000-efgh"


@pytest.fixture
def runs_dir(tmp_root):
    runs_dir = tmp_root / "runs"

    run_root = runs_dir / RUN_ID
    ledger = RunLedger(run_root)
    ledger.log_event(RunStarted(run_id=RUN_ID, agents=("claude", "codex"), message="Add a greeting"))
    ledger.log_event(AgentStarted(agent="claude", branch=f"agent/claude/{RUN_ID}"))
    ledger.write_summary(RunSummary(
        run_id=RUN_ID,
        message="Add a greeting",
        base_branch="main",
        repo_dir=Path("/repo"),
        dry_run=False,
        run_root=run_root,
        agents=[
            AgentExecutionSummary(
                agent="claude",
                branch=f"agent/claude/{RUN_ID}",
                worktree_path=Path("/work/claude"),
                commit_sha="abc123",
                pr_url="https://github.com/acme/w/pull/1",
                changed_files=3,
            ),
            AgentExecutionSummary(
                agent="codex",
                branch=f"agent/codex/{RUN_ID}",
                worktree_path=Path("/work/codex"),
                error="Agent codex timed out after 600s",
            ),
        ],
    ))
    ledger.log_event(RunFinished(run_id=RUN_ID, agents=("claude", "codex"), with_error=True))

    RunLedger(runs_dir / PARTIAL_RUN_ID).log_event(
        RunStarted(run_id=PARTIAL_RUN_ID, agents=("cursor",), message="In flight")
    )
    return runs_dir


@pytest.fixture
def client(runs_dir):
    return TestClient(create_app(runs_dir))


class TestDashboard:
    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "ob1 runs" in resp.text

    def test_list_runs(self, client):
        runs = client.get("/api/runs").json()
        assert [r["runId"] for r in runs] == [PARTIAL_RUN_ID, RUN_ID]
        assert runs[0]["finished"] is False
        assert runs[1]["withError"] is True
        assert runs[1]["agents"] == ["claude", "codex"]

    def test_list_runs_limit(self, client):
        assert len(client.get("/api/runs?limit=1").json()) == 1
        assert client.get("/api/runs?limit=abc").status_code == 400

    def test_get_run(self, client):
        data = client.get(f"/api/runs/{RUN_ID}").json()
        agents = {a["agent"]: a for a in data["summary"]["agents"]}
        assert agents["claude"]["prUrl"] == "https://github.com/acme/w/pull/1"
        assert "error" not in agents["claude"]
        assert agents["codex"]["error"].startswith("Agent codex timed out")

    def test_partial_run_has_no_summary(self, client):
        data = client.get(f"/api/runs/{PARTIAL_RUN_ID}").json()
        assert data["summary"] is None
        assert data["message"] == "In flight"

    def test_events(self, client):
        events = client.get(f"/api/runs/{RUN_ID}/events").json()
        assert [e["event"] for e in events] == ["start", "agent:start", "finish:with-error"]

    def test_not_found(self, client):
        assert client.get("/api/runs/nope").status_code == 404
        assert client.get("/api/runs/nope/events").status_code == 404


class TestMcpTools:
    @pytest.fixture
    def ctx(self, runs_dir):
        ctx = MagicMock()
        ctx.request_context.lifespan_context = mcp_server.AppContext(config=Config(runs_dir=runs_dir))
        return ctx

    def test_list_runs(self, ctx):
        runs = mcp_server.list_runs(ctx, limit=1)
        assert [r["runId"] for r in runs] == [PARTIAL_RUN_ID]

    def test_get_run(self, ctx):
        data = mcp_server.get_run(ctx, RUN_ID)
        assert data["withError"] is True
        assert len(data["summary"]["agents"]) == 2
        assert "error" in mcp_server.get_run(ctx, "nope")

    def test_get_run_events(self, ctx):
        data = mcp_server.get_run_events(ctx, RUN_ID)
        assert data["events"][0]["event"] == "start"

    def test_check_credentials(self, monkeypatch):
        monkeypatch.setenv("CURSOR_API_KEY", "secret-value")
        checks = mcp_server.check_credentials(["cursor"])
        cursor = next(c for c in checks if c["keys"] == ["CURSOR_API_KEY"])
        assert cursor == {"keys": ["CURSOR_API_KEY"], "present": True, "required": True, "agents": ["cursor"]}
        assert "secret-value" not in str(checks)
