"""Tests for the CLI."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from ob1.cli import main
from ob1.core.errors import AgentExecutionError, ConfigurationError
from ob1.core.ledger import RunLedger, RunStarted
from ob1.models import AgentExecutionSummary, RunSummary


@pytest.fixture
def cli_env(tmp_root, monkeypatch):
    runs_dir = tmp_root / "runs"
    monkeypatch.setenv("OB1_RUNS_DIR", str(runs_dir))
    return CliRunner(), runs_dir


def _summary(run_root: Path, error=None, pr_url=None, dry_run=False) -> RunSummary:
    return RunSummary(
        run_id=run_root.name,
        message="Add a greeting",
        base_branch="main",
        repo_dir=Path("/repo"),
        dry_run=dry_run,
        run_root=run_root,
        agents=[
            AgentExecutionSummary(
                agent="claude",
                branch=f"agent/claude/{run_root.name}",
                worktree_path=Path("/work/claude"),
                commit_sha=None if error else "0123456789abcdef",
                pr_url=pr_url,
                changed_files=0 if error else 2,
                error=error,
            ),
        ],
    )


class FakeOrchestrator:
    """Stands in for RunOrchestrator; records options and replays a canned result."""

    instances = []

    def __init__(self, options, summary=None, error=None):
        self.options = options
        self.summary = None
        self._summary = summary
        self._error = error
        FakeOrchestrator.instances.append(self)

    async def run(self):
        self.summary = self._summary
        if self._error:
            raise self._error
        return self.summary


def _patched(summary=None, error=None):
    FakeOrchestrator.instances = []
    return patch(
        "ob1.cli.RunOrchestrator",
        side_effect=lambda options: FakeOrchestrator(options, summary, error),
    )


class TestRunCommand:
    def test_options_are_passed_through(self, cli_env, tmp_root):
        runner, runs_dir = cli_env
        summary = _summary(runs_dir / "r1", dry_run=True)
        with _patched(summary):
            result = runner.invoke(main, [
                "run", "-m", "Add a greeting", "-k", "2",
                "--agents", "claude, codex", "--dry", "--base", "develop",
                "--timeout", "30", "--work-root", str(tmp_root / "work"),
            ])

        assert result.exit_code == 0, result.output
        options = FakeOrchestrator.instances[0].options
        assert options.message == "Add a greeting"
        assert options.k == 2
        assert options.agents == ("claude", "codex")
        assert options.dry_run is True
        assert options.base_branch == "develop"
        assert options.timeout == 30
        assert options.work_root == tmp_root / "work"
        assert "claude: dry run" in result.output

    def test_prints_pull_request(self, cli_env):
        runner, runs_dir = cli_env
        summary = _summary(runs_dir / "r1", pr_url="https://github.com/acme/w/pull/1")
        with _patched(summary):
            result = runner.invoke(main, ["run", "-m", "x", "-k", "1"])
        assert result.exit_code == 0
        assert "claude: https://github.com/acme/w/pull/1" in result.output

    def test_agent_failure_exits_nonzero_with_summary(self, cli_env):
        runner, runs_dir = cli_env
        summary = _summary(runs_dir / "r1", error="boom")
        with _patched(summary, AgentExecutionError("boom")):
            result = runner.invoke(main, ["run", "-m", "x", "-k", "1"])
        assert result.exit_code == 1
        assert "claude: boom" in result.output
        assert "Error: boom" in result.output

    def test_preflight_failure(self, cli_env):
        runner, _ = cli_env
        with _patched(None, ConfigurationError("OPENAI_API_KEY must be set to run the codex agent.")):
            result = runner.invoke(main, ["run", "-m", "x", "-k", "1"])
        assert result.exit_code == 1
        assert "Error: OPENAI_API_KEY must be set" in result.output
        assert "Run " not in result.output

    def test_requires_message_and_k(self, cli_env):
        runner, _ = cli_env
        assert runner.invoke(main, ["run", "-k", "1"]).exit_code == 2
        assert runner.invoke(main, ["run", "-m", "x"]).exit_code == 2
        assert runner.invoke(main, ["run", "-m", "x", "-k", "0"]).exit_code == 2


class TestDoctor:
    def test_missing_required(self, cli_env, monkeypatch):
        runner, _ = cli_env
        for key in ("OPENAI_API_KEY", "GITHUB_TOKEN"):
            monkeypatch.delenv(key, raising=False)
        result = runner.invoke(main, ["doctor", "--agents", "codex"])
        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output

    def test_all_present(self, cli_env, monkeypatch):
        runner, _ = cli_env
        monkeypatch.setenv("OPENAI_API_KEY", "sk")
        monkeypatch.setenv("GITHUB_TOKEN", "gh")
        result = runner.invoke(main, ["doctor", "--agents", "codex"])
        assert result.exit_code == 0
        assert "All required credentials are set." in result.output


class TestRuns:
    def test_list_empty(self, cli_env):
        runner, _ = cli_env
        result = runner.invoke(main, ["runs", "list"])
        assert result.exit_code == 0
        assert "No runs found." in result.output

    def test_list_and_show(self, cli_env):
        runner, runs_dir = cli_env
        run_root = runs_dir / "20260101000000-abcd"
        ledger = RunLedger(run_root)
        ledger.log_event(RunStarted(run_id=run_root.name, agents=("claude",), message="Add a greeting"))
        ledger.write_summary(_summary(run_root, pr_url="https://github.com/acme/w/pull/1"))

        result = runner.invoke(main, ["runs", "list"])
        assert result.exit_code == 0
        assert "20260101000000-abcd [running] claude: Add a greeting" in result.output

        result = runner.invoke(main, ["runs", "list", "--json"])
        assert json.loads(result.output)[0]["runId"] == run_root.name

        result = runner.invoke(main, ["runs", "show", run_root.name])
        assert result.exit_code == 0
        assert "PR: https://github.com/acme/w/pull/1" in result.output
        assert "Commit: 0123456789abcdef" in result.output

    def test_show_missing(self, cli_env):
        runner, _ = cli_env
        result = runner.invoke(main, ["runs", "show", "nope"])
        assert result.exit_code == 1

    def test_clean_missing(self, cli_env):
        runner, _ = cli_env
        result = runner.invoke(main, ["clean", "nope"])
        assert result.exit_code == 1
        assert "No summary found" in result.output

    def test_clean(self, cli_env, git_repo, tmp_root):
        from ob1.core import workspaces as workspaces_mod

        runner, runs_dir = cli_env
        run_root = runs_dir / "20260101000000-abcd"
        path = tmp_root / "work" / "claude" / run_root.name
        workspaces_mod.provision(git_repo, path, f"agent/claude/{run_root.name}", "main")

        summary = _summary(run_root)
        summary.repo_dir = git_repo
        summary.agents = [AgentExecutionSummary(
            agent="claude", branch=f"agent/claude/{run_root.name}", worktree_path=path,
            commit_sha="abc",
        )]
        RunLedger(run_root).write_summary(summary)

        result = runner.invoke(main, ["clean", run_root.name])
        assert result.exit_code == 0, result.output
        assert f"Removed: {path}" in result.output
        assert not path.exists()
