"""Run orchestration: pre-flight, per-agent workspaces, bounded execution, fail-slow aggregation."""

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from ob1.agents.base import AgentBackend
from ob1.agents.registry import build_backends
from ob1.config import Config, ensure_env_loaded, get_config
from ob1.core import workspaces as workspaces_mod
from ob1.core.errors import (
    AgentTimeoutError,
    ConfigurationError,
    NoChangeError,
    PublishError,
    WorkspaceError,
)
from ob1.core.ledger import (
    AgentFailed,
    AgentStarted,
    AgentSucceeded,
    RunFinished,
    RunLedger,
    RunStarted,
)
from ob1.core.notes import append_scratchpad_entry, append_todo, write_fallback_file
from ob1.core.repository import ensure_clean, get_forge_info, make_run_id, resolve_repository
from ob1.core.scheduler import run_bounded
from ob1.integrations import github as github_mod
from ob1.integrations.git import RemoteInfo
from ob1.models import (
    AgentContext,
    AgentExecutionSummary,
    AgentState,
    RunOptions,
    RunSummary,
    RunTask,
)

logger = logging.getLogger(__name__)

NO_CHANGE_MESSAGE = "Agent completed without producing any file changes."


def select_agents(
    requested: Sequence[str] | None,
    known: Sequence[str],
    k: int,
) -> list[str]:
    """Requested agents that exist (all known agents if none requested), capped at k."""
    if k < 1:
        raise ConfigurationError(f"k must be a positive integer, got {k}")

    if requested:
        unknown = [a for a in requested if a not in known]
        if unknown:
            logger.warning("Ignoring unknown agent(s): %s", ", ".join(unknown))
        candidates = list(dict.fromkeys(a for a in requested if a in known))
    else:
        candidates = list(known)

    if not candidates:
        raise ConfigurationError("No valid agents selected.")

    selected = candidates[:k]
    if len(selected) < k:
        logger.warning(
            "Requested %d agents but only %d available. Proceeding with available agents.",
            k, len(selected),
        )
    return selected


class RunOrchestrator:
    """Runs one task across several agents, each in its own worktree.

    Pre-flight problems raise before anything is written. After that, every
    agent runs to completion or failure independently; once all have settled
    the summary is persisted and the first failure (in settlement order) is
    re-raised. `summary` stays readable after a failed run.
    """

    def __init__(
        self,
        options: RunOptions,
        backends: Mapping[str, AgentBackend] | None = None,
        config: Config | None = None,
    ):
        self.options = options
        self._backends = backends
        self._config = config
        self.summary: RunSummary | None = None
        self.states: dict[str, AgentState] = {}
        self._failures: list[BaseException] = []
        self._lock = asyncio.Lock()

    async def run(self) -> RunSummary:
        options = self.options
        ensure_env_loaded()
        config = self._config or get_config()
        backends = dict(self._backends) if self._backends is not None else build_backends()

        # ── Pre-flight: nothing below may touch the filesystem until it passes
        selected = select_agents(options.agents, list(backends), options.k)
        self.states = {name: AgentState.PENDING for name in selected}
        for name in selected:
            backends[name].check_readiness()
            self.states[name] = AgentState.READY_CHECKED

        publishes = not options.dry_run and any(backends[a].opens_pull_request for a in selected)
        if publishes and not os.environ.get("GITHUB_TOKEN"):
            raise ConfigurationError(
                "GITHUB_TOKEN must be set to push branches and open pull requests (or use --dry)."
            )

        repo_dir = await asyncio.to_thread(
            resolve_repository, options.repo, os.environ.get("GITHUB_TOKEN")
        )
        runs_dir = Path(options.runs_dir or config.runs_dir).resolve()
        work_root = Path(options.work_root or config.work_root).resolve()
        await asyncio.to_thread(
            ensure_clean, repo_dir, options.allow_dirty, (runs_dir, work_root)
        )
        forge = await asyncio.to_thread(get_forge_info, repo_dir) if publishes else None

        # ── Run
        run_id = make_run_id()
        run_root = runs_dir / run_id
        run_root.mkdir(parents=True, exist_ok=True)

        task = RunTask(
            run_id=run_id,
            message=options.message,
            base_branch=options.base_branch,
            k=options.k,
            dry_run=options.dry_run,
            agents=tuple(selected),
            allow_dirty=options.allow_dirty,
            repo_dir=repo_dir,
            run_root=run_root,
        )
        ledger = RunLedger(run_root)
        self.summary = RunSummary(
            run_id=run_id,
            message=task.message,
            base_branch=task.base_branch,
            repo_dir=repo_dir,
            dry_run=task.dry_run,
            run_root=run_root,
        )

        logger.info("Starting ob1 run with agents: %s (runId=%s)", ", ".join(selected), run_id)
        ledger.log_event(RunStarted(run_id=run_id, agents=task.agents, message=task.message))

        contexts: list[AgentContext] = []
        for name in selected:
            timeout = (
                options.timeout
                or getattr(backends[name], "default_timeout", None)
                or config.agent_timeout
            )
            try:
                context = await asyncio.to_thread(
                    self._prepare_workspace, task, name, work_root, timeout
                )
            except Exception as e:
                ledger.log_event(AgentStarted(agent=name, branch=workspaces_mod.branch_name(name, run_id)))
                await self._record_failure(
                    ledger,
                    name,
                    workspaces_mod.branch_name(name, run_id),
                    workspaces_mod.workspace_path(work_root, name, run_id),
                    e,
                )
                continue
            contexts.append(context)

        async def worker(context: AgentContext) -> None:
            await self._run_agent(task, context, backends[context.name], forge, ledger)

        results = await run_bounded(contexts, task.k, worker)

        settled = {entry.agent for entry in self.summary.agents}
        for context, result in zip(contexts, results):
            if context.name not in settled:
                error = result if isinstance(result, BaseException) else RuntimeError("Agent did not settle")
                await self._record_failure(ledger, context.name, context.branch, context.dir, error)

        ledger.write_summary(self.summary)
        ledger.log_event(
            RunFinished(
                run_id=run_id,
                agents=tuple(entry.agent for entry in self.summary.agents),
                with_error=bool(self._failures),
            )
        )

        if self._failures:
            raise self._failures[0]
        return self.summary

    # ── Per-agent steps ──────────────────────────────────────────────────────

    def _prepare_workspace(
        self,
        task: RunTask,
        name: str,
        work_root: Path,
        timeout: float,
    ) -> AgentContext:
        branch = workspaces_mod.branch_name(name, task.run_id)
        path = workspaces_mod.workspace_path(work_root, name, task.run_id)
        workspaces_mod.provision(task.repo_dir, path, branch, task.base_branch)
        try:
            scratchpad, todo = workspaces_mod.init_tracking_files(path, task.message)
        except OSError as e:
            raise WorkspaceError(f"Failed to write tracking files in {path}: {e}") from e

        return AgentContext(
            name=name,
            dir=path,
            branch=branch,
            prompt=task.message,
            scratchpad_path=scratchpad,
            todo_path=todo,
            run_id=task.run_id,
            run_root=task.run_root,
            timeout=timeout,
        )

    async def _run_agent(
        self,
        task: RunTask,
        context: AgentContext,
        backend: AgentBackend,
        forge: RemoteInfo | None,
        ledger: RunLedger,
    ) -> None:
        name = context.name
        ledger.log_event(AgentStarted(agent=name, branch=context.branch))

        try:
            backend.check_readiness()
            self.states[name] = AgentState.RUNNING
            logger.info("[%s] running agent", name)
            try:
                outcome = await asyncio.wait_for(backend.execute(context), timeout=context.timeout)
            except asyncio.TimeoutError as e:
                raise AgentTimeoutError(name, context.timeout) from e

            for note in outcome.notes:
                append_scratchpad_entry(context.scratchpad_path, note)

            paths = await asyncio.to_thread(workspaces_mod.changed_paths, context.dir)
            fallback_file = None
            if not workspaces_mod.meaningful_changes(paths):
                logger.info("[%s] applying fallback", name)
                fallback_file = self._write_fallback(context)
                paths = await asyncio.to_thread(workspaces_mod.changed_paths, context.dir)

            if not paths:
                raise NoChangeError(NO_CHANGE_MESSAGE)
            changed_files = len(paths)

            logger.info("[%s] committing changes", name)
            commit_sha = await asyncio.to_thread(
                workspaces_mod.commit, context.dir, f"ob1({name}): {task.message}"
            )
            if not commit_sha:
                raise WorkspaceError("Failed to create commit.")

            pr_url = None
            if not backend.opens_pull_request:
                logger.info("[%s] review agent completed; artifacts left for CI to upload", name)
                append_scratchpad_entry(
                    context.scratchpad_path,
                    "Review agent completed: test artifacts are ready for CI to upload.",
                )
            elif not task.dry_run and forge is not None:
                logger.info("[%s] pushing branch", name)
                await asyncio.to_thread(workspaces_mod.push, context.dir, context.branch)
                logger.info("[%s] creating PR", name)
                pr_url = await asyncio.to_thread(
                    self._open_pull_request, task, context, forge, changed_files
                )
                append_scratchpad_entry(context.scratchpad_path, f"PR created: {pr_url}")
                append_todo(context.todo_path, "PR opened", done=True)
            else:
                append_scratchpad_entry(
                    context.scratchpad_path, "Dry run: skipping push and PR creation."
                )

            append_todo(context.todo_path, "ob1 run completed", done=True)

        except Exception as e:
            await self._record_failure(ledger, name, context.branch, context.dir, e)
            return

        entry = AgentExecutionSummary(
            agent=name,
            branch=context.branch,
            worktree_path=context.dir,
            commit_sha=commit_sha,
            pr_url=pr_url,
            fallback_file=fallback_file,
            changed_files=changed_files,
        )
        async with self._lock:
            self.summary.agents.append(entry)
            self.states[name] = AgentState.SUCCEEDED
        ledger.log_event(
            AgentSucceeded(agent=name, branch=context.branch, commit_id=commit_sha, pr_url=pr_url)
        )
        logger.info("[%s] completed%s", name, f" -> {pr_url}" if pr_url else "")

    def _write_fallback(self, context: AgentContext) -> str:
        message = f"Agent {context.name} produced no changes. Fallback file generated by orchestrator."
        path = write_fallback_file(context.dir, context.name, message)
        relative = path.relative_to(context.dir).as_posix()
        append_scratchpad_entry(context.scratchpad_path, f"Fallback file created: {relative}")
        append_todo(context.todo_path, "Fallback summary file generated", done=True)
        return relative

    def _open_pull_request(
        self,
        task: RunTask,
        context: AgentContext,
        forge: RemoteInfo,
        changed_files: int,
    ) -> str:
        pr = github_mod.PullRequestInput(
            owner=forge.owner,
            repo=forge.name,
            base=task.base_branch,
            head=context.branch,
            title=github_mod.build_pr_title(context.name, task.message),
            body=github_mod.build_pr_body(
                agent=context.name,
                branch=context.branch,
                message=task.message,
                changed_files=changed_files,
            ),
        )
        try:
            return github_mod.create_pull_request(os.environ.get("GITHUB_TOKEN"), pr)
        except github_mod.GitHubError as e:
            raise PublishError(f"Failed to create pull request for {context.branch}: {e}") from e

    async def _record_failure(
        self,
        ledger: RunLedger,
        name: str,
        branch: str,
        path: Path,
        error: BaseException,
    ) -> None:
        message = str(error) or type(error).__name__
        entry = AgentExecutionSummary(
            agent=name,
            branch=branch,
            worktree_path=path,
            changed_files=0,
            error=message,
        )
        async with self._lock:
            self.summary.agents.append(entry)
            self._failures.append(error)
            self.states[name] = (
                AgentState.TIMED_OUT if isinstance(error, AgentTimeoutError) else AgentState.FAILED
            )
        ledger.log_event(AgentFailed(agent=name, branch=branch, error=message))
        logger.error("[%s] failed: %s", name, message)


async def run_ob1(
    options: RunOptions,
    backends: Mapping[str, AgentBackend] | None = None,
    config: Config | None = None,
) -> RunSummary:
    return await RunOrchestrator(options, backends=backends, config=config).run()
