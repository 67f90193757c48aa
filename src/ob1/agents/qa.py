"""QA review backend: tests the change on its branch and leaves artifacts for CI to upload."""

from ob1.agents.base import require_env, require_executable
from ob1.agents.claude import build_claude_command, claude_env, run_stream_json_cli
from ob1.config import get_config
from ob1.core.notes import append_scratchpad_entry, append_todo
from ob1.models import AgentContext, AgentOutcome


def build_qa_system_prompt(context: AgentContext) -> str:
    return f"""You are a senior QA engineer reviewing a pull request through automated testing.

Working directory: {context.dir}
Branch: {context.branch}

Work through these phases in order:

1. DISCOVERY: run `git diff HEAD~1` and read the modified files. Work out which
   user-facing behaviour changed; do not assume it.
2. PROJECT UNDERSTANDING: read the README and package manifests to learn how to
   install dependencies, start the app, and which port it serves on.
3. SETUP: install dependencies, build if needed, start the dev server in the
   background and wait until it answers.
4. TEST DESIGN: plan 2-6 workflow tests. Each workflow is one complete user
   journey (happy path, validation and errors, secondary features, session
   state). Prefer fewer, longer journeys over many atomic checks.
5. IMPLEMENTATION: write Playwright tests for those workflows under `qa-tests/`
   with video recording enabled, and run them.
6. REPORT: write `qa-results/report.md` with what was tested, what passed, what
   failed, and where the videos are.

Leave all artifacts in the working tree. Do not push or open pull requests."""


class QaBackend:
    name = "qa"
    opens_pull_request = False

    @property
    def default_timeout(self) -> float:
        return get_config().qa_timeout

    def check_readiness(self) -> None:
        require_env(self.name, "ANTHROPIC_API_KEY", "CLAUDE_API_KEY")
        require_executable(self.name, get_config().claude_bin)

    async def execute(self, context: AgentContext) -> AgentOutcome:
        append_scratchpad_entry(context.scratchpad_path, "Task: QA Review for PR")
        append_todo(context.todo_path, "Initialize QA Agent", done=False)

        cmd = build_claude_command(
            context,
            f"Review and test the changes on this branch. Original task: {context.prompt}",
            system_prompt=build_qa_system_prompt(context),
        )
        outcome = await run_stream_json_cli(context, "QA", cmd, env=claude_env())
        append_todo(context.todo_path, "QA review completed", done=True)
        return outcome
