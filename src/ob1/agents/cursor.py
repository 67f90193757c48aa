"""Cursor agent CLI backend."""

from ob1.agents.base import require_env, require_executable
from ob1.agents.claude import run_stream_json_cli
from ob1.config import get_config
from ob1.core.notes import append_todo
from ob1.models import AgentContext, AgentOutcome


class CursorBackend:
    name = "cursor"
    opens_pull_request = True

    def check_readiness(self) -> None:
        require_env(self.name, "CURSOR_API_KEY")
        require_executable(self.name, get_config().cursor_bin)

    async def execute(self, context: AgentContext) -> AgentOutcome:
        append_todo(context.todo_path, "Run Cursor agent", done=False)
        cmd = [
            get_config().cursor_bin,
            "-p",
            "--force",
            "--output-format", "stream-json",
            context.prompt,
        ]
        # cursor-agent reads CURSOR_API_KEY from the inherited environment
        return await run_stream_json_cli(context, "Cursor", cmd)
