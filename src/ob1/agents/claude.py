"""Claude Code CLI backend, and the stream-json parsing it shares with other CLIs."""

import os
import time
from dataclasses import dataclass, field

from ob1.agents.base import (
    parse_json_line,
    require_env,
    require_executable,
    run_agent_process,
    truncate,
)
from ob1.config import get_config
from ob1.core.agent_log import AgentLog
from ob1.core.errors import AgentExecutionError
from ob1.core.mcp_config import load_mcp_servers, write_mcp_config
from ob1.core.notes import append_scratchpad_entry, append_todo
from ob1.models import AgentContext, AgentOutcome

CLAUDE_KEYS = ("CLAUDE_API_KEY", "ANTHROPIC_API_KEY")


@dataclass
class StreamState:
    turns: int = 0
    result: str | None = None
    is_error: bool = False
    cost_usd: float | None = None
    duration_ms: int | None = None
    tools: list[str] = field(default_factory=list)


def handle_stream_message(message: dict, state: StreamState, log: AgentLog, scratchpad) -> None:
    """Fold one stream-json message into `state` and the agent's logs."""
    kind = message.get("type")

    if kind == "assistant":
        state.turns += 1
        for block in message.get("message", {}).get("content", []):
            if block.get("type") == "text" and block.get("text"):
                log.log_thought(state.turns, block["text"])
            elif block.get("type") == "tool_use":
                tool = block.get("name", "unknown")
                state.tools.append(tool)
                log.log_tool_call(state.turns, tool, block.get("input"))
                append_scratchpad_entry(scratchpad, f"Tool: {tool}")

    elif kind == "user":
        for block in message.get("message", {}).get("content", []):
            if isinstance(block, dict) and block.get("type") == "tool_result":
                failed = bool(block.get("is_error"))
                log.log_tool_result(state.turns, block.get("tool_use_id", ""), not failed)

    elif kind == "tool_call":
        # cursor-agent reports tool activity as separate started/completed messages
        tool = next(iter(message.get("tool_call", {})), "unknown")
        if message.get("subtype") == "started":
            state.tools.append(tool)
            log.log_tool_call(state.turns, tool)
            append_scratchpad_entry(scratchpad, f"Tool: {tool}")
        elif message.get("subtype") == "completed":
            log.log_tool_result(state.turns, tool, True)

    elif kind == "result":
        state.result = message.get("result")
        state.is_error = bool(message.get("is_error")) or message.get("subtype", "success") != "success"
        state.cost_usd = message.get("total_cost_usd")
        state.duration_ms = message.get("duration_ms")
        if message.get("num_turns"):
            state.turns = message["num_turns"]


def stream_notes(state: StreamState, duration_ms: int) -> list[str]:
    notes = [f"Turns: {state.turns}", f"Duration: {duration_ms / 1000:.1f}s"]
    if state.cost_usd is not None:
        notes.append(f"Cost: ${state.cost_usd:.4f} USD")
    if state.tools:
        notes.append(f"Tool calls: {len(state.tools)}")
    return notes


async def run_stream_json_cli(
    context: AgentContext,
    label: str,
    cmd: list[str],
    env: dict[str, str] | None = None,
) -> AgentOutcome:
    """Run a CLI that speaks stream-json and turn its output into an AgentOutcome."""
    log = AgentLog(context.name, context.run_id, context.run_root)
    log.init()
    log.log_start(context.prompt)

    state = StreamState()

    def on_line(line: str) -> None:
        message = parse_json_line(line)
        if message is not None:
            handle_stream_message(message, state, log, context.scratchpad_path)

    started = time.monotonic()
    try:
        result = await run_agent_process(cmd, cwd=context.dir, on_line=on_line, env=env)
    except BaseException as e:
        duration_ms = int((time.monotonic() - started) * 1000)
        log.log_error(f"{type(e).__name__}: {e}" if str(e) else type(e).__name__)
        log.log_complete(state.turns, duration_ms, False, "Execution aborted", state.cost_usd)
        raise
    duration_ms = state.duration_ms or int((time.monotonic() - started) * 1000)

    if result.returncode != 0 or state.is_error:
        detail = state.result or result.error_detail()
        log.log_error(detail, returncode=result.returncode)
        log.log_complete(state.turns, duration_ms, False, detail, state.cost_usd)
        append_scratchpad_entry(context.scratchpad_path, f"Error: {truncate(detail, 200)}")
        raise AgentExecutionError(f"{label} agent failed: {truncate(detail, 200)}")

    summary = truncate(state.result or "Task completed")
    append_todo(context.todo_path, f"{label} execution completed", done=True)
    append_scratchpad_entry(context.scratchpad_path, f"Final result: {summary}")
    log.log_complete(state.turns, duration_ms, True, summary, state.cost_usd)

    return AgentOutcome(agent=context.name, summary=summary, notes=stream_notes(state, duration_ms))


def claude_env() -> dict[str, str]:
    """Environment for the claude CLI, mapping CLAUDE_API_KEY onto ANTHROPIC_API_KEY."""
    env = dict(os.environ)
    if not env.get("ANTHROPIC_API_KEY") and env.get("CLAUDE_API_KEY"):
        env["ANTHROPIC_API_KEY"] = env["CLAUDE_API_KEY"]
    return env


def build_claude_command(
    context: AgentContext,
    prompt: str,
    system_prompt: str | None = None,
) -> list[str]:
    config = get_config()
    cmd = [
        config.claude_bin,
        "-p", prompt,
        "--output-format", "stream-json",
        "--verbose",
        "--permission-mode", "acceptEdits",
        "--model", config.claude_model,
        "--max-turns", str(config.max_turns),
    ]
    if system_prompt:
        cmd += ["--append-system-prompt", system_prompt]

    servers = load_mcp_servers(context.dir, config.mcp_config_path)
    if servers:
        mcp_path = write_mcp_config(
            servers, context.run_root / "agents" / context.name / "mcp.json"
        )
        cmd += ["--mcp-config", str(mcp_path)]
    return cmd


class ClaudeBackend:
    name = "claude"
    opens_pull_request = True

    def check_readiness(self) -> None:
        require_env(self.name, *CLAUDE_KEYS)
        require_executable(self.name, get_config().claude_bin)

    async def execute(self, context: AgentContext) -> AgentOutcome:
        append_todo(context.todo_path, "Run Claude Code agent", done=False)
        cmd = build_claude_command(context, context.prompt)
        return await run_stream_json_cli(context, "Claude", cmd, env=claude_env())
