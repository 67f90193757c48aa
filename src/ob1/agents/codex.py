"""OpenAI Codex CLI backend driven by `codex exec --json` thread events."""

import logging
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
from ob1.core.notes import append_scratchpad_entry, append_todo
from ob1.models import AgentContext, AgentOutcome

logger = logging.getLogger(__name__)

# USD per 1K tokens
INPUT_COST = 0.01
CACHED_INPUT_COST = 0.0025
OUTPUT_COST = 0.03


@dataclass
class ThreadState:
    turns: int = 0
    final_response: str = ""
    usage: dict | None = None
    file_changes: int = 0
    commands: int = 0
    items: list[dict] = field(default_factory=list)


def estimate_cost(usage: dict) -> float:
    cached = usage.get("cached_input_tokens", 0)
    uncached = usage.get("input_tokens", 0) - cached
    output = usage.get("output_tokens", 0)
    return (uncached * INPUT_COST + cached * CACHED_INPUT_COST + output * OUTPUT_COST) / 1000


def handle_thread_event(event: dict, state: ThreadState, log: AgentLog, scratchpad) -> None:
    """Fold one thread event into `state`. Raises AgentExecutionError on failure events."""
    kind = event.get("type")

    if kind == "thread.started":
        append_scratchpad_entry(scratchpad, f"Thread started: {event.get('thread_id')}")

    elif kind == "turn.started":
        state.turns += 1
        append_scratchpad_entry(scratchpad, f"Turn {state.turns} started")

    elif kind == "turn.completed":
        state.usage = event.get("usage") or {}
        append_scratchpad_entry(
            scratchpad,
            f"Turn {state.turns} completed - Tokens: {state.usage.get('input_tokens', 0)} input, "
            f"{state.usage.get('output_tokens', 0)} output",
        )

    elif kind == "turn.failed":
        message = event.get("error", {}).get("message", "unknown error")
        append_scratchpad_entry(scratchpad, f"Turn {state.turns} failed: {message}")
        log.log_error(message, turn=state.turns)
        raise AgentExecutionError(f"Turn failed: {message}")

    elif kind == "item.started":
        item = event.get("item", {})
        if item.get("type") == "command_execution":
            append_scratchpad_entry(scratchpad, f"Executing: {item.get('command')}")
            log.log_tool_call(state.turns, "command_execution", {"command": item.get("command")})
        elif item.get("type") == "file_change":
            append_scratchpad_entry(
                scratchpad, f"Applying {len(item.get('changes', []))} file change(s)..."
            )

    elif kind == "item.completed":
        item = event.get("item", {})
        state.items.append(item)
        item_type = item.get("type")
        if item_type == "agent_message":
            state.final_response = item.get("text", "")
            log.log_thought(state.turns, state.final_response)
            append_scratchpad_entry(scratchpad, f"Response: {truncate(state.final_response, 150)}")
        elif item_type == "file_change":
            changes = item.get("changes", [])
            state.file_changes += len(changes)
            described = ", ".join(f"{c.get('kind')} {c.get('path')}" for c in changes)
            append_scratchpad_entry(scratchpad, f"Files changed: {described}")
        elif item_type == "command_execution":
            state.commands += 1
            exit_code = item.get("exit_code")
            log.log_tool_result(state.turns, "command_execution", exit_code in (0, None))
            append_scratchpad_entry(
                scratchpad,
                f"Command completed with exit code: {exit_code if exit_code is not None else 'N/A'}",
            )

    elif kind == "error":
        message = event.get("message", "unknown error")
        append_scratchpad_entry(scratchpad, f"Error: {message}")
        log.log_error(message)
        raise AgentExecutionError(f"Thread error: {message}")


def thread_notes(state: ThreadState) -> list[str]:
    notes = []
    if state.usage:
        notes.append(
            f"Tokens: {state.usage.get('input_tokens', 0)} input "
            f"({state.usage.get('cached_input_tokens', 0)} cached), "
            f"{state.usage.get('output_tokens', 0)} output"
        )
        notes.append(f"Estimated Cost: ${estimate_cost(state.usage):.4f} USD")
    notes.append(f"Turns: {state.turns}")
    if state.file_changes:
        notes.append(f"File changes: {state.file_changes} file(s) modified")
    if state.commands:
        notes.append(f"Commands executed: {state.commands}")
    return notes


class CodexBackend:
    name = "codex"
    opens_pull_request = True

    def check_readiness(self) -> None:
        require_env(self.name, "OPENAI_API_KEY")
        require_executable(self.name, get_config().codex_bin)

    async def execute(self, context: AgentContext) -> AgentOutcome:
        logger.info("[codex] Starting autonomous agent for task: %s", context.prompt)
        append_todo(context.todo_path, "Run Codex agent", done=False)

        log = AgentLog(context.name, context.run_id, context.run_root)
        log.init()
        log.log_start(context.prompt)

        cmd = [
            get_config().codex_bin,
            "exec",
            "--json",
            "--sandbox", "workspace-write",
            context.prompt,
        ]
        state = ThreadState()

        def on_line(line: str) -> None:
            event = parse_json_line(line)
            if event is not None:
                handle_thread_event(event, state, log, context.scratchpad_path)

        started = time.monotonic()
        try:
            result = await run_agent_process(cmd, cwd=context.dir, on_line=on_line)
        except BaseException as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            log.log_complete(state.turns, duration_ms, False, str(e) or type(e).__name__)
            raise
        duration_ms = int((time.monotonic() - started) * 1000)
        cost = estimate_cost(state.usage) if state.usage else None

        if result.returncode != 0:
            detail = result.error_detail()
            log.log_error(detail, returncode=result.returncode)
            log.log_complete(state.turns, duration_ms, False, detail, cost)
            append_scratchpad_entry(context.scratchpad_path, f"Error: {truncate(detail, 200)}")
            raise AgentExecutionError(f"Codex agent failed: {truncate(detail, 200)}")

        summary = truncate(state.final_response or "Task completed")
        append_todo(context.todo_path, "Codex execution completed", done=True)
        append_scratchpad_entry(context.scratchpad_path, f"Final result: {summary}")
        log.log_complete(state.turns, duration_ms, True, summary, cost)

        logger.info("[codex] Task completed in %d turn(s)", state.turns)
        return AgentOutcome(agent=context.name, summary=summary, notes=thread_notes(state))
