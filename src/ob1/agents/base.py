"""Contract every agent backend satisfies, plus shared subprocess plumbing."""

import asyncio
import json
import logging
import os
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from ob1.core.errors import ConfigurationError
from ob1.models import AgentContext, AgentOutcome

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 5.0
SUMMARY_LIMIT = 500


@runtime_checkable
class AgentBackend(Protocol):
    """An agent that can attempt a task inside a workspace.

    `check_readiness` must be cheap and side-effect free and raise
    ConfigurationError when prerequisites are missing. `execute` is the only
    call allowed to touch the workspace; it is cancelled when the run's
    per-agent budget elapses.
    """

    name: str
    opens_pull_request: bool

    def check_readiness(self) -> None: ...

    async def execute(self, context: AgentContext) -> AgentOutcome: ...


def require_env(agent: str, *keys: str) -> str:
    """Return the first non-empty value among `keys`, read at call time."""
    for key in keys:
        if value := os.environ.get(key):
            return value
    names = " or ".join(keys)
    raise ConfigurationError(f"{names} must be set to run the {agent} agent.")


def require_executable(agent: str, binary: str) -> str:
    path = shutil.which(binary)
    if not path:
        raise ConfigurationError(
            f"'{binary}' executable not found on PATH; it is required to run the {agent} agent."
        )
    return path


def truncate(text: str, limit: int = SUMMARY_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def parse_json_line(line: str) -> dict | None:
    line = line.strip()
    if not line.startswith("{"):
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


@dataclass
class ProcessResult:
    returncode: int
    stdout: list[str]
    stderr: str

    def error_detail(self) -> str:
        tail = self.stderr.strip().splitlines()[-5:]
        return " ".join(tail) or f"exit code {self.returncode}"


async def run_agent_process(
    cmd: Sequence[str],
    cwd: Path,
    on_line: Callable[[str], None] | None = None,
    env: dict[str, str] | None = None,
) -> ProcessResult:
    """Run an agent CLI, feeding each stdout line to `on_line` as it arrives.

    If the awaiting task is cancelled (timeout) or `on_line` raises, the child
    is terminated, then killed after a grace period, before the error propagates.
    """
    logger.debug("Launching %s in %s", cmd[0], cwd)
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )

    stdout_lines: list[str] = []

    async def read_stdout() -> None:
        while True:
            raw = await proc.stdout.readline()
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            stdout_lines.append(line)
            if on_line is not None:
                on_line(line)

    async def read_stderr() -> bytes:
        return await proc.stderr.read()

    try:
        _, stderr = await asyncio.gather(read_stdout(), read_stderr())
        returncode = await proc.wait()
    except BaseException:
        await _terminate(proc)
        raise

    return ProcessResult(
        returncode=returncode,
        stdout=stdout_lines,
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
        await asyncio.wait_for(proc.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except ProcessLookupError:
        return
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
