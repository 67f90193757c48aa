"""Known agent backends."""

from ob1.agents.base import AgentBackend
from ob1.agents.claude import ClaudeBackend
from ob1.agents.codex import CodexBackend
from ob1.agents.cursor import CursorBackend
from ob1.agents.qa import QaBackend

ALL_AGENTS: tuple[str, ...] = ("codex", "claude", "cursor", "qa")

_BACKENDS = {
    "codex": CodexBackend,
    "claude": ClaudeBackend,
    "cursor": CursorBackend,
    "qa": QaBackend,
}


def get_agent_backend(name: str) -> AgentBackend:
    """Fresh backend instance for `name`."""
    try:
        return _BACKENDS[name]()
    except KeyError:
        raise ValueError(f"Unknown agent: {name}") from None


def build_backends() -> dict[str, AgentBackend]:
    return {name: get_agent_backend(name) for name in ALL_AGENTS}
