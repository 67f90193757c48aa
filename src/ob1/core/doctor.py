"""Credential checks behind `ob1 doctor`."""

import os
from collections.abc import Sequence
from dataclasses import dataclass, field

from ob1.config import ensure_env_loaded

# Each requirement is a tuple of alternatives; any one being set satisfies it.
AGENT_CREDENTIALS: dict[str, tuple[tuple[str, ...], ...]] = {
    "codex": (("OPENAI_API_KEY",),),
    "claude": (("CLAUDE_API_KEY", "ANTHROPIC_API_KEY"),),
    "cursor": (("CURSOR_API_KEY",),),
    "qa": (("ANTHROPIC_API_KEY", "CLAUDE_API_KEY"),),
}

PR_AGENTS = ("codex", "claude", "cursor")
GITHUB_CREDENTIAL = ("GITHUB_TOKEN",)


@dataclass
class CredentialCheck:
    keys: tuple[str, ...]
    present: bool
    required: bool
    agents: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return " | ".join(self.keys)


def check_credentials(
    selected: Sequence[str] | None = None,
    include_github: bool = True,
) -> list[CredentialCheck]:
    """One check per distinct credential; `required` marks those a selected agent needs."""
    ensure_env_loaded()
    chosen = set(selected) if selected else set(AGENT_CREDENTIALS)

    checks: dict[frozenset, CredentialCheck] = {}
    for agent, requirements in AGENT_CREDENTIALS.items():
        for keys in requirements:
            check = checks.get(frozenset(keys))
            if check is None:
                check = CredentialCheck(
                    keys=keys,
                    present=any(os.environ.get(k) for k in keys),
                    required=False,
                )
                checks[frozenset(keys)] = check
            check.agents.append(agent)
            if agent in chosen:
                check.required = True

    result = list(checks.values())
    if include_github:
        result.append(
            CredentialCheck(
                keys=GITHUB_CREDENTIAL,
                present=bool(os.environ.get("GITHUB_TOKEN")),
                required=any(a in chosen for a in PR_AGENTS),
                agents=list(PR_AGENTS),
            )
        )
    return result


def missing_required(checks: list[CredentialCheck]) -> list[CredentialCheck]:
    return [c for c in checks if c.required and not c.present]
