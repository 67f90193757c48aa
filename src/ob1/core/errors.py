"""Error taxonomy for ob1 runs.

Pre-flight errors (configuration, repository state) abort a run before any
workspace or artifact is created. Everything else is scoped to one agent and
ends up in that agent's summary entry.
"""


class Ob1Error(Exception):
    """Base class for orchestrator errors."""


class ConfigurationError(Ob1Error):
    """Missing credentials, executables, or other prerequisites."""


class RepositoryStateError(Ob1Error):
    """Target repository is not in the state a run requires."""


class WorkspaceError(Ob1Error):
    """Provisioning, inspecting, or committing an agent workspace failed."""


class AgentExecutionError(Ob1Error):
    """The agent backend failed while executing its task."""


class AgentTimeoutError(AgentExecutionError):
    """The agent backend exceeded its wall-clock budget."""

    def __init__(self, agent: str, timeout: float):
        self.agent = agent
        self.timeout = timeout
        super().__init__(f"Agent {agent} timed out after {timeout:g}s")


class NoChangeError(Ob1Error):
    """The agent finished but left nothing to commit."""


class PublishError(Ob1Error):
    """Push or pull request creation failed after a local commit."""
