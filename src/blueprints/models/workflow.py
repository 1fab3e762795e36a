"""Workflow configuration models."""

from dataclasses import dataclass

from blueprints.constants import (
    DEFAULT_AGENT_EXECUTABLE,
    DEFAULT_BUILDER_MODEL,
    DEFAULT_LOOP_SLEEP_SECS,
    DEFAULT_MAX_BUILDER_ITERS,
    DEFAULT_MAX_REVIEWER_ITERS,
    DEFAULT_REVIEWER_MODEL,
)
from blueprints.exceptions import WorkflowConfigError


@dataclass(frozen=True)
class WorkflowConfig:
    """Iteration ceilings and inter-iteration delay for one run."""

    max_reviewer_iters: int = DEFAULT_MAX_REVIEWER_ITERS
    max_builder_iters: int = DEFAULT_MAX_BUILDER_ITERS
    loop_sleep: float = DEFAULT_LOOP_SLEEP_SECS

    def __post_init__(self) -> None:
        if self.loop_sleep < 0:
            raise WorkflowConfigError("LOOP_SLEEP_SECS must be non-negative")
        if self.max_reviewer_iters < 0:
            raise WorkflowConfigError("MAX_REVIEWER_ITERS must be non-negative")
        if self.max_builder_iters < 0:
            raise WorkflowConfigError("MAX_BUILDER_ITERS must be non-negative")


@dataclass(frozen=True)
class AgentSettings:
    """Which Codex binary to run and which models the roles use."""

    executable: str = DEFAULT_AGENT_EXECUTABLE
    reviewer_model: str = DEFAULT_REVIEWER_MODEL
    builder_model: str = DEFAULT_BUILDER_MODEL


@dataclass(frozen=True)
class RunConfig:
    workflow: WorkflowConfig
    agent: AgentSettings
