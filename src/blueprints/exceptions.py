"""Exception hierarchy for Blueprints.

Every fatal condition surfaced by the orchestration engine derives from
``BlueprintsError`` so the CLI can report it with a single message and exit 1.
"""


class BlueprintsError(Exception):
    """Base class for all Blueprints errors."""

    pass


class WorkflowConfigError(BlueprintsError):
    """Raised when the workflow configuration is missing or malformed."""

    pass


class AgentProcessError(BlueprintsError):
    """Raised when an agent process cannot be run or exits unsuccessfully."""

    pass


class SummarizerError(AgentProcessError):
    """Raised when the summarization side channel fails."""

    pass


class ProtocolError(BlueprintsError):
    """Raised when an agent's output violates the control token protocol."""

    pass


class AgentReportedError(BlueprintsError):
    """Raised when an agent emits the ERROR control token."""

    pass


class IterationLimitError(BlueprintsError):
    """Raised when a loop exceeds its configured iteration ceiling."""

    def __init__(self, loop: str, limit_name: str, limit: int):
        super().__init__(f"{loop} exceeded {limit_name}={limit}")
        self.loop = loop
        self.limit_name = limit_name
        self.limit = limit


class QualityCheckError(BlueprintsError):
    """Raised when a quality gate command cannot be executed at all."""

    pass


class CiBlockedError(BlueprintsError):
    """Raised when the toolchain disappears while repairing quality gates."""

    pass


class ChecklistError(BlueprintsError):
    """Raised when the delivery checklist exists but cannot be read."""

    pass
