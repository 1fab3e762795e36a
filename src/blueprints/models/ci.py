"""Quality-check models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class CiMode(str, Enum):
    PENDING = "pending"
    KNOWN = "known"


@dataclass
class CiState:
    """Loop-scoped record of the latest quality-check results.

    Starts ``PENDING``; once a check has run it stays ``KNOWN`` and only the
    summary and failure text are overwritten.
    """

    mode: CiMode = CiMode.PENDING
    last_summary: str = ""
    failure_output: str = ""

    def record(self, summary: str, failure_output: str = "") -> None:
        self.mode = CiMode.KNOWN
        self.last_summary = summary
        self.failure_output = failure_output


class CiStatus(str, Enum):
    SUCCESS = "success"
    FAILURES = "failures"
    TOOLCHAIN_MISSING = "toolchain_missing"


@dataclass(frozen=True)
class CiOutcome:
    """Result of one pass over the quality gates."""

    status: CiStatus
    summary: str
    feedback: str = ""


@dataclass(frozen=True)
class CiCommand:
    key: str
    args: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CiFailure:
    key: str
    exit: str
    output: str
