"""Process invocation models."""

from dataclasses import dataclass
from enum import Enum


def describe_exit(returncode: int) -> str:
    """Describe a process exit status the way error messages report it."""
    if returncode < 0:
        return "terminated by signal"
    return str(returncode)


@dataclass(frozen=True)
class CommandOutput:
    """Captured result of one agent process invocation."""

    stdout: str
    last_stdout_line: str
    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def describe_exit(self) -> str:
        return describe_exit(self.returncode)


class PacketKind(str, Enum):
    """Kinds of packets flowing from the stream readers to the multiplexer."""

    STDOUT_CHUNK = "stdout_chunk"
    STDERR_CHUNK = "stderr_chunk"
    STDOUT_CLOSED = "stdout_closed"
    STDERR_CLOSED = "stderr_closed"


@dataclass(frozen=True)
class StreamPacket:
    kind: PacketKind
    text: str = ""


@dataclass(frozen=True)
class AggregatedOutput:
    """Everything the multiplexer captured for one invocation."""

    stdout: str
    stderr: str
    last_stdout_line: str


@dataclass(frozen=True)
class SummaryRequest:
    """A buffered chunk handed to the summarizer worker."""

    chunk: str
    final: bool = False
