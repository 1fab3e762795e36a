"""Logging setup for the Blueprints CLI.

Two channels share the ``blueprints`` logger tree:

- ``blueprints.agent`` carries agent progress (summaries, keep-alive notices)
  and is written to stdout in gray under the ``CODEX`` label.
- everything else is orchestrator chatter written to stderr under the
  ``BLUEPRINTS`` label, or ``ERROR`` in red for errors.

Each line reads ``[LABEL][YYYY-MM-DD HH:MM:SS] - message`` in local time.
"""

import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

import click

ROOT_LOGGER_NAME = "blueprints"
AGENT_LOGGER_NAME = "blueprints.agent"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _is_agent_record(record: logging.LogRecord) -> bool:
    return record.name == AGENT_LOGGER_NAME or record.name.startswith(AGENT_LOGGER_NAME + ".")


class ChannelFilter(logging.Filter):
    """Route records to the agent channel or the orchestrator channel."""

    def __init__(self, agent_channel: bool):
        super().__init__()
        self.agent_channel = agent_channel

    def filter(self, record: logging.LogRecord) -> bool:
        return _is_agent_record(record) == self.agent_channel


class LabelFormatter(logging.Formatter):
    """Format records as ``[LABEL][timestamp] - message`` with optional color."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    @staticmethod
    def _label_and_color(record: logging.LogRecord) -> tuple[str, str]:
        if record.levelno >= logging.ERROR:
            return "ERROR", "red"
        if _is_agent_record(record):
            return "CODEX", "bright_black"
        if record.levelno >= logging.WARNING:
            return "WARNING", "yellow"
        return "BLUEPRINTS", "blue"

    def format(self, record: logging.LogRecord) -> str:
        label, color = self._label_and_color(record)
        timestamp = datetime.fromtimestamp(record.created).strftime(TIMESTAMP_FORMAT)
        line = f"[{label}][{timestamp}] - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        if self.use_color:
            return click.style(line, fg=color)
        return line


def _make_handler(stream: TextIO, agent_channel: bool, use_color: bool) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.addFilter(ChannelFilter(agent_channel))
    handler.setFormatter(LabelFormatter(use_color=use_color))
    return handler


def setup_logging(
    verbose: bool = False,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    use_color: Optional[bool] = None,
) -> logging.Logger:
    """Install the two channel handlers on the ``blueprints`` logger.

    Safe to call more than once; previously installed handlers are replaced.
    """
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr
    if use_color is None:
        use_color = stderr.isatty()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.addHandler(_make_handler(stdout, agent_channel=True, use_color=use_color))
    root.addHandler(_make_handler(stderr, agent_channel=False, use_color=use_color))
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False
    return root


def get_agent_logger() -> logging.Logger:
    """Logger for agent progress lines shown to the user on stdout."""
    return logging.getLogger(AGENT_LOGGER_NAME)
