"""Summarization side channel for long-running agent output."""

import logging
import queue
import subprocess
from typing import Optional

from blueprints.exceptions import SummarizerError
from blueprints.models.agent import AgentRole
from blueprints.models.process import describe_exit
from blueprints.providers.codex import CodexProvider
from blueprints.utils.logging import get_agent_logger

logger = logging.getLogger(__name__)
agent_logger = get_agent_logger()

SUMMARY_INSTRUCTIONS = (
    "Summarize the Codex agent activity for the user as a single concise sentence or "
    "short paragraph. Focus on concrete actions, omit control tokens, and do not use "
    "bullet points."
)
FINAL_UPDATE_INSTRUCTION = " Treat this as the final update before the agent stops."
INTERIM_UPDATE_INSTRUCTION = " This is an interim progress update."


def build_summary_prompt(chunk: str, final_update: bool) -> str:
    instructions = SUMMARY_INSTRUCTIONS + (
        FINAL_UPDATE_INSTRUCTION if final_update else INTERIM_UPDATE_INSTRUCTION
    )
    return f"{instructions}\n\n<output_chunk>\n{chunk}\n</output_chunk>"


def summarize_chunk(
    chunk: str, final_update: bool, provider: Optional[CodexProvider] = None
) -> str:
    """Ask the summarizer profile for a one-line account of ``chunk``.

    Raises:
        SummarizerError: If the summarizer cannot be started or exits non-zero.
    """
    provider = provider or CodexProvider()
    command = provider.build_command(
        provider.role_args(AgentRole.SUMMARIZER), build_summary_prompt(chunk, final_update)
    )

    try:
        result = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise SummarizerError(f"failed to run codex summarizer: {e}")

    if result.returncode != 0:
        message = f"summarizer codex exec failed (exit {describe_exit(result.returncode)})"
        if result.stderr.strip():
            message = f"{message}\n{result.stderr.strip()}"
        raise SummarizerError(message)

    return provider.extract_reply(result.stdout) or result.stdout.strip()


class SummaryWorker:
    """Consume summary requests until the end-of-input sentinel (``None``)."""

    def __init__(self, requests: queue.Queue, provider: Optional[CodexProvider] = None):
        self.requests = requests
        self.provider = provider

    def run(self) -> None:
        while True:
            request = self.requests.get()
            if request is None:
                return

            if not request.chunk.strip():
                continue

            summary = summarize_chunk(request.chunk, request.final, self.provider).strip()
            if not summary:
                continue

            if request.final:
                agent_logger.info(f"Final update: {summary}")
            else:
                agent_logger.info(summary)
