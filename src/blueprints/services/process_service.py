"""Agent process invocation.

``run_agent`` spawns one Codex process, drains both of its output streams
concurrently and returns once the process has exited and every worker has been
joined.
"""

import logging
import queue
import subprocess
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from blueprints.exceptions import AgentProcessError, BlueprintsError
from blueprints.models.process import CommandOutput
from blueprints.providers.codex import CodexProvider
from blueprints.services.stream_service import (
    StreamMultiplexer,
    mirror_text,
    read_stderr,
    read_stdout,
)
from blueprints.services.summary_service import SummaryWorker

logger = logging.getLogger(__name__)


def _join(future: Future, name: str):
    """Wait for a worker and convert unexpected failures into AgentProcessError."""
    try:
        return future.result()
    except BlueprintsError:
        raise
    except Exception as e:
        raise AgentProcessError(f"{name} failed: {e}")


def run_agent(
    args: List[str],
    prompt: str,
    *,
    summarize: bool = False,
    provider: Optional[CodexProvider] = None,
    cwd: Optional[Path] = None,
) -> CommandOutput:
    """Run the agent with ``args`` and ``prompt`` and capture its output.

    In verbatim mode output is mirrored live; with ``summarize`` it is buffered
    and reported through the summarizer every 15 seconds instead.

    Raises:
        AgentProcessError: If the process cannot be spawned or a stream worker fails.
        SummarizerError: If summarization is enabled and the summarizer fails.
    """
    provider = provider or CodexProvider()
    cwd = Path(cwd) if cwd is not None else Path.cwd()
    env = provider.build_environment(cwd)
    command = provider.build_command(args, prompt)

    logger.debug(f"Spawning {provider.executable} with args: {args}")
    try:
        child = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            cwd=cwd,
        )
    except OSError as e:
        raise AgentProcessError(f"failed to spawn {provider.executable} CLI: {e}")

    if child.stdout is None or child.stderr is None:
        child.kill()
        child.wait()
        raise AgentProcessError(f"{provider.executable} output pipes unavailable")

    packets: queue.Queue = queue.Queue()
    summary_requests: Optional[queue.Queue] = queue.Queue() if summarize else None
    multiplexer = StreamMultiplexer(packets, summary_requests)

    try:
        with ThreadPoolExecutor(max_workers=4, thread_name_prefix="blueprints-agent") as pool:
            stdout_future = pool.submit(read_stdout, child.stdout, packets)
            stderr_future = pool.submit(read_stderr, child.stderr, packets)
            multiplexer_future = pool.submit(multiplexer.run)
            summary_future = None
            if summary_requests is not None:
                summary_future = pool.submit(SummaryWorker(summary_requests, provider).run)

            returncode = child.wait()

            _join(stdout_future, "stdout reader")
            _join(stderr_future, "stderr reader")
            aggregated = _join(multiplexer_future, "stream multiplexer")
            if summary_future is not None:
                _join(summary_future, "summarizer")
    finally:
        child.stdout.close()
        child.stderr.close()

    logger.debug(f"{provider.executable} exited with status {returncode}")

    # Summarizing mode never mirrored stderr, so surface it when the agent failed
    if summarize and returncode != 0 and aggregated.stderr.strip():
        mirror_text(sys.stderr, aggregated.stderr)

    return CommandOutput(
        stdout=aggregated.stdout,
        last_stdout_line=aggregated.last_stdout_line,
        returncode=returncode,
    )
