"""Quality-check service: runs the cargo gates against one package."""

import logging
import shutil
import subprocess
from typing import List

from blueprints.constants import CI_GATES, TOOLCHAIN
from blueprints.exceptions import QualityCheckError
from blueprints.models.ci import CiCommand, CiFailure, CiMode, CiOutcome, CiState, CiStatus
from blueprints.models.process import describe_exit

logger = logging.getLogger(__name__)

TOOLCHAIN_MISSING_SUMMARY = "\n".join(f"{key}=blocked" for key, _ in CI_GATES)
TOOLCHAIN_MISSING_FEEDBACK = (
    "1) CI:cargo command not found on PATH. Install Rust toolchain so "
    "cargo fmt/clippy/check/nextest can run."
)
PENDING_SUMMARY = "\n".join(f"{key}=pending" for key, _ in CI_GATES)
NO_MANIFEST_RESULTS = "none (no Cargo.toml)"
FAILURE_OUTPUT_HEADER = "CI_FAILURE_OUTPUT\n"


def toolchain_available() -> bool:
    return shutil.which(TOOLCHAIN) is not None


def build_ci_commands(target: str) -> List[CiCommand]:
    """Expand the gate table for ``target``, in execution order."""
    return [
        CiCommand(key=key, args=[arg.replace("{target}", target) for arg in args])
        for key, args in CI_GATES
    ]


def format_failures(failures: List[CiFailure]) -> str:
    """Number failing gates from 1 as ``N) CI:<key> failed (exit <code>).`` blocks."""
    feedback = "".join(
        f"{idx}) CI:{failure.key} failed (exit {failure.exit}).\n{failure.output}\n"
        for idx, failure in enumerate(failures, start=1)
    )
    return feedback.rstrip()


def run_ci_checks(target: str) -> CiOutcome:
    """Run every gate in order and report SUCCESS, FAILURES or TOOLCHAIN_MISSING.

    All gates run even after one fails, so the summary always has four entries.

    Raises:
        QualityCheckError: If a gate command cannot be started.
    """
    if not toolchain_available():
        logger.warning(f"{TOOLCHAIN} not found on PATH; quality gates blocked")
        return CiOutcome(
            CiStatus.TOOLCHAIN_MISSING, TOOLCHAIN_MISSING_SUMMARY, TOOLCHAIN_MISSING_FEEDBACK
        )

    summary_entries = []
    failures = []

    for command in build_ci_commands(target):
        subcommand = command.args[0] if command.args else "<unknown>"
        logger.info(f"Running {TOOLCHAIN} {subcommand}")
        try:
            result = subprocess.run(
                [TOOLCHAIN, *command.args],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise QualityCheckError(f"failed to run {TOOLCHAIN} {subcommand}: {e}")

        passed = result.returncode == 0
        summary_entries.append(f"{command.key}={'pass' if passed else 'fail'}")
        if not passed:
            failures.append(
                CiFailure(
                    key=command.key,
                    exit=describe_exit(result.returncode),
                    output=f"{result.stdout}{result.stderr}",
                )
            )

    summary = "\n".join(summary_entries)
    if not failures:
        return CiOutcome(CiStatus.SUCCESS, summary)

    logger.info(f"Quality gates failed: {', '.join(f.key for f in failures)}")
    return CiOutcome(CiStatus.FAILURES, summary, format_failures(failures))


def compute_host_ci_results(ci_state: CiState, has_manifest: bool) -> str:
    """Render ``ci_state`` for the reviewer's ``${HOST_CI_RESULTS}`` slot."""
    if not has_manifest:
        return NO_MANIFEST_RESULTS

    if ci_state.mode == CiMode.PENDING:
        return PENDING_SUMMARY

    results = ci_state.last_summary
    if ci_state.failure_output.strip():
        results += "\n\n" + FAILURE_OUTPUT_HEADER if results else FAILURE_OUTPUT_HEADER
        results += ci_state.failure_output.rstrip()
    return results
