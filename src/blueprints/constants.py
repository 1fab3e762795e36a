"""Constants for the Blueprints agent orchestrator.

This module defines the configuration constants used throughout the application,
including the control token protocol, loop defaults, stream handling settings and
the quality-check toolchain layout.

Blueprints drives a reviewer and a builder Codex agent against a Rust workspace
until the reviewer signs off or an iteration budget is exhausted.
"""

from pathlib import Path

# =============================================================================
# Control Token Protocol
# =============================================================================
# Sentinels agents print to steer the loop. Matched by whole-output or
# whole-line equality only.
COMPLETED_TOKEN = "__BLUEPRINTS_COMPLETED__"
CONTINUE_TOKEN = "__BLUEPRINTS_CONTINUE__"
ERROR_TOKEN = "__BLUEPRINTS_ERROR__"

# Plan block emitted by the tests reviewer
PLAN_START_MARKER = "---PLAN START---"
PLAN_END_MARKER = "---PLAN END---"

# =============================================================================
# Prompt Substitution Points
# =============================================================================
REVIEWER_FEEDBACK_VAR = "${REVIEWER_FEEDBACK}"
REMAINING_WORK_VAR = "${REVIEWER_FEEDBACK_OR_REMAINING_WORK}"
IMPLEMENTATION_PLAN_VAR = "${IMPLEMENTATION_PLAN}"
HOST_CI_RESULTS_VAR = "${HOST_CI_RESULTS}"

# =============================================================================
# Workflow Defaults
# =============================================================================
DEFAULT_MAX_BUILDER_ITERS = 50
DEFAULT_MAX_REVIEWER_ITERS = 100
DEFAULT_LOOP_SLEEP_SECS = 0.2

# =============================================================================
# Agent Process Configuration
# =============================================================================
DEFAULT_AGENT_EXECUTABLE = "codex"
DEFAULT_REVIEWER_MODEL = "gpt-5"
DEFAULT_BUILDER_MODEL = "gpt-5-codex"

# Appended after the prompt on every invocation
SKIP_GIT_REPO_CHECK_FLAG = "--skip-git-repo-check"

# Local tool wrappers are prepended to the child's PATH so that the agent's own
# cargo invocations can be intercepted. The real cargo is exported separately
# so the wrapper can delegate without recursing into itself.
WRAPPER_DIR = Path(".blueprints") / "bin"
REAL_TOOLCHAIN_ENV = "BLUEPRINTS_REAL_CARGO"

# =============================================================================
# Stream Handling
# =============================================================================
# Wall-clock cadence for summarizing mode (seconds)
SUMMARY_INTERVAL_SECONDS = 15.0

# stderr is read in raw chunks rather than lines
STDERR_CHUNK_SIZE = 4096

STDERR_MARKER = "[stderr] "

STILL_RUNNING_NOTICE = "Codex agent still running; no new output in the last 15s."

# Banner lines that end the useful part of a summarizer reply
REPLY_METADATA_PREFIXES = (
    "tokens used",
    "[CODEX]",
    "reasoning effort",
    "session id",
    "Finished in",
)

# =============================================================================
# Quality-Check Toolchain
# =============================================================================
TOOLCHAIN = "cargo"
BUILD_MANIFEST = "Cargo.toml"

# (summary key, cargo arguments); "{target}" is replaced with the package name
CI_GATES = [
    ("cargo_fmt_check", ["fmt", "--all", "--", "--check"]),
    (
        "cargo_clippy",
        [
            "clippy",
            "-p",
            "{target}",
            "--all-targets",
            "--all-features",
            "--",
            "-W",
            "clippy::all",
            "-W",
            "clippy::pedantic",
        ],
    ),
    ("cargo_check", ["check", "-p", "{target}", "--all-targets", "--all-features"]),
    ("cargo_nextest", ["nextest", "run", "-p", "{target}", "--all-features"]),
]

# =============================================================================
# Checklist Artifact
# =============================================================================
DEFAULT_CHECKLIST_PATH = Path("blueprints") / "05-delivery-plan.md"
