"""Codex CLI provider implementation."""

import logging
import os
import re
import shutil
import stat
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from blueprints.constants import (
    REAL_TOOLCHAIN_ENV,
    REPLY_METADATA_PREFIXES,
    SKIP_GIT_REPO_CHECK_FLAG,
    TOOLCHAIN,
    WRAPPER_DIR,
)
from blueprints.models.agent import AgentRole
from blueprints.models.workflow import AgentSettings

logger = logging.getLogger(__name__)

# Regex patterns for Codex output analysis
ANSI_CODE_PATTERN = r"\x1b\[[0-?]*[ -/]*[@-~]"
OSC_PATTERN = r"\x1b\][^\x07]*(?:\x07|\x1b\\)"
# `codex exec` prints the assistant turn under a bare "codex" speaker line
SPEAKER_LINE_PATTERN = r"^codex[ \t]*$"

HIGH_REASONING = "model_reasoning_effort='high'"
WEB_SEARCH = "web_search_request=true"


class CodexProvider:
    """Provider for Codex CLI invocations.

    Knows the argument profile of every agent role, how to prepare the child
    environment and how to read a reply out of ``codex exec`` output.
    """

    def __init__(self, settings: Optional[AgentSettings] = None):
        self.settings = settings or AgentSettings()

    @property
    def executable(self) -> str:
        return self.settings.executable

    def role_args(self, role: AgentRole) -> List[str]:
        """Return the ``codex`` arguments for one role (prompt not included)."""
        reviewer_model = self.settings.reviewer_model
        builder_model = self.settings.builder_model

        if role == AgentRole.IMPLEMENT_REVIEWER:
            return [
                "exec", "--model", reviewer_model,
                "--config", HIGH_REASONING,
                "--config", WEB_SEARCH,
                "--full-auto",
            ]
        if role == AgentRole.IMPLEMENT_BUILDER:
            return [
                "exec", "--model", builder_model,
                "--config", HIGH_REASONING,
                "--config", WEB_SEARCH,
                "--full-auto",
            ]
        if role in (AgentRole.DELIVERY_REVIEWER, AgentRole.TESTS_REVIEWER):
            return [
                "exec", "--model", reviewer_model,
                "--config", HIGH_REASONING,
                "--sandbox", "read-only",
                "--full-auto",
            ]
        if role in (AgentRole.DELIVERY_BUILDER, AgentRole.TESTS_BUILDER):
            return [
                "exec", "--model", builder_model,
                "--config", HIGH_REASONING,
                "--full-auto",
            ]
        if role == AgentRole.CI_FIXER:
            return ["exec", "--profile", "builder", "--full-auto"]
        if role == AgentRole.SUMMARIZER:
            return ["exec", "--profile", "summarizer"]
        raise ValueError(f"Unknown agent role: {role}")

    def build_command(self, args: List[str], prompt: str) -> List[str]:
        """Full argv: executable, role args, the prompt, then the repo-check flag."""
        return [self.executable, *args, prompt, SKIP_GIT_REPO_CHECK_FLAG]

    def build_environment(
        self, cwd: Path, base_env: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        """Build the child environment.

        When ``<cwd>/.blueprints/bin`` exists it is prepended to the child's PATH
        and the real cargo (resolved from the parent PATH) is exported so the
        wrapper can delegate to it. ``base_env`` itself is never modified.
        """
        if base_env is None:
            base_env = os.environ
        env = dict(base_env)

        wrapper_dir = Path(cwd) / WRAPPER_DIR
        if not wrapper_dir.exists():
            return env

        self._ensure_executable(wrapper_dir / TOOLCHAIN)

        old_path = base_env.get("PATH")
        if old_path:
            env["PATH"] = f"{wrapper_dir}{os.pathsep}{old_path}"
            real_toolchain = shutil.which(TOOLCHAIN, path=old_path)
            if real_toolchain:
                env[REAL_TOOLCHAIN_ENV] = real_toolchain
        else:
            env["PATH"] = str(wrapper_dir)

        logger.debug(f"Prepended tool wrappers to agent PATH: {wrapper_dir}")
        return env

    @staticmethod
    def _ensure_executable(path: Path) -> None:
        """Best-effort: add exec bits to a wrapper that lacks them."""
        if os.name != "posix" or not path.is_file():
            return
        try:
            mode = path.stat().st_mode
            if mode & 0o111 == 0:
                path.chmod(stat.S_IMODE(mode) | 0o755)
        except OSError as e:
            logger.warning(f"Failed to mark tool wrapper {path} executable: {e}")

    @staticmethod
    def _clean_terminal_output(output: str) -> str:
        """Strip control sequences and normalize line endings for parsing."""
        output = re.sub(OSC_PATTERN, "", output)
        output = re.sub(ANSI_CODE_PATTERN, "", output)
        return output.replace("\r\n", "\n").replace("\r", "\n")

    @staticmethod
    def tail_excerpt(text: str, max_lines: int = 8, max_chars_per_line: int = 160) -> str:
        """Build a compact single-line tail excerpt for logs."""
        lines = [line.rstrip() for line in text.splitlines() if line.strip()]
        if not lines:
            return ""

        clipped_lines = []
        for line in lines[-max_lines:]:
            if len(line) > max_chars_per_line:
                clipped_lines.append(f"{line[:max_chars_per_line]}...")
            else:
                clipped_lines.append(line)

        return " | ".join(clipped_lines)

    def extract_reply(self, output: str) -> Optional[str]:
        """Extract Codex's final reply from ``codex exec`` output.

        Takes the text after the last ``codex`` speaker line, skips leading blank
        lines and stops at the first metadata banner (token usage, session id...).
        Returns None when there is no speaker line or no reply text.
        """
        clean_output = self._clean_terminal_output(output)

        matches = list(re.finditer(SPEAKER_LINE_PATTERN, clean_output, re.MULTILINE))
        if not matches:
            return None

        after = clean_output[matches[-1].end() :]
        message_lines = []
        seen_content = False
        for line in after.split("\n"):
            trimmed = line.strip()
            if not trimmed and not seen_content:
                continue
            if trimmed.startswith(REPLY_METADATA_PREFIXES):
                break
            message_lines.append(line)
            seen_content = True

        reply = "\n".join(message_lines).strip()
        return reply or None
