"""Agent role models."""

from enum import Enum


class AgentRole(str, Enum):
    """Invocation profiles of the Codex agent."""

    IMPLEMENT_REVIEWER = "implement_reviewer"
    IMPLEMENT_BUILDER = "implement_builder"
    DELIVERY_REVIEWER = "delivery_reviewer"
    DELIVERY_BUILDER = "delivery_builder"
    TESTS_REVIEWER = "tests_reviewer"
    TESTS_BUILDER = "tests_builder"
    CI_FIXER = "ci_fixer"
    SUMMARIZER = "summarizer"
