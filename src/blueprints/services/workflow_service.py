"""Reviewer/builder workflow loops.

A workflow alternates one reviewer invocation with a bounded run of builder
invocations until the reviewer signs off. ``BaseWorkflow`` owns the outer
review cycle, the iteration budget and agent invocation; subclasses decide
what a review means.
"""

import logging
import time
from enum import Enum
from typing import Optional

from blueprints.constants import (
    IMPLEMENTATION_PLAN_VAR,
    PLAN_END_MARKER,
    PLAN_START_MARKER,
    REVIEWER_FEEDBACK_VAR,
)
from blueprints.exceptions import (
    AgentProcessError,
    AgentReportedError,
    IterationLimitError,
    ProtocolError,
)
from blueprints.models.agent import AgentRole
from blueprints.models.control import ControlKind, Tokens
from blueprints.models.process import CommandOutput
from blueprints.models.workflow import WorkflowConfig
from blueprints.providers.codex import CodexProvider
from blueprints.services.process_service import run_agent
from blueprints.utils.notify import play_chime
from blueprints.utils.protocol import classify_output, extract_continue_payload, extract_plan

logger = logging.getLogger(__name__)


class CycleOutcome(str, Enum):
    """What the outer loop does after one review cycle."""

    SIGNED_OFF = "signed_off"
    NEXT_CYCLE = "next_cycle"
    # Re-run the reviewer immediately without spending a review cycle
    REVIEW_AGAIN = "review_again"


class BaseWorkflow:
    """Shared outer loop for every reviewer/builder workflow."""

    name = "workflow"
    reviewer_role: AgentRole
    builder_role: AgentRole

    def __init__(
        self,
        reviewer_template: str,
        builder_template: str,
        config: Optional[WorkflowConfig] = None,
        *,
        summarize: bool = False,
        provider: Optional[CodexProvider] = None,
        tokens: Optional[Tokens] = None,
        chime: bool = True,
    ):
        self.tokens = tokens or Tokens()
        self.reviewer_template = self.tokens.apply(reviewer_template)
        self.builder_template = self.tokens.apply(builder_template)
        self.config = config or WorkflowConfig()
        self.summarize = summarize
        self.provider = provider or CodexProvider()
        self.chime = chime

    def run(self) -> None:
        """Drive review cycles until sign-off.

        Raises:
            IterationLimitError: If MAX_REVIEWER_ITERS review cycles pass without sign-off.
            BlueprintsError: Any fatal condition raised by a review cycle.
        """
        logger.info(f"Starting {self.name} workflow")
        review_cycle = 0

        while True:
            if review_cycle >= self.config.max_reviewer_iters:
                raise IterationLimitError(
                    "review cycles", "MAX_REVIEWER_ITERS", self.config.max_reviewer_iters
                )
            review_cycle += 1

            outcome = self._review_cycle()
            if outcome == CycleOutcome.SIGNED_OFF:
                return
            if outcome == CycleOutcome.REVIEW_AGAIN:
                review_cycle -= 1
                logger.debug(
                    f"Re-running {self.name} reviewer after repair without spending a review cycle "
                    f"({review_cycle}/{self.config.max_reviewer_iters} used)"
                )
                continue

            self._sleep()

    def _review_cycle(self) -> CycleOutcome:
        raise NotImplementedError

    def _invoke(self, role: AgentRole, label: str, prompt: str) -> CommandOutput:
        """Run one agent role and fail on a non-zero exit."""
        logger.info(f"Running {label} agent")
        output = run_agent(
            self.provider.role_args(role),
            prompt,
            summarize=self.summarize,
            provider=self.provider,
        )
        logger.debug(f"{label} output tail: {self.provider.tail_excerpt(output.stdout)}")
        if not output.success:
            raise AgentProcessError(f"{label} codex exec failed (exit {output.describe_exit()})")
        return output

    def _sleep(self) -> None:
        time.sleep(self.config.loop_sleep)

    def _signed_off(self, message: str) -> CycleOutcome:
        logger.info(message)
        if self.chime:
            play_chime()
        return CycleOutcome.SIGNED_OFF

    def _builder_limit(self) -> IterationLimitError:
        return IterationLimitError("builder loop", "MAX_BUILDER_ITERS", self.config.max_builder_iters)


class DeliveryWorkflow(BaseWorkflow):
    """Reviewer feedback drives the builder until the reviewer signs off."""

    name = "delivery"
    reviewer_role = AgentRole.DELIVERY_REVIEWER
    builder_role = AgentRole.DELIVERY_BUILDER

    def _review_cycle(self) -> CycleOutcome:
        reviewer = self._invoke(self.reviewer_role, "reviewer", self.reviewer_template)
        signal = classify_output(reviewer.stdout, self.tokens)

        if signal.kind == ControlKind.FAILED:
            raise AgentReportedError(f"reviewer reported {self.tokens.error}")
        if signal.kind == ControlKind.DONE:
            return self._signed_off("Reviewer sign-off detected")
        if signal.kind == ControlKind.UNRECOGNIZED:
            raise ProtocolError(
                f"reviewer must emit {self.tokens.continue_token} with actionable feedback"
            )
        if not signal.payload:
            raise ProtocolError("reviewer emitted no actionable feedback between control tokens")

        self._build(signal.payload)
        return CycleOutcome.NEXT_CYCLE

    def _build(self, feedback: str) -> None:
        prompt = self.builder_template.replace(REVIEWER_FEEDBACK_VAR, feedback)

        for _ in range(self.config.max_builder_iters):
            builder = self._invoke(self.builder_role, "builder", prompt)
            last_line = builder.last_stdout_line.strip()

            if last_line == self.tokens.error:
                raise AgentReportedError(f"builder reported {self.tokens.error}")
            if last_line == self.tokens.completed:
                return

            # The builder asked for another pass on the same feedback
            if extract_continue_payload(builder.stdout, self.tokens) is not None:
                self._sleep()
                continue
            return

        raise self._builder_limit()


class TestsWorkflow(BaseWorkflow):
    """The reviewer writes a test plan; the builder applies it."""

    __test__ = False  # not a pytest test class

    name = "tests"
    reviewer_role = AgentRole.TESTS_REVIEWER
    builder_role = AgentRole.TESTS_BUILDER

    def _review_cycle(self) -> CycleOutcome:
        reviewer = self._invoke(self.reviewer_role, "reviewer", self.reviewer_template)
        signal = classify_output(reviewer.stdout, self.tokens)

        if signal.kind == ControlKind.FAILED:
            raise AgentReportedError(f"reviewer reported {self.tokens.error}")
        if signal.kind == ControlKind.DONE:
            return self._signed_off("Reviewer sign-off detected")

        plan = extract_plan(reviewer.stdout)
        if plan is None:
            raise ProtocolError("reviewer did not emit a parseable Implementation Plan")
        if not plan.strip():
            raise ProtocolError(
                f"reviewer emitted empty plan between {PLAN_START_MARKER} and {PLAN_END_MARKER}"
            )

        self._build(plan)
        return CycleOutcome.NEXT_CYCLE

    def _build(self, plan: str) -> None:
        prompt = self.builder_template.replace(IMPLEMENTATION_PLAN_VAR, plan)

        for _ in range(self.config.max_builder_iters):
            builder = self._invoke(self.builder_role, "builder", prompt)
            output = builder.stdout.strip()

            if output == self.tokens.error:
                raise AgentReportedError(f"builder reported {self.tokens.error}")
            if output == self.tokens.continue_token:
                self._sleep()
                continue
            # COMPLETED or no control token: the plan was applied
            return

        raise self._builder_limit()
