"""Implement workflow: checklist-driven building gated by cargo quality checks."""

import logging
from pathlib import Path
from typing import List, Optional

from blueprints.constants import (
    BUILD_MANIFEST,
    DEFAULT_CHECKLIST_PATH,
    HOST_CI_RESULTS_VAR,
    REMAINING_WORK_VAR,
)
from blueprints.exceptions import (
    AgentReportedError,
    CiBlockedError,
    IterationLimitError,
    ProtocolError,
)
from blueprints.models.agent import AgentRole
from blueprints.models.ci import CiOutcome, CiState, CiStatus
from blueprints.models.control import ControlKind
from blueprints.services.ci_service import compute_host_ci_results, run_ci_checks
from blueprints.services.workflow_service import BaseWorkflow, CycleOutcome
from blueprints.utils.checklist import enumerate_unchecked_items, format_enumerated
from blueprints.utils.protocol import classify_output, extract_continue_payload

logger = logging.getLogger(__name__)

CI_FIXER_PROMPT = "Fix the following CI errors: {feedback}"


class ImplementWorkflow(BaseWorkflow):
    """Implement a delivery plan for one cargo package.

    The reviewer is the authority on completion, but its sign-off is only
    accepted once the checklist has no unchecked items and, when a manifest is
    present, every quality gate passes. Failing gates are handed to a fixer
    agent until they pass or the builder budget runs out.
    """

    name = "implement"
    reviewer_role = AgentRole.IMPLEMENT_REVIEWER
    builder_role = AgentRole.IMPLEMENT_BUILDER

    def __init__(
        self,
        reviewer_template: str,
        builder_template: str,
        target: str,
        checklist_path: Path = DEFAULT_CHECKLIST_PATH,
        manifest_path: Path = Path(BUILD_MANIFEST),
        **kwargs,
    ):
        super().__init__(reviewer_template, builder_template, **kwargs)
        self.target = target
        self.checklist_path = Path(checklist_path)
        self.manifest_path = Path(manifest_path)
        self.ci_state = CiState()
        self.has_manifest = False

    def run(self) -> None:
        self.has_manifest = self.manifest_path.exists()
        self.ci_state = CiState()
        super().run()

    def _remaining_work(self) -> Optional[str]:
        items: List[str] = enumerate_unchecked_items(self.checklist_path)
        if not items:
            return None
        remaining = format_enumerated(items)
        logger.info(f"Checklist still has {len(items)} unchecked item(s):\n{remaining}")
        return remaining

    def _review_cycle(self) -> CycleOutcome:
        host_ci_results = compute_host_ci_results(self.ci_state, self.has_manifest)
        prompt = self.reviewer_template.replace(HOST_CI_RESULTS_VAR, host_ci_results)

        reviewer = self._invoke(self.reviewer_role, "reviewer", prompt)
        signal = classify_output(reviewer.stdout, self.tokens)

        if signal.kind == ControlKind.FAILED:
            raise AgentReportedError(f"reviewer reported {self.tokens.error}")

        if signal.kind == ControlKind.DONE:
            remaining = self._remaining_work()
            if remaining is None:
                if not self.has_manifest:
                    return self._signed_off("Reviewer sign-off detected")

                self.ci_state.failure_output = ""
                outcome = run_ci_checks(self.target)
                if outcome.status == CiStatus.SUCCESS:
                    self.ci_state.record(outcome.summary)
                    return self._signed_off(
                        "Reviewer sign-off detected; cargo fmt/clippy/check/nextest all passed"
                    )
                if outcome.status == CiStatus.FAILURES:
                    self._repair(outcome)
                    logger.info("CI errors resolved; rerunning reviewer for final sign-off")
                    return CycleOutcome.REVIEW_AGAIN

                # Toolchain missing: hand the problem back as remaining work
                self.ci_state.record(outcome.summary, outcome.feedback)
                remaining = outcome.feedback
            payload = remaining
        elif signal.kind == ControlKind.CONTINUE:
            payload = signal.payload
        else:
            raise ProtocolError(
                f"reviewer must emit {self.tokens.continue_token} with remaining work list; "
                "got no control token"
            )

        if not payload:
            raise ProtocolError("reviewer emitted no actionable feedback between control tokens")

        self._build(payload)
        return CycleOutcome.NEXT_CYCLE

    def _build(self, remaining_work: str) -> None:
        for _ in range(self.config.max_builder_iters):
            prompt = self.builder_template.replace(REMAINING_WORK_VAR, remaining_work)
            builder = self._invoke(self.builder_role, "builder", prompt)
            last_line = builder.last_stdout_line.strip()

            if last_line == self.tokens.error:
                raise AgentReportedError(f"builder reported {self.tokens.error}")

            if last_line == self.tokens.completed:
                # Only the checklist decides whether the step is really finished
                remaining = self._remaining_work()
                if remaining is None:
                    return
                remaining_work = remaining
                self._sleep()
                continue

            next_work = extract_continue_payload(builder.stdout, self.tokens)
            if next_work is not None:
                if next_work:
                    remaining_work = next_work
                self._sleep()
                continue

            return

        raise self._builder_limit()

    def _repair(self, outcome: CiOutcome) -> None:
        """Run the CI fixer until every gate passes.

        Raises:
            CiBlockedError: If cargo disappears while repairing.
            IterationLimitError: If MAX_BUILDER_ITERS fixer attempts do not fix the gates.
        """
        summary, feedback = outcome.summary, outcome.feedback

        for attempt in range(1, self.config.max_builder_iters + 1):
            self.ci_state.record(summary, feedback)
            logger.info(f"CI fixer attempt {attempt}/{self.config.max_builder_iters}")
            self._invoke(AgentRole.CI_FIXER, "ci fixer", CI_FIXER_PROMPT.format(feedback=feedback))
            self._sleep()

            result = run_ci_checks(self.target)
            if result.status == CiStatus.SUCCESS:
                self.ci_state.record(result.summary)
                return
            if result.status == CiStatus.TOOLCHAIN_MISSING:
                self.ci_state.record(result.summary, result.feedback)
                raise CiBlockedError("CI blocked: cargo command not found on PATH.")

            summary, feedback = result.summary, result.feedback

        raise IterationLimitError("ci fixer loop", "MAX_BUILDER_ITERS", self.config.max_builder_iters)
