"""Unit tests for the implement workflow."""

import logging
from unittest.mock import call, patch

import pytest

from blueprints.constants import COMPLETED_TOKEN, CONTINUE_TOKEN, ERROR_TOKEN
from blueprints.exceptions import (
    AgentProcessError,
    AgentReportedError,
    CiBlockedError,
    IterationLimitError,
    ProtocolError,
)
from blueprints.models.ci import CiMode, CiOutcome, CiStatus
from blueprints.models.workflow import WorkflowConfig
from blueprints.services.ci_service import TOOLCHAIN_MISSING_FEEDBACK, TOOLCHAIN_MISSING_SUMMARY
from blueprints.services.implement_service import ImplementWorkflow

from agent_doubles import agent_output

REVIEWER_TEMPLATE = "Review. Signal ${COMPLETED_TOKEN} when done.\nCI:\n${HOST_CI_RESULTS}"
BUILDER_TEMPLATE = "Build:\n${REVIEWER_FEEDBACK_OR_REMAINING_WORK}"

PASS_SUMMARY = "cargo_fmt_check=pass\ncargo_clippy=pass\ncargo_check=pass\ncargo_nextest=pass"
FAIL_SUMMARY = "cargo_fmt_check=pass\ncargo_clippy=pass\ncargo_check=fail\ncargo_nextest=pass"
FAIL_FEEDBACK = "1) CI:cargo_check failed (exit 101).\nerror[E0308]: mismatched types"

CI_PASS = CiOutcome(CiStatus.SUCCESS, PASS_SUMMARY)
CI_FAIL = CiOutcome(CiStatus.FAILURES, FAIL_SUMMARY, FAIL_FEEDBACK)
CI_MISSING = CiOutcome(CiStatus.TOOLCHAIN_MISSING, TOOLCHAIN_MISSING_SUMMARY, TOOLCHAIN_MISSING_FEEDBACK)


def make_workflow(tmp_path, **overrides):
    options = dict(
        target="parser",
        checklist_path=tmp_path / "05-delivery-plan.md",
        manifest_path=tmp_path / "Cargo.toml",
        config=WorkflowConfig(loop_sleep=0.5),
        chime=False,
    )
    options.update(overrides)
    return ImplementWorkflow(REVIEWER_TEMPLATE, BUILDER_TEMPLATE, **options)


def write_checklist(tmp_path, text):
    (tmp_path / "05-delivery-plan.md").write_text(text)


class TestImplementSignOff:
    @patch("blueprints.services.workflow_service.play_chime")
    def test_completed_without_checklist_or_manifest(self, mock_chime, agent, tmp_path):
        agent.script("reviewer", f"  {COMPLETED_TOKEN}\n")

        make_workflow(tmp_path, chime=True).run()

        assert agent.count("reviewer") == 1
        assert agent.count("builder") == 0
        mock_chime.assert_called_once()

    def test_reviewer_prompt_has_tokens_and_ci_placeholder_filled(self, agent, tmp_path):
        agent.script("reviewer", COMPLETED_TOKEN)

        make_workflow(tmp_path).run()

        assert agent.prompts("reviewer") == [
            f"Review. Signal {COMPLETED_TOKEN} when done.\nCI:\nnone (no Cargo.toml)"
        ]

    def test_summarize_flag_passed_to_every_invocation(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A", COMPLETED_TOKEN)
        agent.script("builder", "done")

        make_workflow(tmp_path, summarize=True).run()

        assert all(summarize for _, _, summarize in agent.calls)


class TestImplementChecklist:
    def test_unchecked_items_override_reviewer_sign_off(self, agent, tmp_path):
        write_checklist(tmp_path, "- [x] done\n- [ ] add tests\n- [ ] update docs\n")

        def builder_finishes_everything():
            write_checklist(tmp_path, "- [x] done\n- [x] add tests\n- [x] update docs\n")
            return "Added tests and docs.\n"

        agent.script("reviewer", COMPLETED_TOKEN, COMPLETED_TOKEN)
        agent.script("builder", builder_finishes_everything)

        make_workflow(tmp_path).run()

        assert agent.prompts("builder") == ["Build:\n1) add tests\n2) update docs"]
        assert agent.count("reviewer") == 2

    def test_builder_completion_rechecks_checklist(self, agent, tmp_path):
        write_checklist(tmp_path, "- [ ] write docs\n")

        def builder_checks_off():
            write_checklist(tmp_path, "- [x] write docs\n")
            return f"Wrote docs.\n{COMPLETED_TOKEN}\n"

        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A\n", COMPLETED_TOKEN)
        agent.script("builder", f"Fixed A.\n{COMPLETED_TOKEN}\n", builder_checks_off)

        make_workflow(tmp_path).run()

        assert agent.prompts("builder") == ["Build:\nfix A", "Build:\n1) write docs"]
        agent.sleep.assert_any_call(0.5)


class TestImplementBuilderLoop:
    def test_builder_continue_replaces_payload(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A\n", COMPLETED_TOKEN)
        agent.script("builder", f"progress\n{CONTINUE_TOKEN}\nnow fix B\n", f"{CONTINUE_TOKEN}\n", "done")

        make_workflow(tmp_path).run()

        assert agent.prompts("builder") == ["Build:\nfix A", "Build:\nnow fix B", "Build:\nnow fix B"]

    def test_builder_cap_of_one(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A\n")
        agent.script("builder", f"{CONTINUE_TOKEN}\nmore\n")

        with pytest.raises(IterationLimitError, match="builder loop exceeded MAX_BUILDER_ITERS=1"):
            make_workflow(tmp_path, config=WorkflowConfig(max_builder_iters=1, loop_sleep=0)).run()

        assert agent.count("builder") == 1

    def test_builder_error_on_last_line(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A\n")
        agent.script("builder", f"cannot proceed\n{ERROR_TOKEN}\n")

        with pytest.raises(AgentReportedError, match=f"builder reported {ERROR_TOKEN}"):
            make_workflow(tmp_path).run()

    def test_builder_non_zero_exit(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A\n")
        agent.script("builder", agent_output("crash", returncode=-9))

        with pytest.raises(
            AgentProcessError, match="builder codex exec failed \\(exit terminated by signal\\)"
        ):
            make_workflow(tmp_path).run()


class TestImplementReviewer:
    def test_reviewer_error(self, agent, tmp_path):
        agent.script("reviewer", f"\n{ERROR_TOKEN}\n")

        with pytest.raises(AgentReportedError, match=f"reviewer reported {ERROR_TOKEN}"):
            make_workflow(tmp_path).run()

    def test_reviewer_without_control_token(self, agent, tmp_path):
        agent.script("reviewer", "Looks mostly fine to me.")

        with pytest.raises(ProtocolError, match="with remaining work list; got no control token"):
            make_workflow(tmp_path).run()

    def test_reviewer_empty_payload(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\n\n")

        with pytest.raises(ProtocolError, match="no actionable feedback"):
            make_workflow(tmp_path).run()

        assert agent.count("builder") == 0

    def test_reviewer_non_zero_exit(self, agent, tmp_path):
        agent.script("reviewer", agent_output("", returncode=2))

        with pytest.raises(AgentProcessError, match="reviewer codex exec failed \\(exit 2\\)"):
            make_workflow(tmp_path).run()

    def test_review_cycle_cap(self, agent, tmp_path):
        agent.script("reviewer", f"{CONTINUE_TOKEN}\nfix A", f"{CONTINUE_TOKEN}\nfix B")
        agent.script("builder", "ok", "ok")

        with pytest.raises(IterationLimitError, match="review cycles exceeded MAX_REVIEWER_ITERS=2"):
            make_workflow(tmp_path, config=WorkflowConfig(max_reviewer_iters=2, loop_sleep=0)).run()

        assert agent.count("reviewer") == 2

    def test_zero_review_cap_fails_fast(self, agent, tmp_path):
        with pytest.raises(IterationLimitError, match="MAX_REVIEWER_ITERS=0"):
            make_workflow(tmp_path, config=WorkflowConfig(max_reviewer_iters=0)).run()

        assert agent.calls == []


@patch("blueprints.services.implement_service.run_ci_checks")
class TestImplementQualityGates:
    def test_sign_off_after_gates_pass(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        mock_ci.return_value = CI_PASS
        agent.script("reviewer", COMPLETED_TOKEN)

        workflow = make_workflow(tmp_path)
        workflow.run()

        mock_ci.assert_called_once_with("parser")
        assert workflow.ci_state.mode == CiMode.KNOWN
        assert workflow.ci_state.last_summary == PASS_SUMMARY
        assert agent.prompts("reviewer")[0].endswith(
            "CI:\ncargo_fmt_check=pending\ncargo_clippy=pending\ncargo_check=pending\ncargo_nextest=pending"
        )

    def test_repair_then_review_again_without_spending_a_cycle(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        mock_ci.side_effect = [CI_FAIL, CI_PASS, CI_PASS]
        agent.script("reviewer", COMPLETED_TOKEN, COMPLETED_TOKEN)
        agent.script("fixer", "Fixed the type mismatch.")

        make_workflow(tmp_path, config=WorkflowConfig(max_reviewer_iters=1, loop_sleep=0.5)).run()

        assert agent.prompts("fixer") == [f"Fix the following CI errors: {FAIL_FEEDBACK}"]
        assert agent.prompts("reviewer")[1].endswith(f"CI:\n{PASS_SUMMARY}")
        assert mock_ci.call_count == 3
        assert agent.sleep.call_args_list == [call(0.5)]

    def test_uncounted_review_pass_is_logged(self, mock_ci, agent, tmp_path, caplog):
        caplog.set_level(logging.DEBUG, logger="blueprints")
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        mock_ci.side_effect = [CI_FAIL, CI_PASS, CI_PASS]
        agent.script("reviewer", COMPLETED_TOKEN, COMPLETED_TOKEN)
        agent.script("fixer", "Fixed the type mismatch.")

        make_workflow(tmp_path, config=WorkflowConfig(max_reviewer_iters=3, loop_sleep=0)).run()

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
        assert any("without spending a review cycle (0/3 used)" in m for m in messages)

    def test_repair_reruns_fixer_with_latest_feedback(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        second_failure = CiOutcome(CiStatus.FAILURES, FAIL_SUMMARY, "1) CI:cargo_check failed (exit 101).\nnew error")
        mock_ci.side_effect = [CI_FAIL, second_failure, CI_PASS, CI_PASS]
        agent.script("reviewer", COMPLETED_TOKEN, COMPLETED_TOKEN)
        agent.script("fixer", "try 1", "try 2")

        make_workflow(tmp_path).run()

        assert agent.prompts("fixer")[1].endswith("new error")

    def test_repair_exhausted(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        mock_ci.return_value = CI_FAIL
        agent.script("reviewer", COMPLETED_TOKEN)
        agent.script("fixer", "try 1", "try 2")

        with pytest.raises(IterationLimitError, match="ci fixer loop exceeded MAX_BUILDER_ITERS=2"):
            make_workflow(tmp_path, config=WorkflowConfig(max_builder_iters=2, loop_sleep=0)).run()

        assert agent.count("fixer") == 2

    def test_toolchain_lost_during_repair(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        mock_ci.side_effect = [CI_FAIL, CI_MISSING]
        agent.script("reviewer", COMPLETED_TOKEN)
        agent.script("fixer", "try 1")

        workflow = make_workflow(tmp_path)
        with pytest.raises(CiBlockedError, match="CI blocked: cargo command not found on PATH."):
            workflow.run()

        assert workflow.ci_state.last_summary == TOOLCHAIN_MISSING_SUMMARY
        assert agent.count("fixer") == 1

    def test_toolchain_missing_at_sign_off_becomes_remaining_work(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        mock_ci.side_effect = [CI_MISSING, CI_PASS]
        agent.script("reviewer", COMPLETED_TOKEN, COMPLETED_TOKEN)
        agent.script("builder", "Installed the toolchain.")

        make_workflow(tmp_path).run()

        assert agent.prompts("builder") == [f"Build:\n{TOOLCHAIN_MISSING_FEEDBACK}"]
        second_review = agent.prompts("reviewer")[1]
        assert "cargo_fmt_check=blocked" in second_review
        assert f"CI_FAILURE_OUTPUT\n{TOOLCHAIN_MISSING_FEEDBACK}" in second_review

    def test_checklist_checked_before_gates(self, mock_ci, agent, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        write_checklist(tmp_path, "- [ ] add tests\n")
        agent.script("reviewer", COMPLETED_TOKEN)
        agent.script("builder", "working on it")

        with pytest.raises(IterationLimitError):
            make_workflow(tmp_path, config=WorkflowConfig(max_reviewer_iters=1, loop_sleep=0)).run()

        mock_ci.assert_not_called()
