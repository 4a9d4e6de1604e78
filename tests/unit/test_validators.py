from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from harness.errors import PollTimeoutError
from harness.github import CheckInfo, PRComment, PRInfo
from harness.linear import IssueComment, WorkflowState
from harness.poll import wait_until
from harness.runner import AgentOutput, AgentRunResult
from harness.validators import ResolveIssueValidator, TestValidator

from conftest import FakeLinear


@dataclass
class FakeGitHubReads:
    branches: List[str] = field(default_factory=lambda: ["main", "eng-1-add-health"])
    prs: List[PRInfo] = field(default_factory=lambda: [
        PRInfo(number=4, title="Add health", state="OPEN", head_ref_name="eng-1-add-health", url="u")])
    checks: List[List[CheckInfo]] = field(default_factory=lambda: [
        [CheckInfo("test", "SUCCESS", "pass")]])
    comments: List[PRComment] = field(default_factory=lambda: [
        PRComment("pr-reviewer", "## Summary\nLooks good. Verdict: Approve", "2026-01-01")])
    check_calls: int = 0

    def branch_exists_on_remote(self, repo: str, pattern: str) -> bool:
        return "eng-1-add-health" in self.branches and pattern.lower() == "eng-1"

    def find_pr_for_identifier(self, repo: str, identifier: str) -> Optional[PRInfo]:
        return self.prs[0] if self.prs else None

    def get_pr_checks(self, repo: str, number: int) -> List[CheckInfo]:
        self.check_calls += 1
        return self.checks[min(self.check_calls, len(self.checks)) - 1]

    def get_pr_comments(self, repo: str, number: int) -> List[PRComment]:
        return self.comments

    def get_pr_review_count(self, repo: str, number: int) -> int:
        return 0


def fast_wait(fn, predicate, **kwargs):
    kwargs.update(interval_ms=1, timeout_ms=200)
    return wait_until(fn, predicate, **kwargs)


def _result(exit_code: int = 0, is_error: bool = False) -> AgentRunResult:
    return AgentRunResult(
        exit_code=exit_code,
        json_output=AgentOutput(type="result", subtype="success", is_error=is_error),
        raw_stdout="",
        duration_ms=1000,
    )


def _validator(github=None, linear=None) -> ResolveIssueValidator:
    return ResolveIssueValidator(
        github=github or FakeGitHubReads(),
        linear=linear or FakeLinear(
            issue_state=WorkflowState(id="s", name="In Progress", type="started")),
        repo="org/repo",
        identifier="ENG-1",
        issue_id="issue-1",
        wait=fast_wait,
    )


def test_base_validator_collects_results() -> None:
    validator = TestValidator()
    validator.check(True, "ok", "bad").check(False, "ok", "bad")
    validator.check_patterns_present(["Verdict", "LGTM"], "Verdict: Approve", "review")

    passed, failed = validator.results()

    assert passed == ["✓ ok", "✓ Found patterns (review): Verdict"]
    assert failed == ["✗ bad"]


def test_successful_run_passes_all_seven_checks() -> None:
    passed, failed = _validator().check_all(_result()).results()

    assert failed == []
    assert len(passed) == 7


def test_agent_exit_failures() -> None:
    _, failed = _validator().check_agent_exit(_result(exit_code=1)).results()
    assert failed == ["✗ Agent exited with code 1"]

    _, failed = _validator().check_agent_exit(_result(is_error=True)).results()
    assert len(failed) == 1

    missing_record = AgentRunResult(exit_code=0, json_output=None, raw_stdout="", duration_ms=1)
    passed, _ = _validator().check_agent_exit(missing_record).results()
    assert passed == ["✓ Agent completed without error"]


def test_ci_checks_are_polled_until_settled() -> None:
    github = FakeGitHubReads(checks=[
        [],
        [CheckInfo("test", "IN_PROGRESS", "pending")],
        [CheckInfo("test", "FAILURE", "fail")],
    ])

    passed, failed = _validator(github=github).check_ci_completed().results()

    assert failed == []
    assert passed == ["✓ CI checks completed: test=FAILURE"]
    assert github.check_calls == 3


def test_ci_checks_timeout_is_a_failed_check() -> None:
    github = FakeGitHubReads(checks=[[CheckInfo("test", "QUEUED")]])

    _, failed = _validator(github=github).check_ci_completed().results()

    assert failed == [f"✗ {PollTimeoutError('CI checks to complete', 200)}"]


def test_missing_pr_fails_dependent_checks() -> None:
    github = FakeGitHubReads(prs=[])

    _, failed = (_validator(github=github)
                 .check_pr_opened()
                 .check_ci_completed()
                 .check_review_comment()
                 .results())

    assert len(failed) == 3


def test_review_comment_requires_marker() -> None:
    github = FakeGitHubReads(comments=[PRComment("someone", "thanks!", "2026-01-01")])
    _, failed = _validator(github=github).check_review_comment().results()
    assert failed == ["✗ No review comment on PR #4 (1 comment(s), 0 review(s))"]


def test_issue_interaction_accepts_comment_without_state_change() -> None:
    linear = FakeLinear(comments=[IssueComment("Findings", "2026-01-01")])
    passed, failed = _validator(linear=linear).check_issue_interacted().results()
    assert failed == []
    assert len(passed) == 1

    _, failed = _validator(linear=FakeLinear()).check_issue_interacted().results()
    assert len(failed) == 1


def test_issue_must_not_be_completed() -> None:
    done = FakeLinear(issue_state=WorkflowState(id="s", name="Done", type="completed"))
    _, failed = _validator(linear=done).check_issue_not_done().results()
    assert failed == ["✗ Linear issue was set to Done"]
