"""
Validation framework for the resolve-issue scenario.

TestValidator collects passed/failed check messages; ResolveIssueValidator
adds the checks that observe what the agent did in GitHub and Linear.
"""

from typing import Callable, List, Optional, Tuple

from .errors import HarnessError, PollTimeoutError
from .github import CheckInfo, GitHubCLI, PRInfo
from .linear import LinearClient
from .poll import wait_until
from .runner import AgentRunResult

REVIEW_MARKERS = ["Summary", "Verdict", "Approve", "LGTM", "approve"]
CHECKS_INTERVAL_MS = 15_000
CHECKS_TIMEOUT_MS = 300_000


class TestValidator:
    """Base validator that records check outcomes.

    Usage:
        validator = TestValidator()
        validator.check(exit_code == 0, "Agent exited cleanly", "Agent exited with 1")
        passed, failed = validator.results()
    """

    __test__ = False

    def __init__(self):
        self.passed: List[str] = []
        self.failed: List[str] = []

    def check(self, condition: bool, passed_msg: str, failed_msg: str) -> 'TestValidator':
        if condition:
            self.passed.append(f"✓ {passed_msg}")
        else:
            self.failed.append(f"✗ {failed_msg}")
        return self

    def check_patterns_present(self, patterns: List[str], text: str,
                               description: str = None) -> 'TestValidator':
        """Pass if any pattern occurs in text.

        Returns:
            self for chaining
        """
        found = [p for p in patterns if p in text]
        desc = f" ({description})" if description else ""
        if found:
            self.passed.append(f"✓ Found patterns{desc}: {', '.join(found)}")
        else:
            self.failed.append(f"✗ Missing patterns{desc}: {', '.join(patterns)}")
        return self

    def results(self) -> Tuple[List[str], List[str]]:
        """Get validation results.

        Returns:
            Tuple of (passed_validations, failed_validations)
        """
        return self.passed, self.failed


class ResolveIssueValidator(TestValidator):
    """Checks the externally visible effects of one resolve-issue run."""

    def __init__(self, github: GitHubCLI, linear: LinearClient, repo: str,
                 identifier: str, issue_id: str,
                 wait: Callable = wait_until):
        super().__init__()
        self.github = github
        self.linear = linear
        self.repo = repo
        self.identifier = identifier
        self.issue_id = issue_id
        self.wait = wait

    def _find_pr(self) -> Optional[PRInfo]:
        return self.github.find_pr_for_identifier(self.repo, self.identifier)

    def check_agent_exit(self, result: AgentRunResult) -> 'ResolveIssueValidator':
        """Exit code 0, and no error flag when a result record was found."""
        output = result.json_output
        if result.exit_code != 0:
            self.failed.append(f"✗ Agent exited with code {result.exit_code}")
        elif output is not None and output.is_error:
            self.failed.append(f"✗ Agent reported an error: {output.subtype or output.result[:200]}")
        else:
            self.passed.append("✓ Agent completed without error")
        return self

    def check_branch_created(self) -> 'ResolveIssueValidator':
        return self.check(
            self.github.branch_exists_on_remote(self.repo, self.identifier),
            f"Branch for {self.identifier} exists on {self.repo}",
            f"No branch for {self.identifier} on {self.repo}",
        )

    def check_pr_opened(self) -> 'ResolveIssueValidator':
        pr = self._find_pr()
        return self.check(
            pr is not None,
            f"PR opened: #{pr.number} {pr.head_ref_name}" if pr else "",
            f"No open PR with a head branch for {self.identifier}",
        )

    def check_ci_completed(self) -> 'ResolveIssueValidator':
        """Wait for at least one check on the PR and for none to be pending."""
        pr = self._find_pr()
        if pr is None:
            self.failed.append("✗ CI checks not verified (no PR)")
            return self

        def settled(checks: List[CheckInfo]) -> bool:
            return bool(checks) and not any(c.is_pending for c in checks)

        try:
            checks = self.wait(
                lambda: self.github.get_pr_checks(self.repo, pr.number),
                settled,
                interval_ms=CHECKS_INTERVAL_MS,
                timeout_ms=CHECKS_TIMEOUT_MS,
                label="CI checks to complete",
            )
        except PollTimeoutError as e:
            self.failed.append(f"✗ {e}")
            return self

        summary = ", ".join(f"{c.name}={c.state}" for c in checks)
        self.passed.append(f"✓ CI checks completed: {summary}")
        return self

    def check_review_comment(self) -> 'ResolveIssueValidator':
        pr = self._find_pr()
        if pr is None:
            self.failed.append("✗ Review comment not verified (no PR)")
            return self

        comments = self.github.get_pr_comments(self.repo, pr.number)
        review = next((c for c in comments
                       if any(marker in c.body for marker in REVIEW_MARKERS)), None)
        if review:
            self.passed.append(f"✓ PR has a review comment from {review.author or 'unknown'}")
        else:
            reviews = self.github.get_pr_review_count(self.repo, pr.number)
            self.failed.append(
                f"✗ No review comment on PR #{pr.number} "
                f"({len(comments)} comment(s), {reviews} review(s))")
        return self

    def check_issue_interacted(self) -> 'ResolveIssueValidator':
        """The issue moved to a started state or received a comment."""
        try:
            state = self.linear.get_issue_state(self.issue_id)
            comments = self.linear.get_issue_comments(self.issue_id)
        except HarnessError as e:
            self.failed.append(f"✗ Could not read Linear issue {self.identifier}: {e}")
            return self

        started = state.type == "started" or state.name == "In Progress"
        return self.check(
            started or bool(comments),
            f"Linear issue touched (state: {state.name}, comments: {len(comments)})",
            f"Linear issue untouched (state: {state.name} / {state.type}, comments: 0)",
        )

    def check_issue_not_done(self) -> 'ResolveIssueValidator':
        """Completion happens on merge, never by the agent."""
        try:
            state = self.linear.get_issue_state(self.issue_id)
        except HarnessError as e:
            self.failed.append(f"✗ Could not read Linear issue {self.identifier}: {e}")
            return self

        return self.check(
            state.type != "completed",
            f"Linear issue not marked done (state: {state.name})",
            f"Linear issue was set to {state.name}",
        )

    def check_all(self, result: AgentRunResult) -> 'ResolveIssueValidator':
        return (self.check_agent_exit(result)
                .check_branch_created()
                .check_pr_opened()
                .check_ci_completed()
                .check_review_comment()
                .check_issue_interacted()
                .check_issue_not_done())
