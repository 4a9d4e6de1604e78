"""GitHub operations through the ``gh`` and ``git`` CLIs.

Read operations (PR lists, comments, checks, branches) are called from inside
polling loops, so they never raise: any failure degrades to an empty result
and the caller keeps waiting.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from .commands import run_command
from .errors import HarnessError

console = Console()

PR_FIELDS = "number,title,state,headRefName,url"
PR_LIST_LIMIT = 50


@dataclass
class PRInfo:
    number: int
    title: str
    state: str
    head_ref_name: str
    url: str

    @classmethod
    def from_dict(cls, data: dict) -> "PRInfo":
        return cls(
            number=int(data["number"]),
            title=data.get("title", ""),
            state=data.get("state", ""),
            head_ref_name=data.get("headRefName", ""),
            url=data.get("url", ""),
        )


@dataclass
class PRComment:
    author: str
    body: str
    created_at: str


@dataclass
class CheckInfo:
    name: str
    state: str
    bucket: str = ""

    @property
    def is_pending(self) -> bool:
        return self.bucket == "pending" or self.state.upper() in ("PENDING", "QUEUED", "IN_PROGRESS")


def matches_identifier(name: str, identifier: str) -> bool:
    """Check whether a branch name refers to an issue identifier.

    Case-insensitive substring test, so ``eng-12`` also matches ``eng-123-other``.
    """
    return identifier.lower() in name.lower()


class GitHubCLI:
    """Wrapper around ``gh`` for test repositories and pull requests."""

    def __init__(self, gh_bin: str = "gh", git_bin: str = "git"):
        self.gh_bin = gh_bin
        self.git_bin = git_bin

    def gh(self, *args: str, cwd: Optional[Path] = None) -> str:
        return run_command([self.gh_bin, *args], cwd=cwd)

    def git(self, *args: str, cwd: Optional[Path] = None) -> str:
        return run_command([self.git_bin, *args], cwd=cwd)

    def _gh_json(self, *args: str, default):
        try:
            return json.loads(self.gh(*args))
        except (HarnessError, ValueError):
            return default

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def create_repo(self, org: str, name: str, local_path: Path) -> str:
        """Create a public remote repo. Nothing is pushed yet.

        Returns:
            Full repository name (``org/name``)
        """
        full_name = f"{org}/{name}"
        self.gh("repo", "create", full_name, "--public", cwd=local_path)
        return full_name

    def push_main(self, full_name: str, local_path: Path) -> None:
        """Add ``origin`` pointing at ``full_name`` and push ``main`` to it."""
        self.git("remote", "add", "origin", f"https://github.com/{full_name}.git", cwd=local_path)
        self.git("push", "-u", "origin", "main", cwd=local_path)

    def delete_test_repo(self, full_name: str) -> bool:
        try:
            self.gh("repo", "delete", full_name, "--yes")
            return True
        except HarnessError as e:
            console.print(f"[yellow]⚠ Warning: Failed to delete repo {full_name}: {e}[/yellow]")
            return False

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    def list_prs(self, repo: str) -> List[PRInfo]:
        data = self._gh_json("pr", "list", "--repo", repo, "--json", PR_FIELDS,
                             "--limit", str(PR_LIST_LIMIT), default=[])
        return [PRInfo.from_dict(pr) for pr in data]

    def find_pr_for_identifier(self, repo: str, identifier: str) -> Optional[PRInfo]:
        return next((pr for pr in self.list_prs(repo)
                     if matches_identifier(pr.head_ref_name, identifier)), None)

    def get_pr_details(self, repo: str, pr_number: int) -> Optional[PRInfo]:
        data = self._gh_json("pr", "view", str(pr_number), "--repo", repo,
                             "--json", PR_FIELDS, default=None)
        return PRInfo.from_dict(data) if data else None

    def get_pr_comments(self, repo: str, pr_number: int) -> List[PRComment]:
        data = self._gh_json("pr", "view", str(pr_number), "--repo", repo,
                             "--json", "comments", default={})
        return [
            PRComment(
                author=(c.get("author") or {}).get("login", ""),
                body=c.get("body", ""),
                created_at=c.get("createdAt", ""),
            )
            for c in data.get("comments", [])
        ]

    def get_pr_review_count(self, repo: str, pr_number: int) -> int:
        data = self._gh_json("pr", "view", str(pr_number), "--repo", repo,
                             "--json", "reviews", default={})
        return len(data.get("reviews", []))

    def get_pr_checks(self, repo: str, pr_number: int) -> List[CheckInfo]:
        # gh exits non-zero while checks are pending or failing but still prints JSON
        cmd = [self.gh_bin, "pr", "checks", str(pr_number), "--repo", repo,
               "--json", "name,state,bucket"]
        try:
            data = json.loads(run_command(cmd, check=False) or "[]")
        except (HarnessError, ValueError):
            return []
        return [CheckInfo(name=c.get("name", ""), state=c.get("state", ""), bucket=c.get("bucket", ""))
                for c in data]

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def list_branches(self, repo: str) -> List[str]:
        try:
            output = self.gh("api", "--paginate", f"repos/{repo}/branches", "--jq", ".[].name")
        except HarnessError:
            return []
        return [line for line in output.splitlines() if line.strip()]

    def branch_exists_on_remote(self, repo: str, pattern: str) -> bool:
        return any(matches_identifier(branch, pattern) for branch in self.list_branches(repo))
