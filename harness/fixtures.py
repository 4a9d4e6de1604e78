"""Local fixture repository helpers.

Copies the fixture app into ``.test-repos/``, injects environment-specific
files, installs dependencies, and commits the initial scaffold.
"""

import json
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .commands import run_command
from .errors import CommandError, PreconditionError

FIXTURE_APP = "task-manager-api"
TEST_REPOS_DIRNAME = ".test-repos"
INSTALL_COMMAND = ("bun", "install")
LINEAR_MCP_URL = "https://mcp.linear.app/mcp"
DEFAULT_GIT_NAME = "E2E Harness"
DEFAULT_GIT_EMAIL = "e2e-harness@users.noreply.github.com"


def make_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def slug_timestamp(timestamp: str) -> str:
    """Make a timestamp safe for repo, branch and container names."""
    return re.sub(r"[:.]", "-", timestamp)


def fixtures_dir(base_dir: Path) -> Path:
    return base_dir / "fixtures"


def repos_root(base_dir: Path) -> Path:
    return base_dir / TEST_REPOS_DIRNAME


def repo_dir_for(base_dir: Path, timestamp: str) -> Path:
    return repos_root(base_dir) / f"{FIXTURE_APP}-{slug_timestamp(timestamp)}"


def copy_fixture_app(base_dir: Path, repo_dir: Path) -> Path:
    """Copy the fixture app into a fresh repo directory."""
    source = fixtures_dir(base_dir) / FIXTURE_APP
    if not source.exists():
        raise PreconditionError(f"Fixture app not found at {source}")
    repo_dir.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(source, repo_dir)
    return repo_dir


def inject_agent_files(base_dir: Path, repo_dir: Path, database_url: Optional[str] = None):
    """Add CLAUDE.md, the CI workflow and, when a database exists, a .env file."""
    fixtures = fixtures_dir(base_dir)
    shutil.copy2(fixtures / "claude-md" / "CLAUDE.md", repo_dir / "CLAUDE.md")

    workflow_dir = repo_dir / ".github" / "workflows"
    workflow_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(fixtures / "github-actions" / "ci.yml", workflow_dir / "ci.yml")

    if database_url:
        (repo_dir / ".env").write_text(f"DATABASE_URL={database_url}\n", encoding="utf-8")


def install_dependencies(repo_dir: Path, command: Sequence[str] = INSTALL_COMMAND):
    run_command(command, cwd=repo_dir)


def _identity_args(repo_dir: Path) -> list:
    """Fallback commit identity for machines without git user config."""
    try:
        if run_command(["git", "config", "user.email"], cwd=repo_dir):
            return []
    except CommandError:
        pass
    return ["-c", f"user.name={DEFAULT_GIT_NAME}", "-c", f"user.email={DEFAULT_GIT_EMAIL}"]


def init_git_repo(repo_dir: Path, message: str = "Initial scaffold"):
    """Initialise git, commit everything, and make sure the branch is ``main``."""
    run_command(["git", "init"], cwd=repo_dir)
    run_command(["git", "add", "-A"], cwd=repo_dir)
    run_command(["git", *_identity_args(repo_dir), "commit", "-m", message], cwd=repo_dir)
    try:
        run_command(["git", "branch", "-M", "main"], cwd=repo_dir)
    except CommandError:
        pass  # already on main


def write_mcp_config(repo_dir: Path, linear_api_key: str) -> Path:
    """Write .mcp.json pointing the agent at the test Linear workspace.

    Must run after the initial commit: the file carries the API key and has
    to stay out of version history.
    """
    config = {
        "mcpServers": {
            "linear": {
                "type": "http",
                "url": LINEAR_MCP_URL,
                "headers": {
                    "Authorization": f"Bearer {linear_api_key}",
                },
            },
        },
    }
    path = repo_dir / ".mcp.json"
    path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
    return path


def remove_test_repo(repo_path: Path) -> bool:
    """Delete a scaffolded repo. Only paths inside a .test-repos directory are touched.

    Returns:
        True if the directory was removed, False if it was already gone
    """
    if TEST_REPOS_DIRNAME not in repo_path.parts:
        raise PreconditionError(f"Refusing to remove {repo_path} (not under {TEST_REPOS_DIRNAME})")
    if not repo_path.exists():
        return False
    shutil.rmtree(repo_path)
    return True
