"""Fixture setup - provision tracker, database and repository resources.

Each step gates the next. The manifest is written after every step that
creates something, so a crash part way through leaves a manifest that
describes exactly what teardown has to remove.

Library usage:
    from harness.setup import setup_single_issue
    manifest = setup_single_issue("S")
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from rich.console import Console

from .docker_pg import PgContainer, start_postgres
from .env import (
    get_base_dir,
    get_github_test_org,
    get_linear_api_key,
    get_linear_team_key,
)
from .errors import ManifestExistsError, UnknownFixtureError
from .fixtures import (
    INSTALL_COMMAND,
    copy_fixture_app,
    init_git_repo,
    inject_agent_files,
    install_dependencies,
    make_timestamp,
    repo_dir_for,
    slug_timestamp,
    write_mcp_config,
)
from .github import GitHubCLI
from .issues import (
    DEFAULT_SINGLE_ISSUE,
    PROJECT_ISSUES,
    SINGLE_ISSUES,
    IssueDef,
    build_dependency_map,
    build_waves,
)
from .linear import CreatedIssue, LinearClient, Team
from .manifest import Manifest, ManifestIssue, ManifestStore, manifest_store_for

console = Console()

SINGLE_PROJECT_PREFIX = "[Test] resolve-linear-issue"
PROJECT_PREFIX = "[Test] Task Manager REST API"


def ensure_no_manifest(store: ManifestStore):
    if store.exists():
        raise ManifestExistsError(f"{store.filename} already exists. Run teardown first.")


def resolve_team(linear: LinearClient, team_key: Optional[str]) -> Team:
    console.print("Resolving team...")
    team = linear.resolve_team(team_key)
    console.print(f"  Team: {team.key} ({team.id})")
    return team


def start_manifest(linear: LinearClient, store: ManifestStore, team: Team, project_name: str,
                   timestamp: str, repo_dir: Path, content: Optional[str] = None) -> Manifest:
    """Create the tracker project and record it before anything else is created."""
    console.print(f"\nCreating project: {project_name}")
    project_id = linear.create_project(project_name, [team.id], content=content)
    console.print(f"  Project ID: {project_id}")

    manifest = Manifest(
        created_at=timestamp,
        project_id=project_id,
        project_name=project_name,
        team_id=team.id,
        team_key=team.key,
        test_repo_path=str(repo_dir),
    )
    store.write(manifest)
    return manifest


def create_issues(linear: LinearClient, store: ManifestStore, manifest: Manifest,
                  defs: List[IssueDef]) -> Dict[str, CreatedIssue]:
    """Create issues in definition order, all starting in Backlog.

    Each issue is appended to the manifest and persisted as soon as it exists.
    """
    console.print("\nCreating issues...")
    state_id = linear.get_backlog_state_id(manifest.team_id)
    created: Dict[str, CreatedIssue] = {}
    for d in defs:
        issue = linear.create_issue(
            title=d.title,
            description=d.description,
            team_id=manifest.team_id,
            project_id=manifest.project_id,
            priority=d.priority,
            state_id=state_id,
        )
        created[d.key] = issue
        manifest.issues.append(ManifestIssue(
            key=d.key,
            id=issue.id,
            identifier=issue.identifier,
            title=d.title,
            wave=d.wave,
            blocked_by_keys=list(d.blocked_by_keys),
        ))
        store.write(manifest)
        console.print(f"  {d.key}: {issue.identifier} - {d.title}")
    return created


def create_relations(linear: LinearClient, defs: List[IssueDef], created: Dict[str, CreatedIssue]):
    console.print("\nCreating dependency relations...")
    for d in defs:
        for blocker_key in d.blocked_by_keys:
            blocker, blocked = created[blocker_key], created[d.key]
            linear.create_blocking_relation(blocked.id, blocker.id)
            console.print(f"  {blocker.identifier} ({blocker_key}) blocks {blocked.identifier} ({d.key})")


def setup_single_issue(
    issue_key: str = DEFAULT_SINGLE_ISSUE,
    linear: Optional[LinearClient] = None,
    github: Optional[GitHubCLI] = None,
    store: Optional[ManifestStore] = None,
    base_dir: Optional[Path] = None,
    start_db: Callable[[str], PgContainer] = start_postgres,
    install_command: Optional[Sequence[str]] = INSTALL_COMMAND,
    linear_api_key: Optional[str] = None,
) -> Manifest:
    """Provision everything needed for one resolve-issue run.

    Args:
        issue_key: Key into SINGLE_ISSUES (case-insensitive)
        linear: Tracker client (default: built from LINEAR_API_KEY)
        github: GitHub CLI wrapper
        store: Manifest store (default: single-issue manifest under base_dir)
        base_dir: Harness root holding fixtures/ and .test-repos/
        start_db: Starts a database container for issues that need one
        install_command: Dependency install command, or None to skip
        linear_api_key: Key written into .mcp.json (default: LINEAR_API_KEY)

    Returns:
        The final manifest, also persisted to the store

    Raises:
        UnknownFixtureError: if issue_key is not defined
        ManifestExistsError: if a previous fixture was not torn down
    """
    key = issue_key.upper()
    issue_def = SINGLE_ISSUES.get(key)
    if issue_def is None:
        raise UnknownFixtureError(
            f'Unknown issue key "{key}". Available: {", ".join(SINGLE_ISSUES)}')

    base_dir = base_dir or get_base_dir()
    store = store or manifest_store_for("single", base_dir)
    ensure_no_manifest(store)

    linear_api_key = linear_api_key or get_linear_api_key()
    org = get_github_test_org()
    linear = linear or LinearClient.from_env()
    github = github or GitHubCLI()

    # 1. Tracker project and issue
    team = resolve_team(linear, get_linear_team_key())
    timestamp = make_timestamp()
    repo_dir = repo_dir_for(base_dir, timestamp)
    project_name = f"{SINGLE_PROJECT_PREFIX} - {timestamp}"
    manifest = start_manifest(
        linear, store, team, project_name, timestamp, repo_dir,
        content=f"E2E test for resolve-linear-issue skill. Issue {key}: {issue_def.title}",
    )
    create_issues(linear, store, manifest, [issue_def])
    manifest.waves = {str(issue_def.wave): [key]}
    store.write(manifest)
    console.print("  Manifest written (partial - will update as resources are created).")

    # 2. Database
    if issue_def.needs_db:
        console.print("\nStarting PostgreSQL container...")
        pg = start_db(slug_timestamp(timestamp))
        manifest.pg_container_id = pg.container_id
        manifest.database_url = pg.database_url
        store.write(manifest)
        console.print(f"  Container: {pg.container_id}")
        console.print(f"  Port: {pg.port}")
        console.print(f"  URL: {pg.database_url}")

    # 3. Local repo
    console.print("\nInitializing test repo...")
    copy_fixture_app(base_dir, repo_dir)
    inject_agent_files(base_dir, repo_dir, manifest.database_url)
    if install_command:
        console.print("  Installing dependencies...")
        install_dependencies(repo_dir, install_command)
    init_git_repo(repo_dir)
    console.print(f"  Repo: {repo_dir}")

    # 4. Remote repo
    console.print("\nCreating GitHub repo...")
    repo_name = f"test-task-manager-api-{slug_timestamp(timestamp)}"
    manifest.github_repo = github.create_repo(org, repo_name, repo_dir)
    store.write(manifest)
    console.print(f"  GitHub: {manifest.github_repo}")
    github.push_main(manifest.github_repo, repo_dir)
    console.print("  Pushed main")

    # 5. Credentials, after the commit so they never enter history
    write_mcp_config(repo_dir, linear_api_key)

    issue = manifest.issues[0]
    console.print("\n[green]✓ Setup complete![/green]")
    console.print(f"  Project: {project_name}")
    console.print(f"  Issue: {issue.identifier} ({key})")
    console.print(f"  Repo: {repo_dir}")
    console.print(f"  GitHub: https://github.com/{manifest.github_repo}")
    return manifest


def setup_test_project(
    linear: Optional[LinearClient] = None,
    store: Optional[ManifestStore] = None,
    base_dir: Optional[Path] = None,
) -> Manifest:
    """Provision the seven-issue project with blocking relations and a stub repo.

    Raises:
        ManifestExistsError: if a previous project fixture was not torn down
    """
    base_dir = base_dir or get_base_dir()
    store = store or manifest_store_for("project", base_dir)
    ensure_no_manifest(store)

    linear = linear or LinearClient.from_env()

    team = resolve_team(linear, get_linear_team_key())
    timestamp = make_timestamp()
    repo_dir = repo_dir_for(base_dir, timestamp)
    project_name = f"{PROJECT_PREFIX} - {timestamp}"
    manifest = start_manifest(linear, store, team, project_name, timestamp, repo_dir)

    created = create_issues(linear, store, manifest, PROJECT_ISSUES)
    manifest.dependency_map = build_dependency_map(PROJECT_ISSUES)
    manifest.waves = build_waves(PROJECT_ISSUES)
    store.write(manifest)

    create_relations(linear, PROJECT_ISSUES, created)

    console.print("\nInitializing stub git repo...")
    copy_fixture_app(base_dir, repo_dir)
    init_git_repo(repo_dir)
    console.print(f"  Repo: {repo_dir}")
    console.print(f"\nManifest: {store.path}")

    console.print("\n[green]✓ Setup complete![/green]")
    console.print(f"  Project: {project_name}")
    console.print(f"  Issues: {len(created)}")
    console.print(f"  Repo: {repo_dir}")
    return manifest
