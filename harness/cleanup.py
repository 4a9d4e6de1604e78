"""Fixture teardown - unwind everything a manifest records.

Teardown is driven by the manifest alone, so it works even after the setup
process has exited. Steps run in a fixed order and each one is caught on its
own: a failure deleting the remote repo still lets the local repo and the
manifest go.

Library usage:
    from harness.cleanup import teardown
    results = teardown("single")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from rich.console import Console

from .docker_pg import stop_postgres
from .errors import HarnessError, ManifestNotFoundError
from .fixtures import remove_test_repo
from .github import GitHubCLI
from .linear import LinearClient
from .manifest import Manifest, ManifestStore, manifest_store_for

console = Console()


@dataclass
class TeardownStep:
    name: str
    run: Callable[[], None]


@dataclass
class StepResult:
    name: str
    ok: bool
    error: Optional[str] = None


def run_steps(steps: List[TeardownStep]) -> List[StepResult]:
    """Run every step in order, recording failures instead of stopping."""
    results = []
    for step in steps:
        console.print(f"\n{step.name}...")
        try:
            step.run()
            results.append(StepResult(step.name, True))
        except Exception as e:
            console.print(f"  [yellow]⚠ Warning: {step.name} failed: {e}[/yellow]")
            results.append(StepResult(step.name, False, str(e)))
    return results


def cancel_issues(linear: LinearClient, manifest: Manifest):
    state_id = linear.get_canceled_state_id(manifest.team_id)
    if not state_id:
        raise HarnessError("Could not find Canceled workflow state")

    failures = 0
    for issue in manifest.issues:
        try:
            linear.update_issue_state(issue.id, state_id)
            console.print(f"  Canceled: {issue.identifier} ({issue.key})")
        except Exception as e:
            failures += 1
            console.print(f"  [yellow]⚠ Warning: Failed to cancel {issue.identifier}: {e}[/yellow]")
    if failures:
        raise HarnessError(f"{failures} issue(s) could not be canceled")


def archive_project(linear: LinearClient, manifest: Manifest):
    linear.archive_project(manifest.project_id)
    console.print(f"  Archived: {manifest.project_name}")


def delete_remote_repo(github: GitHubCLI, full_name: str):
    if not github.delete_test_repo(full_name):
        raise HarnessError(f"Remote repo {full_name} was not deleted")
    console.print(f"  Deleted: {full_name}")


def stop_container(stop_db: Callable[[str], bool], container_id: str):
    if not stop_db(container_id):
        raise HarnessError(f"Container {container_id} was not removed")
    console.print(f"  Stopped: {container_id}")


def remove_local_repo(repo_path: Path):
    if remove_test_repo(repo_path):
        console.print(f"  Removed: {repo_path}")
    else:
        console.print(f"  Already removed: {repo_path}")


def delete_manifest(store: ManifestStore):
    store.delete()
    console.print(f"  Deleted: {store.path}")


def build_teardown_steps(
    manifest: Manifest,
    store: ManifestStore,
    get_linear: Callable[[], LinearClient],
    github: GitHubCLI,
    stop_db: Callable[[str], bool],
) -> List[TeardownStep]:
    """Ordered teardown steps for the resources this manifest records."""
    steps = [
        TeardownStep("Canceling issues", lambda: cancel_issues(get_linear(), manifest)),
        TeardownStep("Archiving project", lambda: archive_project(get_linear(), manifest)),
    ]
    if manifest.github_repo:
        steps.append(TeardownStep("Deleting GitHub repo",
                                  lambda: delete_remote_repo(github, manifest.github_repo)))
    if manifest.pg_container_id:
        steps.append(TeardownStep("Stopping PostgreSQL container",
                                  lambda: stop_container(stop_db, manifest.pg_container_id)))
    steps.append(TeardownStep("Removing local repo",
                              lambda: remove_local_repo(Path(manifest.test_repo_path))))
    steps.append(TeardownStep("Deleting manifest", lambda: delete_manifest(store)))
    return steps


def teardown(
    fixture: str = "single",
    store: Optional[ManifestStore] = None,
    linear: Optional[LinearClient] = None,
    github: Optional[GitHubCLI] = None,
    stop_db: Callable[[str], bool] = stop_postgres,
) -> List[StepResult]:
    """Tear down the provisioned fixture.

    Args:
        fixture: "single" or "project"; selects the manifest when no store is given
        store: Manifest store to read and finally delete
        linear: Tracker client (default: built from LINEAR_API_KEY on first use)
        github: GitHub CLI wrapper
        stop_db: Removes a database container by id

    Returns:
        One StepResult per step, in order

    Raises:
        ManifestNotFoundError: if there is nothing to tear down
    """
    store = store or manifest_store_for(fixture)
    if not store.exists():
        raise ManifestNotFoundError(f"{store.filename} not found. Nothing to tear down.")

    manifest = store.read()
    github = github or GitHubCLI()
    clients = {"linear": linear}

    def get_linear() -> LinearClient:
        # Built on first use so a missing API key only fails the tracker steps
        if clients["linear"] is None:
            clients["linear"] = LinearClient.from_env()
        return clients["linear"]

    results = run_steps(build_teardown_steps(manifest, store, get_linear, github, stop_db))

    failed = [r for r in results if not r.ok]
    if failed:
        console.print(f"\n[yellow]Teardown complete with {len(failed)} warning(s).[/yellow]")
    else:
        console.print("\n[green]✓ Teardown complete![/green]")
    return results
