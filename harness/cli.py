"""Fixture harness CLI - provision, inspect and tear down e2e fixtures.

Examples:
  harness setup single --issue B     # one issue, with a PostgreSQL container
  harness setup project              # seven issues with blocking relations
  harness status single
  harness run-agent --max-turns 50
  harness parse-output claude-debug-output.jsonl
  harness teardown single
"""

import functools
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from .cleanup import teardown
from .env import load_env
from .errors import HarnessError
from .issues import DEFAULT_SINGLE_ISSUE, SINGLE_ISSUES
from .manifest import FIXTURE_MANIFESTS, Manifest, manifest_store_for
from .runner import (
    DEFAULT_MAX_TURNS,
    DEFAULT_TIMEOUT_S,
    parse_agent_output,
    run_resolve_issue,
)
from .setup import setup_single_issue, setup_test_project

console = Console()

FIXTURE_CHOICE = click.Choice(sorted(FIXTURE_MANIFESTS))


def exits_on_error(phase: str):
    """Turn lifecycle failures into a red error line and exit code 1."""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HarnessError as e:
                console.print(f"[red]Error: {e}[/red]")
                sys.exit(1)
            except Exception as e:
                console.print(f"[red]Error: {phase} failed: {e}[/red]")
                sys.exit(1)
        return wrapper
    return decorator


def output_json(data):
    console.print(Syntax(json.dumps(data, indent=2, default=str), "json",
                         theme="monokai", line_numbers=False))


def print_manifest_table(manifest: Manifest):
    console.print(f"[bold]{manifest.project_name}[/bold]")
    console.print(f"  Created: {manifest.created_at}")
    console.print(f"  Team: {manifest.team_key}")
    console.print(f"  Repo: {manifest.test_repo_path}")
    if manifest.github_repo:
        console.print(f"  GitHub: https://github.com/{manifest.github_repo}")
    if manifest.pg_container_id:
        console.print(f"  Container: {manifest.pg_container_id[:12]}")
    if manifest.database_url:
        console.print(f"  Database: {manifest.database_url}")

    table = Table(show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Identifier", style="yellow")
    table.add_column("Wave", style="magenta")
    table.add_column("Blocked by", style="dim")
    table.add_column("Title")
    for issue in manifest.issues:
        table.add_row(
            issue.key,
            issue.identifier,
            str(issue.wave),
            ", ".join(issue.blocked_by_keys) or "-",
            issue.title,
        )
    console.print(table)


@click.group()
def cli():
    """E2E fixture harness for the linear-pm plugin.

    \b
    setup       Provision a fixture and write its manifest
    teardown    Remove everything a manifest records
    status      Show the current manifest
    run-agent   Run the agent against the single-issue fixture
    parse-output  Extract the result record from saved agent output
    """
    load_env()


@cli.group()
def setup():
    """Provision a fixture."""
    pass


@setup.command("single")
@click.option("--issue", "issue_key", default=DEFAULT_SINGLE_ISSUE, show_default=True,
              help=f"Issue to create ({', '.join(SINGLE_ISSUES)})")
@click.option("--skip-install", is_flag=True, help="Do not install fixture dependencies")
@exits_on_error("Setup")
def setup_single(issue_key, skip_install):
    """One issue, a scaffolded repo pushed to GitHub, and a database when needed."""
    kwargs = {"install_command": None} if skip_install else {}
    setup_single_issue(issue_key, **kwargs)


@setup.command("project")
@exits_on_error("Setup")
def setup_project():
    """Seven issues in four waves with blocking relations."""
    setup_test_project()


@cli.command("teardown")
@click.argument("fixture", type=FIXTURE_CHOICE, default="single")
@exits_on_error("Teardown")
def teardown_cmd(fixture):
    """Cancel issues, archive the project and remove repos, containers and the manifest."""
    teardown(fixture)


@cli.command()
@click.argument("fixture", type=FIXTURE_CHOICE, default="single")
@click.option("--format", "fmt", type=click.Choice(["json", "pretty"]), default="pretty",
              help="Output format")
@exits_on_error("Status")
def status(fixture, fmt):
    """Show what the fixture manifest records."""
    store = manifest_store_for(fixture)
    if not store.exists():
        console.print(f"[yellow]No {fixture} fixture provisioned ({store.filename} not found)[/yellow]")
        return

    manifest = store.read()
    if fmt == "json":
        output_json(manifest.to_dict())
    else:
        print_manifest_table(manifest)


@cli.command("run-agent")
@click.option("--issue", "issue_key", help="Issue key from the manifest (default: first issue)")
@click.option("--max-turns", default=DEFAULT_MAX_TURNS, show_default=True, help="Agent turn limit")
@click.option("--timeout", "timeout_s", default=DEFAULT_TIMEOUT_S, show_default=True,
              help="Wall-clock limit in seconds")
@click.option("--plugin-dir", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Plugin under test (default: PLUGIN_DIR or ../plugins/linear-pm)")
@click.option("--save-output", type=click.Path(path_type=Path),
              help="Write raw agent output to this file")
@exits_on_error("Agent run")
def run_agent(issue_key, max_turns, timeout_s, plugin_dir, save_output):
    """Run the agent against the provisioned single-issue fixture."""
    manifest = manifest_store_for("single").read()
    issue = manifest.issue(issue_key.upper()) if issue_key else manifest.issues[0]

    console.print(f"Running agent for {issue.identifier} in {manifest.test_repo_path}...")
    result = run_resolve_issue(
        Path(manifest.test_repo_path),
        issue.identifier,
        issue.id,
        max_turns=max_turns,
        timeout=timeout_s,
        plugin_dir=plugin_dir,
    )

    if save_output:
        save_output.write_text(result.raw_stdout, encoding="utf-8")
        console.print(f"[green]✓[/green] Saved raw output to {save_output}")

    console.print(f"\nAgent finished in {result.duration_ms / 1000:.0f}s (exit code {result.exit_code})")
    if result.json_output:
        output_json(vars(result.json_output))
    else:
        console.print("[yellow]⚠ Warning: No result record found in agent output[/yellow]")
    if result.exit_code != 0:
        sys.exit(result.exit_code)


@cli.command("parse-output")
@click.argument("output_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def parse_output(output_file):
    """Print the terminal result record from saved agent output."""
    record = parse_agent_output(output_file.read_text(encoding="utf-8"))
    if record is None:
        console.print("[yellow]No result record found[/yellow]")
        sys.exit(1)
    output_json(record)


if __name__ == "__main__":
    cli()
