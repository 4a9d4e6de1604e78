"""
E2E fixture harness for the linear-pm plugin.

Main components:
- setup / cleanup: Provision a fixture and tear it down from its manifest
- manifest: Durable record of every resource a setup run created
- linear, github, docker_pg: Adapters for Linear, gh/git and Docker
- runner: Runs ``claude -p`` against the fixture repo and parses its result
- validators: ResolveIssueValidator, built on TestValidator

Quick start:
    from harness.setup import setup_single_issue
    from harness.runner import run_resolve_issue
    from harness.cleanup import teardown

    manifest = setup_single_issue("S")
    try:
        issue = manifest.issues[0]
        result = run_resolve_issue(Path(manifest.test_repo_path), issue.identifier, issue.id)
    finally:
        teardown("single")
"""

from .errors import HarnessError
from .manifest import Manifest, ManifestStore
from .validators import ResolveIssueValidator, TestValidator

__all__ = [
    'HarnessError',
    'Manifest',
    'ManifestStore',
    'ResolveIssueValidator',
    'TestValidator',
]
