"""Manifest of provisioned fixture resources.

The manifest is the single record of what a setup run created. It is
rewritten in full after every provisioning step, so whatever is on disk is
always a complete snapshot that teardown can unwind.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .env import get_base_dir
from .errors import ManifestNotFoundError, UnknownFixtureError

SINGLE_MANIFEST_FILENAME = "test-manifest-single.json"
PROJECT_MANIFEST_FILENAME = "test-manifest.json"


@dataclass
class ManifestIssue:
    """One tracker issue created for the fixture."""
    key: str
    id: str
    identifier: str
    title: str
    wave: int
    blocked_by_keys: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "id": self.id,
            "identifier": self.identifier,
            "title": self.title,
            "wave": self.wave,
            "blockedByKeys": list(self.blocked_by_keys),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestIssue":
        return cls(
            key=data["key"],
            id=data["id"],
            identifier=data["identifier"],
            title=data["title"],
            wave=int(data["wave"]),
            blocked_by_keys=list(data.get("blockedByKeys", [])),
        )


@dataclass
class Manifest:
    """Durable record of one fixture lifecycle."""
    created_at: str
    project_id: str
    project_name: str
    team_id: str
    team_key: str
    test_repo_path: str
    issues: List[ManifestIssue] = field(default_factory=list)
    dependency_map: Dict[str, List[str]] = field(default_factory=dict)
    waves: Dict[str, List[str]] = field(default_factory=dict)
    github_repo: Optional[str] = None
    pg_container_id: Optional[str] = None
    database_url: Optional[str] = None

    def issue(self, key: str) -> ManifestIssue:
        for issue in self.issues:
            if issue.key == key:
                return issue
        raise UnknownFixtureError(
            f'Unknown issue key "{key}". Available: {", ".join(i.key for i in self.issues)}')

    def to_dict(self) -> dict:
        data = {
            "createdAt": self.created_at,
            "projectId": self.project_id,
            "projectName": self.project_name,
            "teamId": self.team_id,
            "teamKey": self.team_key,
            "issues": [issue.to_dict() for issue in self.issues],
            "dependencyMap": {k: list(v) for k, v in self.dependency_map.items()},
            "waves": {k: list(v) for k, v in self.waves.items()},
            "testRepoPath": self.test_repo_path,
        }
        # Optional resources only appear once they have been provisioned
        for key, value in [("githubRepo", self.github_repo),
                           ("pgContainerId", self.pg_container_id),
                           ("databaseUrl", self.database_url)]:
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Manifest":
        return cls(
            created_at=data["createdAt"],
            project_id=data["projectId"],
            project_name=data["projectName"],
            team_id=data["teamId"],
            team_key=data["teamKey"],
            test_repo_path=data["testRepoPath"],
            issues=[ManifestIssue.from_dict(i) for i in data.get("issues", [])],
            dependency_map={k: list(v) for k, v in data.get("dependencyMap", {}).items()},
            waves={str(k): list(v) for k, v in data.get("waves", {}).items()},
            github_repo=data.get("githubRepo"),
            pg_container_id=data.get("pgContainerId"),
            database_url=data.get("databaseUrl"),
        )


class ManifestStore:
    """Reads and writes one manifest file under a fixed base directory.

    Single writer: there is no locking, callers sequence read-modify-write.
    """

    def __init__(self, base_dir: Path, filename: str = SINGLE_MANIFEST_FILENAME):
        self.base_dir = Path(base_dir)
        self.filename = filename

    @property
    def path(self) -> Path:
        return self.base_dir / self.filename

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Manifest:
        if not self.path.exists():
            raise ManifestNotFoundError(f"Manifest not found: {self.path}")
        return Manifest.from_dict(json.loads(self.path.read_text(encoding="utf-8")))

    def write(self, manifest: Manifest) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(manifest.to_dict(), indent=2) + "\n", encoding="utf-8")

    def delete(self) -> None:
        if self.path.exists():
            self.path.unlink()


FIXTURE_MANIFESTS = {
    "single": SINGLE_MANIFEST_FILENAME,
    "project": PROJECT_MANIFEST_FILENAME,
}


def manifest_store_for(fixture: str, base_dir: Optional[Path] = None) -> ManifestStore:
    """Store for one fixture kind ("single" or "project")."""
    if fixture not in FIXTURE_MANIFESTS:
        raise UnknownFixtureError(
            f'Unknown fixture "{fixture}". Available: {", ".join(FIXTURE_MANIFESTS)}')
    return ManifestStore(base_dir or get_base_dir(), FIXTURE_MANIFESTS[fixture])
