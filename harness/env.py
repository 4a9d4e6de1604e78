"""Environment loading and configuration lookups."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import MissingEnvironmentError

DEFAULT_GITHUB_TEST_ORG = "theailaunchpad"
DEFAULT_LINEAR_API_URL = "https://api.linear.app/graphql"


def get_base_dir() -> Path:
    """Root directory holding manifests, fixtures and scaffolded repos."""
    override = os.getenv("E2E_BASE_DIR")
    if override:
        return Path(override).resolve()
    return Path(__file__).resolve().parent.parent


def load_env(base_dir: Optional[Path] = None) -> None:
    """Load .env.local and .env from the base directory.

    Values already present in the process environment are never replaced.
    """
    base_dir = base_dir or get_base_dir()
    for name in (".env.local", ".env"):
        env_path = base_dir / name
        if env_path.exists():
            load_dotenv(env_path, override=False)


def require_env(key: str, fallback: Optional[str] = None) -> str:
    """Return an environment variable or raise if it is unset and has no fallback."""
    value = os.getenv(key) or fallback
    if not value:
        raise MissingEnvironmentError(f"Missing required environment variable: {key}")
    return value


def get_linear_api_key() -> str:
    return require_env("LINEAR_API_KEY")


def get_linear_api_url() -> str:
    return os.getenv("LINEAR_API_URL", DEFAULT_LINEAR_API_URL)


def get_linear_team_key() -> Optional[str]:
    return os.getenv("LINEAR_TEAM_KEY") or None


def get_github_test_org() -> str:
    return require_env("GITHUB_TEST_ORG", DEFAULT_GITHUB_TEST_ORG)


def get_plugin_dir() -> Path:
    """Plugin under test; lives in the marketplace checkout next to this harness."""
    override = os.getenv("PLUGIN_DIR")
    if override:
        return Path(override).resolve()
    return get_base_dir().parent / "plugins" / "linear-pm"
