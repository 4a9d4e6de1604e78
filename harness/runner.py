"""Agent runner - launch ``claude -p`` against a fixture repo and read its result.

The agent streams structured events on stdout. Depending on version and mode
the stream is either one JSON array of events or one JSON object per line.
Either way the terminal ``{"type": "result", ...}`` event is the last one,
so both shapes are read back to front.
"""

import json
import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from .env import get_plugin_dir
from .errors import AgentTimeoutError

DEFAULT_MAX_TURNS = 100
DEFAULT_TIMEOUT_S = 20 * 60
RESULT_TYPE = "result"
SKILL_NAME = "resolve-linear-issue"


@dataclass
class AgentOutput:
    """Terminal result record emitted by the agent."""
    type: str
    subtype: str = ""
    is_error: bool = False
    result: str = ""
    total_cost_usd: float = 0.0
    num_turns: int = 0
    session_id: str = ""
    duration_ms: int = 0

    @classmethod
    def from_record(cls, record: dict) -> "AgentOutput":
        return cls(
            type=record.get("type", RESULT_TYPE),
            subtype=record.get("subtype") or "",
            is_error=bool(record.get("is_error", False)),
            result=record.get("result") or "",
            total_cost_usd=record.get("total_cost_usd") or 0.0,
            num_turns=record.get("num_turns") or 0,
            session_id=record.get("session_id") or "",
            duration_ms=record.get("duration_ms") or 0,
        )


@dataclass
class AgentRunResult:
    exit_code: int
    json_output: Optional[AgentOutput]
    raw_stdout: str
    duration_ms: int


# ============================================================================
# Output parsing
# ============================================================================

def _reversed_dicts(items: list) -> Iterator[dict]:
    for item in reversed(items):
        if isinstance(item, dict):
            yield item


def iter_records(stdout: str) -> Iterator[dict]:
    """Yield candidate event records from agent output, last event first.

    A whole-output JSON array is read first. Line-delimited records follow,
    so an array with no terminal event still falls through to line parsing.
    """
    trimmed = stdout.strip()
    if not trimmed:
        return

    if trimmed.startswith("["):
        try:
            events = json.loads(trimmed)
        except ValueError:
            events = None
        if isinstance(events, list):
            yield from _reversed_dicts(events)

    for line in reversed(trimmed.splitlines()):
        line = line.strip()
        # Cheap pre-filter before paying for a parse
        if not line or '"type"' not in line:
            continue
        try:
            parsed = json.loads(line)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            yield parsed
        elif isinstance(parsed, list):
            yield from _reversed_dicts(parsed)


def parse_agent_output(stdout: str) -> Optional[dict]:
    """Find the terminal result record in agent output.

    Returns:
        The last record whose ``type`` is ``"result"``, or None when the
        output holds no such record. None means the result is unknown; the
        exit code stays the authoritative success signal.
    """
    return next((r for r in iter_records(stdout) if r.get("type") == RESULT_TYPE), None)


# ============================================================================
# Execution
# ============================================================================

def make_resolve_prompt(identifier: str, issue_id: str) -> str:
    """Build the task instruction for resolving one tracker issue."""
    return " ".join([
        f"Resolve Linear issue {identifier} (ID: {issue_id}).",
        f"You MUST invoke the {SKILL_NAME} skill using the Skill tool",
        "before starting any implementation work.",
        "The workflow is NOT complete until: PR checks pass, pr-reviewer",
        "approves the PR, and the Linear issue is updated.",
    ])


def build_agent_command(prompt: str, max_turns: int, plugin_dir: Path,
                        agent_bin: str = "claude") -> list:
    return [
        agent_bin,
        "-p", prompt,
        "--dangerously-skip-permissions",
        "--max-turns", str(max_turns),
        "--output-format", "stream-json",
        # stream-json in print mode requires verbose
        "--verbose",
        "--plugin-dir", str(plugin_dir),
    ]


def run_agent_subprocess(cmd: list, repo_path: Path, timeout: float,
                         env: Optional[dict] = None) -> tuple[int, str]:
    """Run the agent, capturing stdout while stderr streams to the terminal.

    Raises:
        AgentTimeoutError: if the process outlives ``timeout`` seconds
    """
    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    try:
        result = subprocess.run(
            cmd,
            cwd=str(repo_path),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=None,
            text=True,
            timeout=timeout,
            env=process_env,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout or ""
        if isinstance(partial, bytes):
            partial = partial.decode("utf-8", errors="replace")
        raise AgentTimeoutError("agent process to exit", int(timeout * 1000), partial) from e
    return result.returncode, result.stdout or ""


def run_resolve_issue(
    repo_path: Path,
    identifier: str,
    issue_id: str,
    max_turns: int = DEFAULT_MAX_TURNS,
    timeout: float = DEFAULT_TIMEOUT_S,
    plugin_dir: Optional[Path] = None,
    agent_bin: str = "claude",
) -> AgentRunResult:
    """Ask the agent to resolve an issue inside the scaffolded repo. Default timeout: 20 minutes."""
    prompt = make_resolve_prompt(identifier, issue_id)
    cmd = build_agent_command(prompt, max_turns, plugin_dir or get_plugin_dir(), agent_bin)

    start = time.monotonic()
    exit_code, stdout = run_agent_subprocess(cmd, Path(repo_path), timeout)
    duration_ms = int((time.monotonic() - start) * 1000)

    record = parse_agent_output(stdout)
    return AgentRunResult(
        exit_code=exit_code,
        json_output=AgentOutput.from_record(record) if record else None,
        raw_stdout=stdout,
        duration_ms=duration_ms,
    )


def save_debug_output(result: AgentRunResult, path: Path) -> Path:
    """Persist raw agent output for post-mortem debugging."""
    path.write_text(result.raw_stdout, encoding="utf-8")
    return path
