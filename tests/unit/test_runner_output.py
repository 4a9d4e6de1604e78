from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from harness import runner
from harness.errors import AgentTimeoutError
from harness.runner import (
    build_agent_command,
    iter_records,
    make_resolve_prompt,
    parse_agent_output,
    run_resolve_issue,
)

RESULT = {
    "type": "result",
    "subtype": "success",
    "is_error": False,
    "result": "Opened PR #1",
    "total_cost_usd": 1.25,
    "num_turns": 42,
    "session_id": "sess-1",
    "duration_ms": 90_000,
}


def _jsonl(*records: dict) -> str:
    return "\n".join(json.dumps(r) for r in records) + "\n"


def test_parses_whole_output_array() -> None:
    stdout = json.dumps([{"type": "system"}, {"type": "assistant"}, RESULT])
    assert parse_agent_output(stdout) == RESULT


def test_parses_line_delimited_events() -> None:
    stdout = _jsonl({"type": "system", "subtype": "init"}, {"type": "assistant"}, RESULT)
    assert parse_agent_output(stdout) == RESULT


def test_last_result_record_wins() -> None:
    first = dict(RESULT, result="first")
    last = dict(RESULT, result="last")
    assert parse_agent_output(_jsonl(first, {"type": "assistant"}, last))["result"] == "last"


def test_skips_blank_and_unparsable_lines() -> None:
    stdout = _jsonl({"type": "assistant"}, RESULT) + "\n\n{\"type\": broken\nplain log line\n"
    assert parse_agent_output(stdout) == RESULT


def test_array_on_a_single_line_among_others() -> None:
    stdout = 'warning: something\n' + json.dumps([{"type": "assistant"}, RESULT]) + "\n"
    assert parse_agent_output(stdout) == RESULT


def test_array_prefix_falls_back_to_lines() -> None:
    # Leading "[" but the whole output is not one JSON document
    stdout = json.dumps([{"type": "assistant"}], indent=2) + "\n" + json.dumps(RESULT)
    assert parse_agent_output(stdout) == RESULT


def test_array_without_result_returns_none() -> None:
    stdout = json.dumps([{"type": "assistant"}, {"type": "user"}])
    assert parse_agent_output(stdout) is None


def test_no_result_record_returns_none() -> None:
    assert parse_agent_output("") is None
    assert parse_agent_output("   \n") is None
    assert parse_agent_output(_jsonl({"type": "assistant"}, {"type": "user"})) is None


def test_iter_records_yields_last_event_first() -> None:
    records = list(iter_records(_jsonl({"type": "a"}, {"type": "b"})))
    assert [r["type"] for r in records] == ["b", "a"]


def test_prompt_names_issue_and_skill() -> None:
    prompt = make_resolve_prompt("ENG-7", "uuid-7")
    assert prompt.startswith("Resolve Linear issue ENG-7 (ID: uuid-7).")
    assert "resolve-linear-issue skill" in prompt
    assert "the Linear issue is updated." in prompt


def test_agent_command_flags(tmp_path: Path) -> None:
    cmd = build_agent_command("do it", 25, tmp_path / "plugin")

    assert cmd[:3] == ["claude", "-p", "do it"]
    assert "--dangerously-skip-permissions" in cmd
    assert cmd[cmd.index("--max-turns") + 1] == "25"
    assert cmd[cmd.index("--output-format") + 1] == "stream-json"
    assert "--verbose" in cmd
    assert cmd[cmd.index("--plugin-dir") + 1] == str(tmp_path / "plugin")


def test_run_resolve_issue_parses_captured_stdout(monkeypatch: pytest.MonkeyPatch,
                                                  tmp_path: Path) -> None:
    captured = {}

    def fake_run(cmd, **kwargs):
        captured["cmd"] = cmd
        captured.update(kwargs)
        return subprocess.CompletedProcess(cmd, 0, stdout=_jsonl({"type": "assistant"}, RESULT))

    monkeypatch.setattr(runner.subprocess, "run", fake_run)

    result = run_resolve_issue(tmp_path, "ENG-1", "uuid-1", plugin_dir=tmp_path)

    assert result.exit_code == 0
    assert result.json_output.num_turns == 42
    assert result.json_output.is_error is False
    assert captured["cwd"] == str(tmp_path)
    assert captured["stdin"] == subprocess.DEVNULL
    assert captured["stderr"] is None


def test_run_resolve_issue_timeout_keeps_partial_output(monkeypatch: pytest.MonkeyPatch,
                                                        tmp_path: Path) -> None:
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"], output=b'{"type": "assistant"}\n')

    monkeypatch.setattr(runner.subprocess, "run", fake_run)

    with pytest.raises(AgentTimeoutError) as excinfo:
        run_resolve_issue(tmp_path, "ENG-1", "uuid-1", timeout=2, plugin_dir=tmp_path)

    assert excinfo.value.timeout_ms == 2000
    assert '"assistant"' in excinfo.value.stdout
