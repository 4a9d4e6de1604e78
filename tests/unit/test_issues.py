from __future__ import annotations

from harness.issues import (
    DEFAULT_SINGLE_ISSUE,
    PROJECT_ISSUES,
    SINGLE_ISSUES,
    IssueDef,
    build_dependency_map,
    build_waves,
)


def _def(key: str, wave: int, blocked_by: list[str] | None = None) -> IssueDef:
    return IssueDef(key=key, title=f"Issue {key}", wave=wave, priority=3,
                    description="", blocked_by_keys=blocked_by or [])


def test_dependency_map_lists_only_blocked_issues() -> None:
    defs = [_def("A", 0), _def("B", 0), _def("C", 1, ["A", "B"])]
    assert build_dependency_map(defs) == {"C": ["A", "B"]}


def test_waves_group_by_declared_wave_in_order() -> None:
    defs = [_def("A", 0), _def("C", 1, ["A"]), _def("B", 0)]
    assert build_waves(defs) == {"0": ["A", "B"], "1": ["C"]}


def test_project_table_shape() -> None:
    assert [d.key for d in PROJECT_ISSUES] == ["A", "B", "C", "D", "E", "F", "G"]
    assert build_waves(PROJECT_ISSUES) == {
        "0": ["A", "B"],
        "1": ["C", "D"],
        "2": ["E", "F"],
        "3": ["G"],
    }
    assert build_dependency_map(PROJECT_ISSUES) == {
        "C": ["A", "B"],
        "D": ["A", "B"],
        "E": ["C", "D"],
        "F": ["C", "D"],
        "G": ["E"],
    }


def test_blockers_come_from_earlier_waves() -> None:
    by_key = {d.key: d for d in PROJECT_ISSUES}
    for d in PROJECT_ISSUES:
        for blocker in d.blocked_by_keys:
            assert by_key[blocker].wave < d.wave


def test_single_issue_table() -> None:
    assert DEFAULT_SINGLE_ISSUE in SINGLE_ISSUES
    assert set(SINGLE_ISSUES) == {"S", "A", "B"}
    assert [k for k, d in SINGLE_ISSUES.items() if d.needs_db] == ["B"]
