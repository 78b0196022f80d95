from __future__ import annotations

import random

import pandas as pd
import pytest

from team_allocator.config import AllocationSettings
from team_allocator.criteria import count_with_subject, groups_in_team
from team_allocator.models import Role
from team_allocator.solver import TeamAllocator
from tests.utils import section, student


def test_single_group_splits_evenly() -> None:
    students = section("a", 6, "Math", "A")

    result = TeamAllocator(verbose=False, seed=1).allocate(students, ["Math"], 2, global_min=2)

    assert [team.size for team in result.teams] == [3, 3]
    assert result.warnings == ()
    assert result.unassigned == ()
    assert result.minimums == {"Math": 2}
    assert result.statistics["assignment_rate"] == pytest.approx(100.0)


def test_conflicting_group_is_reported_not_mixed() -> None:
    students = section("a", 2, "Math", "A") + section("b", 2, "Math", "B")

    result = TeamAllocator(verbose=False, seed=1).allocate(students, ["Math"], 1, global_min=2)

    (team,) = result.teams
    assert sorted(team.member_ids()) == ["a1", "a2"]
    assert {s.id for s in result.unassigned} == {"b1", "b2"}
    blocked = [w for w in result.warnings if w.group == "B"]
    assert len(blocked) == 1
    assert blocked[0].is_critical
    assert blocked[0].subject == "Math"
    assert all(w.is_critical for w in result.warnings)


def test_groups_are_never_mixed() -> None:
    rng = random.Random(11)
    students = [
        student(n, ("Math", rng.choice("AB")), ("Physics", rng.choice("XY")))
        for n in range(1, 25)
    ]

    result = TeamAllocator(verbose=False, rng=random.Random(5)).allocate(
        students, ["Math", "Physics"], 4)

    placed = [s.id for team in result.teams for s in team.students]
    assert len(placed) == len(set(placed))
    assert len(placed) + len(result.unassigned) == len(students)
    for team in result.teams:
        assert len(groups_in_team(team, "Math")) == 1
        assert len(groups_in_team(team, "Physics")) == 1


def test_bottleneck_limits_team_count() -> None:
    students = section("m", 6, "Math", "A") + section("p", 2, "Physics", "X")

    result = TeamAllocator(verbose=False, seed=2).allocate(students, ["Math", "Physics"], 4)

    assert result.effective_team_count == 2
    assert len(result.teams) == 2
    for team in result.teams:
        assert count_with_subject(team, "Physics") == 1
        assert count_with_subject(team, "Math") >= 1
    cap = [w for w in result.warnings if "requested teams" in w.message]
    assert len(cap) == 1 and not cap[0].is_critical
    assert cap[0].subject == "Physics"


def test_students_outside_the_criteria_are_ignored() -> None:
    students = section("m", 2, "Math", "A") + section("c", 3, "Chem", "C")

    result = TeamAllocator(verbose=False).allocate(students, ["Math"], 2)

    placed = {s.id for team in result.teams for s in team.students}
    assert placed == {"m1", "m2"}
    assert result.statistics["total_students"] == 2


@pytest.mark.parametrize(
    "criteria, requested",
    [
        ([], 2),
        (["Math"], 0),
        (["Physics"], 2),
    ],
)
def test_infeasible_runs_return_a_critical_warning(criteria, requested) -> None:
    students = section("m", 4, "Math", "A")

    result = TeamAllocator(verbose=False).allocate(students, criteria, requested)

    assert result.teams == ()
    assert result.effective_team_count == 0
    assert len(result.critical_warnings) == 1


def test_criterion_nobody_takes_is_named_in_the_warning() -> None:
    result = TeamAllocator(verbose=False).allocate(section("c", 4, "Chem", "C"), ["Math"], 2)

    (warning,) = result.critical_warnings
    assert warning.subject == "Math"
    assert "'Math'" in warning.message
    assert result.unassigned == ()


def test_empty_roster_is_reported_without_a_criterion() -> None:
    result = TeamAllocator(verbose=False).allocate([], ["Math"], 2)

    (warning,) = result.critical_warnings
    assert warning.subject is None
    assert warning.message == "There are no students to allocate."


def test_mixed_criteria_are_rejected() -> None:
    role = Role(id="r", name="R", subjects=frozenset({"Math"}))
    with pytest.raises(ValueError):
        TeamAllocator(verbose=False).allocate(section("m", 2, "Math", "A"), ["Math", role], 1)


def test_unknown_min_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        TeamAllocator(verbose=False).allocate(section("m", 2, "Math", "A"), ["Math"], 1,
                                              min_mode="per-team")


def test_individual_minimums() -> None:
    students = section("m", 4, "Math", "A") + section("p", 2, "Physics", "X")

    result = TeamAllocator(verbose=False, seed=4).allocate(
        students, ["Math", "Physics"], 2, min_mode="individual",
        individual_mins={"Math": 2, "Physics": 1})

    assert result.minimums == {"Math": 2, "Physics": 1}
    for team in result.teams:
        assert count_with_subject(team, "Math") == 2
        assert count_with_subject(team, "Physics") == 1
    assert result.warnings == ()


def test_seeded_runs_are_reproducible() -> None:
    rng = random.Random(3)
    students = [student(n, ("Math", rng.choice("AB")), ("Lit", rng.choice("LM")))
                for n in range(1, 31)]

    def run():
        result = TeamAllocator(verbose=False, seed=42).allocate(students, ["Math", "Lit"], 3)
        return [team.member_ids() for team in result.teams], result.warnings

    assert run() == run()


def test_custom_settings_are_used() -> None:
    settings = AllocationSettings(max_iterations=0)
    allocator = TeamAllocator(settings=settings, verbose=False)
    assert allocator.settings.max_iterations == 0

    result = allocator.allocate(section("a", 4, "Math", "A"), ["Math"], 2)
    assert [team.size for team in result.teams] == [2, 2]


def test_verbose_log_and_report(capsys) -> None:
    students = section("a", 2, "Math", "A") + section("b", 2, "Math", "B")
    allocator = TeamAllocator(verbose=True, seed=1)

    result = allocator.allocate(students, ["Math"], 1, global_min=2)
    allocator.print_report(result)

    out = capsys.readouterr().out
    assert "STARTING ALLOCATION" in out
    assert "TEAM ALLOCATION REPORT" in out
    assert "CRITICAL WARNINGS" in out
    assert "Math: 2/2" in out


def test_export_solution_writes_workbook(tmp_path) -> None:
    students = section("a", 2, "Math", "A") + section("b", 2, "Math", "B")
    allocator = TeamAllocator(verbose=False, seed=1)
    result = allocator.allocate(students, ["Math"], 1, global_min=2)

    path = tmp_path / "out.xlsx"
    allocator.export_solution(result, students, str(path))

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["Assignments", "Team Summary", "Warnings"]
    assert (sheets["Assignments"]["Team"] == "Unassigned").sum() == 2
