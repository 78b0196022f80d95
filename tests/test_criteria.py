from __future__ import annotations

from team_allocator.criteria import (QuotaConfig, count_with_subject,
                                     exceeds_upper_limit, groups_in_team, role_minimum,
                                     roles_for_student, sort_by_scarcity)
from team_allocator.models import MinStudentMode, Role, Team
from tests.utils import section, student


def test_global_minimum_is_clamped_to_one() -> None:
    quota = QuotaConfig(global_minimum=0)
    assert quota.minimum("Math") == 1
    assert quota.upper_limit("Math") == 2


def test_individual_minimums_default_to_one() -> None:
    quota = QuotaConfig(mode=MinStudentMode.INDIVIDUAL, individual_minimums={"Math": 3})
    assert quota.minimum("Math") == 3
    assert quota.minimum("Physics") == 1
    assert quota.as_dict(["Math", "Physics"]) == {"Math": 3, "Physics": 1}


def test_upper_limit_margin_is_configurable() -> None:
    quota = QuotaConfig(global_minimum=2, upper_limit_margin=0)
    assert quota.upper_limit("Math") == 2


def test_sort_by_scarcity_is_stable() -> None:
    students = (section("m", 3, "Math", "A") + section("p", 1, "Physics", "X")
                + section("c", 2, "Chem", "C") + section("b", 2, "Bio", "B"))
    assert sort_by_scarcity(["Math", "Physics", "Chem", "Bio"], students) == [
        "Physics", "Chem", "Bio", "Math"]


def test_counts_and_groups() -> None:
    team = Team(id=1, students=[
        student(1, ("Math", "A"), ("Physics", "X")),
        student(2, ("Math", "B")),
        student(3, ("Chem", "C")),
    ])
    assert count_with_subject(team, "Math") == 2
    assert count_with_subject(team, "Bio") == 0
    assert groups_in_team(team, "Math") == {"A", "B"}
    assert groups_in_team(team, "Physics") == {"X"}


def test_exceeds_upper_limit_only_once_minimum_is_met() -> None:
    quota = QuotaConfig(global_minimum=2)  # upper limit 3
    full = Team(id=1, students=section("m", 3, "Math", "A"))
    short = Team(id=2, students=section("n", 1, "Math", "A"))

    newcomer = student("x", ("Math", "A"))
    outsider = student("y", ("Physics", "X"))

    assert exceeds_upper_limit(newcomer, full, ["Math"], quota)
    assert not exceeds_upper_limit(outsider, full, ["Math", "Physics"], quota)
    assert not exceeds_upper_limit(newcomer, short, ["Math"], quota)


def test_role_minimum_by_mode() -> None:
    role = Role(id="analyst", name="Analyst", subjects=frozenset({"Math"}), minimum_students=3)

    assert role_minimum(role, MinStudentMode.GLOBAL, 2, {}) == 2
    assert role_minimum(role, MinStudentMode.INDIVIDUAL, 2, {}) == 3
    assert role_minimum(role, MinStudentMode.INDIVIDUAL, 2, {"analyst": 0}) == 1


def test_role_counts_and_lookup() -> None:
    analyst = Role(id="analyst", name="Analyst", subjects=frozenset({"Math", "Stats"}))
    writer = Role(id="writer", name="Writer", subjects=frozenset({"Lit"}))
    both = student(1, ("Stats", "A"), ("Lit", "B"))
    team = Team(id=1, students=[both, student(2, ("Math", "A"))])

    assert [s.id for s in team.students if analyst.fulfilled_by(s)] == [1, 2]
    assert [s.id for s in team.students if writer.fulfilled_by(s)] == [1]
    assert roles_for_student(both, [analyst, writer]) == [analyst, writer]


def test_role_from_dict_requires_id_and_subjects() -> None:
    role = Role.from_dict({"id": "r1", "subjects": ["Math"], "minimum_students": "2"})
    assert role.name == "r1"
    assert role.subjects == frozenset({"Math"})
    assert role.minimum_students == 2

    try:
        Role.from_dict({"name": "No id"})
    except ValueError as exc:
        assert "id" in str(exc)
    else:
        raise AssertionError("missing id accepted")
