from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from team_allocator.models import Role
from team_allocator.solver import TeamAllocator
from team_allocator.spreadsheets import (ROSTER_COLUMNS, RosterError, assignments_frame,
                                         export_allocation, read_roster, team_summary_frame,
                                         write_template)
from tests.utils import roster_rows, section, write_roster

ROWS = [
    {"ID": 1, "Full name": "Zoe", "Email": "zoe@example.edu", "Subjects": "Math, Physics", "Groups": "A, X"},
    {"ID": 2, "Full name": "Adam", "Email": "adam@example.edu", "Subjects": "Math", "Groups": "B"},
    {"ID": 1, "Full name": "Zoe Again", "Email": "other@example.edu", "Subjects": "Chem, Math", "Groups": "C, A"},
    {"ID": 3, "Full name": "Bad Mail", "Email": "bad-email", "Subjects": "Math", "Groups": "A"},
    {"ID": 4, "Full name": "Mismatch", "Email": "m@example.edu", "Subjects": "Math, Physics", "Groups": "A"},
    {"ID": 5, "Full name": "No Mail", "Email": None, "Subjects": "Math", "Groups": "A"},
]


@pytest.mark.parametrize("suffix", [".xlsx", ".csv"])
def test_read_roster_validates_and_merges(tmp_path: Path, suffix: str) -> None:
    path = write_roster(tmp_path / f"roster{suffix}", ROWS)
    messages = []

    students, subjects = read_roster(str(path), log=messages.append)

    assert [s.name for s in students] == ["Adam", "Zoe"]
    assert [s.id for s in students] == [2, 1]
    zoe = students[1]
    assert zoe.email == "zoe@example.edu"
    assert [sg.label() for sg in zoe.enrollments] == ["Math (A)", "Physics (X)", "Chem (C)"]
    assert subjects == ["Chem", "Math", "Physics"]

    assert sum(m.startswith("Skipping row") for m in messages) == 3
    assert any("duplicate ID 1" in m for m in messages)


def test_read_roster_rejects_two_groups_for_one_subject(tmp_path: Path) -> None:
    rows = [
        {"ID": 1, "Full name": "Zoe", "Email": "zoe@example.edu", "Subjects": "Math", "Groups": "A"},
        {"ID": 1, "Full name": "Zoe Again", "Email": "zoe@example.edu", "Subjects": "Math", "Groups": "B"},
        {"ID": 2, "Full name": "Adam", "Email": "adam@example.edu", "Subjects": "Math, Math", "Groups": "A, B"},
        {"ID": 3, "Full name": "Eve", "Email": "eve@example.edu", "Subjects": "Chem, Chem", "Groups": "C, C"},
    ]
    path = write_roster(tmp_path / "roster.csv", rows)
    messages = []

    students, subjects = read_roster(str(path), log=messages.append)

    assert [s.id for s in students] == [3, 1]
    assert [sg.label() for sg in students[0].enrollments] == ["Chem (C)"]
    assert [sg.label() for sg in students[1].enrollments] == ["Math (A)"]
    assert subjects == ["Chem", "Math"]
    assert any(m.startswith("Skipping row 3 (Zoe Again)") and "'Math'" in m for m in messages)
    assert any(m.startswith("Skipping row 4 (Adam)") and "'Math'" in m for m in messages)
    assert not any("Eve" in m for m in messages)


def test_read_roster_from_file_object(tmp_path: Path) -> None:
    path = write_roster(tmp_path / "roster.xlsx", ROWS[:2])

    with path.open("rb") as handle:
        students, _ = read_roster(handle, filename="upload.xlsx")

    assert len(students) == 2


def test_missing_columns(tmp_path: Path) -> None:
    path = tmp_path / "roster.xlsx"
    pd.DataFrame([{"ID": 1, "Full name": "Zoe"}]).to_excel(path, index=False)

    with pytest.raises(RosterError, match="Email"):
        read_roster(str(path))


def test_no_valid_rows(tmp_path: Path) -> None:
    path = write_roster(tmp_path / "roster.csv", ROWS[3:])

    with pytest.raises(RosterError, match="No valid students"):
        read_roster(str(path))


def test_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "roster.xlsx"
    path.write_text("not a workbook")

    with pytest.raises(RosterError):
        read_roster(str(path))


def test_template_has_roster_headers(tmp_path: Path) -> None:
    path = tmp_path / "template.xlsx"
    write_template(path)

    df = pd.read_excel(path, sheet_name="Students")
    assert list(df.columns) == ROSTER_COLUMNS
    assert df.empty


def test_template_round_trips_through_reader(tmp_path: Path) -> None:
    students = section("a", 4, "Math", "A")
    path = write_roster(tmp_path / "roster.xlsx", roster_rows(students))

    loaded, subjects = read_roster(str(path))

    assert [s.id for s in loaded] == ["a1", "a2", "a3", "a4"]
    assert loaded == students
    assert subjects == ["Math"]


def test_export_allocation_sheets(tmp_path: Path) -> None:
    students = section("a", 2, "Math", "A") + section("b", 2, "Math", "B")
    result = TeamAllocator(verbose=False, seed=1).allocate(students, ["Math"], 1, global_min=2)

    path = tmp_path / "allocation.xlsx"
    export_allocation(result, students, path)
    sheets = pd.read_excel(path, sheet_name=None)

    assignments = sheets["Assignments"]
    assert list(assignments["ID"]) == ["a1", "a2", "b1", "b2"]
    assert list(assignments["Team"]) == [1, 1, "Unassigned", "Unassigned"]
    assert "Selected subjects" in assignments.columns

    summary = sheets["Team Summary"]
    assert list(summary["Math"]) == [2]
    assert list(summary["Math (min)"]) == [2]

    warnings = sheets["Warnings"]
    assert set(warnings["Type"]) == {"Critical"}
    assert len(warnings) == len(result.warnings)


def test_role_export_uses_role_names() -> None:
    role = Role(id="math", name="Mathematician", subjects=frozenset({"Math"}))
    students = section("a", 4, "Math", "A")
    result = TeamAllocator(verbose=False, seed=1).allocate(students, [role], 2)

    assignments = assignments_frame(result, students)
    assert list(assignments["Roles"]) == ["Mathematician"] * 4

    summary = team_summary_frame(result)
    assert list(summary.columns) == ["Team", "Size", "Mathematician", "Mathematician (min)"]
    assert list(summary["Mathematician"]) == [2, 2]
