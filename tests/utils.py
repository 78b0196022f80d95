"""Builders shared by the allocator tests."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import pandas as pd

from team_allocator.assignment import AssignmentManager
from team_allocator.models import Student, SubjectGroup, Team
from team_allocator.spreadsheets import ROSTER_COLUMNS


def student(sid, *enrollments: Tuple[str, str], name: str = None) -> Student:
    """``student(1, ("Math", "A"), ("Physics", "X"))``"""
    return Student(
        id=sid,
        name=name or f"Student {sid}",
        email=f"s{sid}@example.edu",
        enrollments=tuple(SubjectGroup(subject, group) for subject, group in enrollments),
    )


def section(prefix: str, count: int, subject: str, group: str, start: int = 1) -> List[Student]:
    """``count`` students of one subject group, ids ``{prefix}{n}``."""
    return [student(f"{prefix}{n}", (subject, group)) for n in range(start, start + count)]


def build_teams(manager: AssignmentManager, *members: Sequence[Student]) -> List[Team]:
    """One team per member list, filled through the manager so locks are set."""
    teams = []
    for team_id, students in enumerate(members, start=1):
        team = Team(id=team_id)
        for s in students:
            manager.assign(s, team)
        teams.append(team)
    return teams


def roster_rows(students: Iterable[Student]) -> List[Dict[str, object]]:
    return [
        {
            "ID": s.id,
            "Full name": s.name,
            "Email": s.email,
            "Subjects": ", ".join(sg.subject for sg in s.enrollments),
            "Groups": ", ".join(sg.group for sg in s.enrollments),
        }
        for s in students
    ]


def write_roster(path: Path, rows: List[Dict[str, object]]) -> Path:
    df = pd.DataFrame(rows, columns=ROSTER_COLUMNS)
    if path.suffix == ".csv":
        df.to_csv(path, index=False)
    else:
        df.to_excel(path, index=False, engine="openpyxl")
    return path
