"""
Roster import, template generation and allocation export (pandas + openpyxl).

Roster layout, one row per student:

    ID | Full name | Email | Subjects | Groups

``Subjects`` and ``Groups`` are comma-separated lists of the same length; the
n-th group belongs to the n-th subject.
"""

import os
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .criteria import roles_for_student
from .models import AllocationResult, Role, Student, StudentId, SubjectGroup

ROSTER_COLUMNS = ['ID', 'Full name', 'Email', 'Subjects', 'Groups']
TEMPLATE_SHEET = 'Students'
UNASSIGNED_LABEL = 'Unassigned'


class RosterError(ValueError):
    """The roster file cannot be used: unreadable, missing columns or no valid rows."""


# =============================================================================
# Import
# =============================================================================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass  # list-like values
    return str(value).strip() == ''


def _normalize_id(value: Any) -> StudentId:
    """Spreadsheet ids come back as numpy numbers, floats or strings."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


def _split_list(value: Any) -> List[str]:
    return [item.strip() for item in str(value).split(',') if item.strip()]


def _group_clash(enrollments: Sequence[SubjectGroup]) -> Optional[str]:
    """First subject listed with two different groups, if any."""
    seen: Dict[str, str] = {}
    for sg in enrollments:
        if seen.setdefault(sg.subject, sg.group) != sg.group:
            return sg.subject
    return None


def _load_frame(source, filename: Optional[str]) -> pd.DataFrame:
    name = filename or (source if isinstance(source, (str, os.PathLike)) else '')
    name = os.fspath(name).lower()
    try:
        if name.endswith('.csv'):
            return pd.read_csv(source, dtype=object)
        return pd.read_excel(source, dtype=object)
    except Exception as e:
        raise RosterError(f"Could not read the roster file: {e}") from e


def read_roster(source, filename: Optional[str] = None,
                log: Optional[Callable[[str], None]] = None) -> Tuple[List[Student], List[str]]:
    """
    Read students from an Excel or CSV roster.

    Args:
        source: Path or binary file object
        filename: Name used to pick the reader when ``source`` is a file object
        log: Receives one message per skipped or merged row

    Returns:
        (students sorted by name, sorted list of every subject found)

    Raises:
        RosterError: unreadable file, missing columns or no valid student rows
    """
    log = log or (lambda message: None)
    df = _load_frame(source, filename)
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in ROSTER_COLUMNS if c not in df.columns]
    if missing:
        raise RosterError(f"The roster must contain the columns {', '.join(ROSTER_COLUMNS)} "
                          f"(missing: {', '.join(missing)})")

    students: Dict[StudentId, Student] = {}
    subjects = set()

    for idx, row in df.iterrows():
        line = idx + 2  # header is line 1
        values = [row[c] for c in ROSTER_COLUMNS]
        if all(_is_blank(v) for v in values):
            continue
        if any(_is_blank(v) for v in values):
            log(f"Skipping row {line}: missing ID, name, email, subjects or groups")
            continue

        raw_id, name, email, subject_cell, group_cell = values
        name, email = str(name).strip(), str(email).strip()
        subject_list = _split_list(subject_cell)
        group_list = _split_list(group_cell)

        if not subject_list:
            log(f"Skipping row {line} ({name}): no subjects")
            continue
        if len(subject_list) != len(group_list):
            log(f"Skipping row {line} ({name}): {len(subject_list)} subjects "
                f"but {len(group_list)} groups")
            continue
        if '@' not in email:
            log(f"Skipping row {line} ({name}): invalid email '{email}'")
            continue

        enrollments = tuple(dict.fromkeys(SubjectGroup(s, g) for s, g in zip(subject_list, group_list)))
        clash = _group_clash(enrollments)
        if clash:
            log(f"Skipping row {line} ({name}): more than one group for '{clash}'")
            continue
        student_id = _normalize_id(raw_id)

        existing = students.get(student_id)
        if existing is None:
            students[student_id] = Student(id=student_id, name=name, email=email,
                                           enrollments=enrollments)
        else:
            merged = tuple(dict.fromkeys(existing.enrollments + enrollments))
            clash = _group_clash(merged)
            if clash:
                log(f"Skipping row {line} ({name}): duplicate ID {student_id} "
                    f"gives '{clash}' a second group")
                continue
            # name and email of the first row are kept
            students[student_id] = Student(id=student_id, name=existing.name,
                                           email=existing.email, enrollments=merged)
            log(f"Row {line}: duplicate ID {student_id} ({name}), enrollments merged")
        subjects.update(subject_list)

    if not students:
        raise RosterError("No valid students were found in the roster")

    ordered = sorted(students.values(), key=lambda s: s.name.casefold())
    return ordered, sorted(subjects)


def write_template(target):
    """Write an empty roster workbook with the expected headers."""
    pd.DataFrame(columns=ROSTER_COLUMNS).to_excel(target, sheet_name=TEMPLATE_SHEET,
                                                  index=False, engine='openpyxl')


# =============================================================================
# Export
# =============================================================================

def _roles_for(result: AllocationResult, roles: Optional[Sequence[Role]]) -> List[Role]:
    return list(roles) if roles is not None else list(result.roles)


def _criterion_label(criterion: str, roles: Sequence[Role]) -> str:
    for role in roles:
        if role.id == criterion:
            return role.name
    return criterion


def assignments_frame(result: AllocationResult, students: Sequence[Student],
                      roles: Optional[Sequence[Role]] = None) -> pd.DataFrame:
    """One row per roster student with its team, or ``Unassigned``."""
    roles = _roles_for(result, roles)
    team_of = {sid: team.id for team in result.teams for sid in team.member_ids()}

    rows = []
    for s in students:
        row = {
            'ID': s.id,
            'Full name': s.name,
            'Email': s.email,
            'Enrolled subjects': ', '.join(sg.label() for sg in s.enrollments),
        }
        if roles:
            row['Roles'] = ', '.join(r.name for r in roles_for_student(s, roles))
        else:
            row['Selected subjects'] = ', '.join(c for c in result.criteria if s.takes(c))
        row['Team'] = team_of.get(s.id, UNASSIGNED_LABEL)
        rows.append(row)
    return pd.DataFrame(rows)


def team_summary_frame(result: AllocationResult,
                       roles: Optional[Sequence[Role]] = None) -> pd.DataFrame:
    """Per team: size, then count and configured minimum of every criterion."""
    roles = _roles_for(result, roles)
    rows = []
    for team in sorted(result.teams, key=lambda t: t.id):
        row = {'Team': team.id, 'Size': team.size}
        for criterion in result.criteria:
            label = _criterion_label(criterion, roles)
            row[label] = result.criterion_count(team, criterion)
            row[f'{label} (min)'] = result.minimums.get(criterion, 1)
        rows.append(row)
    return pd.DataFrame(rows, columns=None if rows else ['Team', 'Size'])


def warnings_frame(result: AllocationResult,
                   roles: Optional[Sequence[Role]] = None) -> pd.DataFrame:
    roles = _roles_for(result, roles)
    rows = [{
        'Team': w.team if w.team is not None else '',
        'Subject': w.subject or '',
        'Role': _criterion_label(w.role, roles) if w.role else '',
        'Group': w.group or '',
        'Type': 'Critical' if w.is_critical else 'Warning',
        'Message': w.message,
    } for w in result.warnings]
    return pd.DataFrame(rows, columns=['Team', 'Subject', 'Role', 'Group', 'Type', 'Message'])


def _autosize_columns(writer: pd.ExcelWriter):
    for worksheet in writer.sheets.values():
        for column in worksheet.columns:
            width = max((len(str(cell.value)) for cell in column if cell.value is not None),
                        default=0)
            worksheet.column_dimensions[column[0].column_letter].width = min(width + 2, 50)


def export_allocation(result: AllocationResult, students: Sequence[Student], target,
                      roles: Optional[Sequence[Role]] = None):
    """
    Write the allocation workbook.

    Sheets:
        - Assignments: every roster student with its team
        - Team Summary: per-criterion counts against the configured minimums
        - Warnings: every warning of the run
    """
    with pd.ExcelWriter(target, engine='openpyxl') as writer:
        assignments_frame(result, students, roles).to_excel(writer, sheet_name='Assignments',
                                                            index=False)
        team_summary_frame(result, roles).to_excel(writer, sheet_name='Team Summary', index=False)
        warnings_frame(result, roles).to_excel(writer, sheet_name='Warnings', index=False)
        _autosize_columns(writer)
