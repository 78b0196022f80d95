"""
Criterion model: configured minimums, soft upper limits, head counts and
scarcity ordering for subjects and roles.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Set

from .models import MinStudentMode, Role, Student, Team


@dataclass(frozen=True)
class QuotaConfig:
    """Per-team minimum configuration for a set of criteria."""
    mode: MinStudentMode = MinStudentMode.GLOBAL
    global_minimum: int = 1
    individual_minimums: Mapping[str, int] = field(default_factory=dict)
    upper_limit_margin: int = 1

    def minimum(self, criterion: str) -> int:
        """Configured minimum for a criterion, never below 1."""
        if self.mode == MinStudentMode.INDIVIDUAL:
            return max(1, int(self.individual_minimums.get(criterion, 1)))
        return max(1, int(self.global_minimum))

    def upper_limit(self, criterion: str) -> int:
        """Soft ceiling used by the balancing heuristics."""
        return self.minimum(criterion) + self.upper_limit_margin

    def as_dict(self, criteria: Iterable[str]) -> Dict[str, int]:
        return {c: self.minimum(c) for c in criteria}


def count_with_subject(team: Team, subject: str) -> int:
    return sum(1 for s in team.students if s.takes(subject))


def groups_in_team(team: Team, subject: str) -> Set[str]:
    """Distinct groups held by members for a subject."""
    return {s.group_for(subject) for s in team.students if s.takes(subject)}


def students_for_subject(subject: str, students: Iterable[Student]) -> List[Student]:
    return [s for s in students if s.takes(subject)]


def sort_by_scarcity(subjects: Iterable[str], students: List[Student]) -> List[str]:
    """Subjects ordered by how few students take them (scarcest first)."""
    counts = {subject: len(students_for_subject(subject, students)) for subject in subjects}
    return sorted(counts, key=lambda subject: counts[subject])


def exceeds_upper_limit(student: Student, team: Team, subjects: Iterable[str],
                        quota: QuotaConfig) -> bool:
    """
    True if adding ``student`` would push one of its subjects above the upper
    limit in a team that already meets that subject's minimum.
    """
    for subject in subjects:
        if not student.takes(subject):
            continue
        count = count_with_subject(team, subject)
        if count >= quota.minimum(subject) and count + 1 > quota.upper_limit(subject):
            return True
    return False


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

def role_minimum(role: Role, mode: MinStudentMode, global_minimum: int,
                 individual_minimums: Mapping[str, int]) -> int:
    """Configured minimum for a role; individual mode falls back to the role's own value."""
    if mode == MinStudentMode.INDIVIDUAL:
        return max(1, int(individual_minimums.get(role.id, role.minimum_students)))
    return max(1, int(global_minimum))


def roles_for_student(student: Student, roles: Iterable[Role]) -> List[Role]:
    return [role for role in roles if role.fulfilled_by(student)]
