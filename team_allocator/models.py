"""
Core data types for the team allocator.

Students and roles are loaded once per run and never mutated; teams are
created fresh for every allocation and only their membership changes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

StudentId = Union[str, int]


class MinStudentMode(str, Enum):
    """How the per-team minimum is configured."""
    GLOBAL = 'global'
    INDIVIDUAL = 'individual'


@dataclass(frozen=True)
class SubjectGroup:
    """A course section: one group of one subject."""
    subject: str
    group: str

    def label(self) -> str:
        return f"{self.subject} ({self.group})"


@dataclass(frozen=True)
class Student:
    """A roster entry with its ordered list of enrollments."""
    id: StudentId
    name: str
    email: str = ''
    enrollments: Tuple[SubjectGroup, ...] = ()

    @property
    def subjects(self) -> List[str]:
        seen = []
        for sg in self.enrollments:
            if sg.subject not in seen:
                seen.append(sg.subject)
        return seen

    def takes(self, subject: str) -> bool:
        return any(sg.subject == subject for sg in self.enrollments)

    def group_for(self, subject: str) -> Optional[str]:
        """Group the student belongs to for a subject (first enrollment wins)."""
        for sg in self.enrollments:
            if sg.subject == subject:
                return sg.group
        return None

    def primary_enrollments(self) -> List[SubjectGroup]:
        """One enrollment per subject, in enrollment order."""
        return [SubjectGroup(subject, self.group_for(subject)) for subject in self.subjects]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'enrollments': [{'subject': sg.subject, 'group': sg.group} for sg in self.enrollments],
        }


@dataclass
class Team:
    """A team being filled. ``students`` is owned by the assignment manager."""
    id: int
    students: List[Student] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.students)

    def has_member(self, student: Student) -> bool:
        return any(s.id == student.id for s in self.students)

    def member_ids(self) -> List[StudentId]:
        return [s.id for s in self.students]


@dataclass(frozen=True)
class Role:
    """An abstract role fulfilled by any student taking one of ``subjects``."""
    id: str
    name: str
    subjects: FrozenSet[str]
    minimum_students: int = 1
    description: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Role':
        if 'id' not in data or 'subjects' not in data:
            raise ValueError(f"Role definition needs 'id' and 'subjects': {data!r}")
        return cls(
            id=str(data['id']),
            name=str(data.get('name') or data['id']),
            subjects=frozenset(str(s) for s in data['subjects']),
            minimum_students=int(data.get('minimum_students', 1)),
            description=str(data.get('description', '')),
        )

    def fulfilled_by(self, student: Student) -> bool:
        return any(sg.subject in self.subjects for sg in student.enrollments)


Criterion = Union[str, Role]


@dataclass(frozen=True)
class AssignmentWarning:
    """A diagnostic produced after an allocation run."""
    message: str
    is_critical: bool = False
    team: Optional[int] = None
    subject: Optional[str] = None
    role: Optional[str] = None
    group: Optional[str] = None

    @property
    def criterion(self) -> str:
        return self.subject or self.role or ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'is_critical': self.is_critical,
            'team': self.team,
            'subject': self.subject,
            'role': self.role,
            'group': self.group,
        }


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of one allocation run: final teams plus sorted warnings."""
    teams: Tuple[Team, ...]
    warnings: Tuple[AssignmentWarning, ...]
    requested_team_count: int = 0
    effective_team_count: int = 0
    unassigned: Tuple[Student, ...] = ()
    criteria: Tuple[str, ...] = ()
    minimums: Dict[str, int] = field(default_factory=dict)
    roles: Tuple[Role, ...] = ()

    @property
    def critical_warnings(self) -> List[AssignmentWarning]:
        return [w for w in self.warnings if w.is_critical]

    def covers(self, student: Student, criterion: str) -> bool:
        """Whether ``student`` counts toward ``criterion`` (a subject, or a role id in role mode)."""
        for role in self.roles:
            if role.id == criterion:
                return role.fulfilled_by(student)
        return student.takes(criterion)

    def criterion_count(self, team: Team, criterion: str) -> int:
        return sum(1 for s in team.students if self.covers(s, criterion))

    @property
    def statistics(self) -> Dict[str, Any]:
        assigned = sum(team.size for team in self.teams)
        total = assigned + len(self.unassigned)
        sizes = [team.size for team in self.teams]
        return {
            'total_students': total,
            'assigned': assigned,
            'unassigned': len(self.unassigned),
            'assignment_rate': (assigned / total * 100) if total else 0.0,
            'teams_requested': self.requested_team_count,
            'teams_planned': self.effective_team_count,
            'teams_formed': len(self.teams),
            'min_team_size': min(sizes) if sizes else 0,
            'max_team_size': max(sizes) if sizes else 0,
            'critical_warnings': len(self.critical_warnings),
            'warnings': len(self.warnings),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': 'Critical' if self.critical_warnings else 'OK',
            'statistics': self.statistics,
            'criteria': list(self.criteria),
            'minimums': dict(self.minimums),
            'teams': [
                {
                    'id': team.id,
                    'size': team.size,
                    'members': [s.to_dict() for s in team.students],
                }
                for team in self.teams
            ],
            'unassigned_students': [s.to_dict() for s in self.unassigned],
            'warnings': [w.to_dict() for w in self.warnings],
        }


def index_by_id(students: Iterable[Student]) -> Dict[StudentId, Student]:
    return {s.id: s for s in students}
