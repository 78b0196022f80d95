"""
Role adapter.

A role (fulfilled by any of a set of subjects) is encoded as a virtual
subject named by the role id, whose groups are the original
``"{subject} {group}"`` sections. The subject engine then runs unchanged and
its result is mapped back onto the original students and roles.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Sequence, Set, Tuple

from .criteria import QuotaConfig, role_minimum
from .models import (AllocationResult, AssignmentWarning, MinStudentMode, Role, Student,
                     SubjectGroup, Team, index_by_id)
from .report import sort_warnings


class RoleMappingError(RuntimeError):
    """The virtual allocation cannot be mapped back onto the original roster."""


@dataclass
class RoleMapping:
    roles: Dict[str, Role] = field(default_factory=dict)              # virtual subject -> role
    virtual_groups: Dict[str, Set[str]] = field(default_factory=dict)  # virtual subject -> groups

    @property
    def virtual_subjects(self) -> List[str]:
        return list(self.roles)


def virtual_group(sg: SubjectGroup) -> str:
    return f"{sg.subject} {sg.group}"


def roles_to_virtual_subjects(students: Sequence[Student],
                              roles: Sequence[Role]) -> Tuple[List[Student], RoleMapping]:
    """
    Build the virtual roster for role-based allocation.

    Every enrollment whose subject belongs to a role becomes one virtual
    enrollment of that role's virtual subject. Students fulfilling no role are
    kept with no enrollments, so an empty role is reported by name.
    """
    mapping = RoleMapping()
    for role in roles:
        mapping.roles[role.id] = role
        mapping.virtual_groups[role.id] = {
            virtual_group(sg) for s in students for sg in s.enrollments if sg.subject in role.subjects
        }

    virtual_students = []
    for student in students:
        enrollments = tuple(
            SubjectGroup(role.id, virtual_group(sg))
            for role in roles
            for sg in student.enrollments
            if sg.subject in role.subjects
        )
        virtual_students.append(replace(student, enrollments=enrollments))
    return virtual_students, mapping


def virtual_quota(mode: MinStudentMode, global_minimum: int, individual_minimums: Mapping[str, int],
                  mapping: RoleMapping, upper_limit_margin: int = 1) -> QuotaConfig:
    """Per-role minimums resolved up front; the engine always sees individual mode."""
    resolved = {
        subject: role_minimum(role, mode, global_minimum, individual_minimums)
        for subject, role in mapping.roles.items()
    }
    return QuotaConfig(
        mode=MinStudentMode.INDIVIDUAL,
        global_minimum=global_minimum,
        individual_minimums=resolved,
        upper_limit_margin=upper_limit_margin,
    )


def _restore_warning(warning: AssignmentWarning, mapping: RoleMapping) -> AssignmentWarning:
    role = mapping.roles.get(warning.subject) if warning.subject else None
    if role is None:
        return warning
    return replace(
        warning,
        subject=None,
        role=role.id,
        message=warning.message.replace(f"'{warning.subject}'", f"'{role.name}'"),
    )


def restore_roles(result: AllocationResult, mapping: RoleMapping,
                  originals: Sequence[Student]) -> AllocationResult:
    """
    Map a virtual allocation back to the original students and roles.

    Raises:
        RoleMappingError: a virtual student has no counterpart in ``originals``.
    """
    by_id = index_by_id(originals)

    def original(student: Student) -> Student:
        try:
            return by_id[student.id]
        except KeyError:
            raise RoleMappingError(f"Original student not found for id {student.id!r}") from None

    teams = tuple(Team(id=team.id, students=[original(s) for s in team.students])
                  for team in result.teams)
    warnings = sort_warnings(_restore_warning(w, mapping) for w in result.warnings)
    return replace(
        result,
        teams=teams,
        warnings=warnings,
        unassigned=tuple(original(s) for s in result.unassigned),
        criteria=tuple(mapping.roles[c].id for c in result.criteria if c in mapping.roles),
        roles=tuple(mapping.roles.values()),
    )
