"""
Group-conflict detection and resolution.
"""

import random
from typing import List, Optional

from .assignment import AssignmentManager
from .commitments import CommitmentStore
from .criteria import QuotaConfig, exceeds_upper_limit
from .models import Student, SubjectGroup, Team


def find_conflict(student: Student, team: Team, store: CommitmentStore) -> Optional[SubjectGroup]:
    """
    Check whether placing ``student`` in ``team`` would mix groups.

    Returns:
        The subject and the group already present in the team, or None.
    """
    for sg in student.primary_enrollments():
        committed = store.committed_group(team.id, sg.subject)
        if committed is not None and committed != sg.group:
            return SubjectGroup(sg.subject, committed)

        for member in team.students:
            if member.id == student.id:
                continue
            other = member.group_for(sg.subject)
            if other is not None and other != sg.group:
                return SubjectGroup(sg.subject, other)
    return None


def try_resolve_conflict(student: Student, target: Team, subject: str, group: str,
                         teams: List[Team], manager: AssignmentManager,
                         rng: random.Random, quota: Optional[QuotaConfig] = None) -> bool:
    """
    Make room for ``student`` in ``target`` by relocating one occupant that
    holds ``group`` for ``subject`` to a team where it causes no conflict.
    With ``quota``, destinations the occupant would push above an upper limit
    are skipped.

    Returns:
        True once an occupant has been moved, False if none could be.
    """
    blocking = [s for s in target.students if s.group_for(subject) == group and s.id != student.id]
    if not blocking:
        return False

    for occupant in blocking:
        destinations = [t for t in teams if t.id != target.id]
        rng.shuffle(destinations)
        for destination in destinations:
            if find_conflict(occupant, destination, manager.store) is not None:
                continue
            if quota is None or not exceeds_upper_limit(occupant, destination, manager.subjects, quota):
                manager.move(occupant, target, destination)
                return True
    return False


def place_student(student: Student, team: Team, teams: List[Team], manager: AssignmentManager,
                  rng: random.Random, resolve: bool = True,
                  quota: Optional[QuotaConfig] = None) -> Optional[SubjectGroup]:
    """
    Assign ``student`` to ``team``, relocating at most one blocking occupant.

    A relocation is kept even when another conflict remains afterwards; the
    student then stays out of ``team``.

    Returns:
        None on success, otherwise the conflict that kept the student out.
    """
    conflict = find_conflict(student, team, manager.store)
    if conflict is not None and resolve:
        if try_resolve_conflict(student, team, conflict.subject, conflict.group,
                                teams, manager, rng, quota):
            conflict = find_conflict(student, team, manager.store)
    if conflict is not None:
        return conflict
    manager.assign(student, team)
    return None
