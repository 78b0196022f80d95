"""
Assignment manager: the only code allowed to change team membership and
the group locks that go with it.
"""

from typing import Callable, Iterable, Optional

from .commitments import CommitmentStore
from .models import Student, Team


class AssignmentManager:
    """
    Adds and removes students from teams while keeping the commitment store
    consistent with the members actually present.

    Args:
        subjects: Criteria that take part in the allocation; only these are locked.
        store: Commitment store to maintain (a fresh one by default).
        log: Optional callable receiving diagnostic messages.
    """

    def __init__(self, subjects: Iterable[str], store: Optional[CommitmentStore] = None,
                 log: Optional[Callable[[str], None]] = None):
        self.subjects = list(subjects)
        self.store = store if store is not None else CommitmentStore()
        self._log = log or (lambda message: None)

    def assign(self, student: Student, team: Team) -> bool:
        """Append ``student`` to ``team``. Returns False if already a member."""
        if team.has_member(student):
            self._log(f"Student {student.id} is already in team {team.id}; skipping")
            return False
        team.students.append(student)

        for subject in self.subjects:
            group = student.group_for(subject)
            if group is None or self.store.committed_group(team.id, subject) is not None:
                continue
            clashing = any(
                other.id != student.id and other.group_for(subject) not in (None, group)
                for other in team.students
            )
            if clashing:
                self._log(f"Team {team.id} already mixes groups for '{subject}'; "
                          f"no lock set while adding student {student.id}")
            else:
                self.store.lock(team.id, subject, group)
        return True

    def remove(self, student: Student, team: Team) -> bool:
        """Remove ``student`` from ``team``. Returns False if it was not a member."""
        remaining = [s for s in team.students if s.id != student.id]
        if len(remaining) == len(team.students):
            return False
        team.students[:] = remaining

        for subject in self.subjects:
            group = student.group_for(subject)
            if group is None or self.store.committed_group(team.id, subject) != group:
                continue
            if any(s.group_for(subject) == group for s in remaining):
                continue
            self.store.release(team.id, subject)
            left = {s.group_for(subject) for s in remaining if s.takes(subject)}
            if len(left) == 1:
                self.store.lock(team.id, subject, left.pop())
        return True

    def move(self, student: Student, source: Team, target: Team) -> bool:
        if not self.remove(student, source):
            return False
        return self.assign(student, target)
