"""
Final balancing: deterministic redistribution after the local search.

1. Move surplus students of a criterion into teams still below its minimum.
2. Move students out of teams above a criterion's upper limit.

Neither pass leaves a source team below the minimum of a criterion it met
before the move, so the number of satisfied (team, criterion) pairs never
goes down.
"""

from dataclasses import dataclass
from typing import List, Sequence

from .assignment import AssignmentManager
from .config import AllocationSettings
from .conflicts import find_conflict
from .criteria import QuotaConfig, count_with_subject
from .models import Student, Team


@dataclass(frozen=True)
class BalanceReport:
    minimum_moves: int
    upper_moves: int
    minimum_passes: int
    upper_passes: int
    minimum_cap: int
    upper_cap: int
    cap_hit: bool = False


def keeps_other_minimums(student: Student, source: Team, subject: str,
                         subjects: Sequence[str], quota: QuotaConfig) -> bool:
    """True if removing ``student`` keeps every other criterion it takes at its minimum."""
    for other in subjects:
        if other == subject or not student.takes(other):
            continue
        remaining = sum(1 for s in source.students if s.id != student.id and s.takes(other))
        if remaining < quota.minimum(other):
            return False
    return True


def fits_other_limits(student: Student, target: Team, subject: str,
                      subjects: Sequence[str], quota: QuotaConfig) -> bool:
    """True if adding ``student`` pushes no other criterion above its upper limit."""
    for other in subjects:
        if other == subject or not student.takes(other):
            continue
        count = count_with_subject(target, other)
        if count >= quota.minimum(other) and count + 1 > quota.upper_limit(other):
            return False
    return True


def _try_relocate(candidates: List[Student], source: Team, targets: List[Team], subject: str,
                  manager: AssignmentManager, quota: QuotaConfig) -> bool:
    for student in candidates:
        if not keeps_other_minimums(student, source, subject, manager.subjects, quota):
            continue
        for target in targets:
            if find_conflict(student, target, manager.store) is not None:
                continue
            if not fits_other_limits(student, target, subject, manager.subjects, quota):
                continue
            manager.move(student, source, target)
            return True
    return False


def move_to_meet_minimums(teams: List[Team], manager: AssignmentManager, quota: QuotaConfig) -> int:
    """One pass moving surplus students into teams below a criterion's minimum."""
    moves = 0
    for subject in manager.subjects:
        minimum = quota.minimum(subject)
        for source in teams:
            while count_with_subject(source, subject) > minimum:
                targets = sorted(
                    (t for t in teams if t.id != source.id and count_with_subject(t, subject) < minimum),
                    key=lambda t: count_with_subject(t, subject),
                )
                if not targets:
                    break
                candidates = sorted((s for s in source.students if s.takes(subject)),
                                    key=lambda s: len(s.enrollments))
                if not _try_relocate(candidates, source, targets, subject, manager, quota):
                    break
                moves += 1
    return moves


def move_to_respect_upper_limits(teams: List[Team], manager: AssignmentManager,
                                 quota: QuotaConfig) -> int:
    """One pass moving students out of teams above a criterion's upper limit."""
    moves = 0
    for subject in manager.subjects:
        minimum = quota.minimum(subject)
        upper = quota.upper_limit(subject)
        for source in teams:
            while count_with_subject(source, subject) > upper:
                if count_with_subject(source, subject) - 1 < minimum:
                    break
                targets = sorted(
                    (t for t in teams if t.id != source.id and count_with_subject(t, subject) < upper),
                    key=lambda t: count_with_subject(t, subject),
                )
                if not targets:
                    break
                candidates = [s for s in source.students if s.takes(subject)]
                if not _try_relocate(candidates, source, targets, subject, manager, quota):
                    break
                moves += 1
    return moves


def final_balancing(teams: List[Team], manager: AssignmentManager, quota: QuotaConfig,
                    settings: AllocationSettings) -> BalanceReport:
    """
    Run both balancing passes until nothing moves or the pass cap is reached.

    The caps only guarantee termination; ``BalanceReport.cap_hit`` tells the
    caller whether one was reached.
    """
    criteria = max(1, len(manager.subjects))
    minimum_cap = max(1, len(teams) * criteria * settings.minimum_pass_factor)
    upper_cap = max(1, len(teams) * criteria * settings.upper_pass_factor)

    capped = False
    minimum_moves = minimum_passes = 0
    while True:
        moved = move_to_meet_minimums(teams, manager, quota)
        minimum_passes += 1
        minimum_moves += moved
        if not moved:
            break
        if minimum_passes >= minimum_cap:
            capped = True
            break

    upper_moves = upper_passes = 0
    while True:
        moved = move_to_respect_upper_limits(teams, manager, quota)
        upper_passes += 1
        upper_moves += moved
        if not moved:
            break
        if upper_passes >= upper_cap:
            capped = True
            break

    return BalanceReport(minimum_moves, upper_moves, minimum_passes, upper_passes,
                         minimum_cap, upper_cap, capped)
